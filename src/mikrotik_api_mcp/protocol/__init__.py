"""Protocol layer: length codec, sentence framing, command builders, and response parsing."""

from .framing import Sentence, SentenceBuffer, build_sentence, parse_sentences
from .commands import ReplyTag, build_command
from .parser import parse_response_to_dicts
