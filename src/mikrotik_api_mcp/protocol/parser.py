"""Response parsing for router replies."""

from __future__ import annotations

from typing import Iterable

from .commands import ReplyTag
from .framing import Sentence

UNKNOWN_ERROR = "Unknown error"


def parse_attribute_word(word: str) -> tuple[str, str] | None:
    """Split an ``=key=value`` word into ``(key, value)``.

    Only the first ``=`` after the leading one separates key from value, so
    values may themselves contain ``=``. Returns ``None`` for any word not
    starting with ``=``.
    """
    if not word.startswith("="):
        return None
    key, _, value = word[1:].partition("=")
    return key, value


def parse_response_to_dicts(sentences: Iterable[Sentence]) -> list[dict[str, str]]:
    """Turn each ``!re`` sentence into a dict of its attributes.

    Sentences with any other tag contribute nothing; words that are not
    ``=key=value`` attributes are ignored.
    """
    rows = []
    for sentence in sentences:
        if sentence.tag != ReplyTag.RE.value:
            continue
        row: dict[str, str] = {}
        for word in sentence.words[1:]:
            pair = parse_attribute_word(word)
            if pair is not None:
                row[pair[0]] = pair[1]
        rows.append(row)
    return rows


def trap_message(sentence: Sentence) -> str:
    """Error text of a ``!trap`` sentence."""
    return sentence.get("message") or UNKNOWN_ERROR


def trap_category(sentence: Sentence) -> str | None:
    return sentence.get("category")


def fatal_message(sentence: Sentence) -> str:
    """Freeform text of a ``!fatal`` sentence: every word after the tag."""
    return " ".join(sentence.words[1:])


def extract_challenge(sentences: Iterable[Sentence]) -> str | None:
    """Find the legacy login challenge (``=ret=<hex>``) on a ``!done`` reply."""
    for sentence in sentences:
        if sentence.tag != ReplyTag.DONE.value:
            continue
        challenge = sentence.get("ret")
        if challenge:
            return challenge
    return None
