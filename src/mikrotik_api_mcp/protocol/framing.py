"""Word and sentence framing for the RouterOS API byte stream.

Sentence layout::

    +--------+------------+--------+------------+-----+------------+
    | Length | Word bytes | Length | Word bytes | ... | 0x00       |
    | 1-5 B  | UTF-8      | 1-5 B  | UTF-8      |     | terminator |
    +--------+------------+--------+------------+-----+------------+

Length prefix (the leading byte's high bits give the width)::

    0x00000000 - 0x0000007F   1 byte   0xxxxxxx
    0x00000080 - 0x00003FFF   2 bytes  10xxxxxx xxxxxxxx
    0x00004000 - 0x001FFFFF   3 bytes  110xxxxx xxxxxxxx xxxxxxxx
    0x00200000 - 0x0FFFFFFF   4 bytes  1110xxxx xxxxxxxx xxxxxxxx xxxxxxxx
    0x10000000 - 0xFFFFFFFF   5 bytes  0xF0 followed by 4 raw bytes

A zero-length word ends a sentence. Leading bytes 0xF1-0xFF are reserved
control bytes and never appear in a well-formed stream.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ..errors import ProtocolError

SENTENCE_TERMINATOR = b"\x00"
MAX_WORD_LENGTH = 0xFFFFFFFF


@dataclass
class Sentence:
    """A decoded sentence: the tag followed by its attribute words."""

    words: list[str] = field(default_factory=list)

    @property
    def tag(self) -> str:
        return self.words[0] if self.words else ""

    @property
    def attributes(self) -> dict[str, str]:
        """``=key=value`` words after the tag, as a dict."""
        attrs: dict[str, str] = {}
        for word in self.words[1:]:
            if not word.startswith("="):
                continue
            key, _, value = word[1:].partition("=")
            attrs[key] = value
        return attrs

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.attributes.get(key, default)

    def __len__(self) -> int:
        return len(self.words)

    def __repr__(self) -> str:
        return f"Sentence({' '.join(self.words) or '(empty)'})"


def encode_length(length: int) -> bytes:
    """Encode a word length as a 1-5 byte prefix."""
    if length < 0:
        raise ValueError(f"Word length must be non-negative, got {length}")
    if length > MAX_WORD_LENGTH:
        raise ValueError(f"Word length exceeds 32 bits: {length}")
    if length < 0x80:
        return bytes([length])
    if length < 0x4000:
        return (length | 0x8000).to_bytes(2, "big")
    if length < 0x200000:
        return (length | 0xC00000).to_bytes(3, "big")
    if length < 0x10000000:
        return (length | 0xE0000000).to_bytes(4, "big")
    return b"\xF0" + length.to_bytes(4, "big")


def decode_length(data: bytes, offset: int = 0) -> tuple[int, int] | None:
    """Decode a length prefix starting at ``offset``.

    Args:
        data: Buffer holding the prefix.
        offset: Index of the prefix's leading byte.

    Returns:
        ``(length, bytes_used)``, or ``None`` if the buffer ends before the
        prefix is complete.

    Raises:
        ProtocolError: If the leading byte is a reserved control byte.
    """
    if offset >= len(data):
        return None

    first = data[offset]
    if first < 0x80:
        return first, 1
    if first < 0xC0:
        width, value = 2, first & 0x3F
    elif first < 0xE0:
        width, value = 3, first & 0x1F
    elif first < 0xF0:
        width, value = 4, first & 0x0F
    elif first == 0xF0:
        width, value = 5, 0
    else:
        raise ProtocolError(f"Reserved control byte 0x{first:02X} in length prefix")

    if offset + width > len(data):
        return None
    for b in data[offset + 1 : offset + width]:
        value = (value << 8) | b
    return value, width


def encode_word(word: str) -> bytes:
    """Encode one word as length prefix + UTF-8 bytes."""
    raw = word.encode("utf-8")
    return encode_length(len(raw)) + raw


def build_sentence(words: Iterable[str]) -> bytes:
    """Encode a sentence, appending the zero-length terminator."""
    return b"".join(encode_word(w) for w in words) + SENTENCE_TERMINATOR


def parse_sentences(
    data: bytes, partial: list[str] | None = None
) -> tuple[list[Sentence], bytes, list[str]]:
    """Split a byte stream into complete sentences.

    Args:
        data: Bytes not yet decoded.
        partial: Words already decoded for a sentence whose terminator had
            not arrived yet, as returned by a previous call.

    Returns:
        ``(sentences, remaining, partial)``. ``remaining`` starts at the
        first length prefix or word payload that could not be completed;
        ``partial`` holds the words of the unterminated sentence.
    """
    sentences: list[Sentence] = []
    words = list(partial) if partial else []
    offset = 0

    while offset < len(data):
        decoded = decode_length(data, offset)
        if decoded is None:
            break
        length, used = decoded

        if length == 0:
            offset += used
            if words:
                sentences.append(Sentence(words))
            words = []
            continue

        end = offset + used + length
        if end > len(data):
            break
        words.append(data[offset + used : end].decode("utf-8", errors="replace"))
        offset = end

    return sentences, bytes(data[offset:]), words


class SentenceBuffer:
    """Reassembly buffer for bytes read from one connection.

    Usage::

        buf = SentenceBuffer()
        for sentence in buf.feed(sock.recv(4096)):
            ...
    """

    def __init__(self) -> None:
        self._data = bytearray()
        self._words: list[str] = []

    @property
    def pending(self) -> int:
        """Number of undecoded bytes retained for the next feed."""
        return len(self._data)

    @property
    def in_progress(self) -> bool:
        """True while a partially received sentence is buffered."""
        return bool(self._data or self._words)

    def feed(self, chunk: bytes) -> list[Sentence]:
        """Append ``chunk`` and return every sentence it completes."""
        self._data.extend(chunk)
        sentences, remaining, self._words = parse_sentences(
            bytes(self._data), self._words
        )
        self._data = bytearray(remaining)
        return sentences

    def clear(self) -> None:
        self._data.clear()
        self._words = []
