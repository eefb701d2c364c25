"""Encoding and decoding of bencoded data."""

from __future__ import annotations

import re
from typing import Any, Union

Bencodable = Union[int, bytes, list, dict]

_INTEGER = re.compile(rb"-?(0|[1-9][0-9]*)")
_LENGTH = re.compile(rb"[0-9]+")


class BencodeError(ValueError):
    """Raised for malformed bencoded data or values that cannot be encoded."""


class _Decoder:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def _peek(self) -> int:
        if self.pos >= len(self.data):
            raise BencodeError("unexpected end of input")
        return self.data[self.pos]

    def value(self) -> Any:
        marker = self._peek()
        if marker == ord("i"):
            return self._integer()
        if marker == ord("l"):
            return self._list()
        if marker == ord("d"):
            return self._dict()
        if ord("0") <= marker <= ord("9"):
            return self._bytes()
        raise BencodeError(f"unexpected byte {chr(marker)!r} at offset {self.pos}")

    def _integer(self) -> int:
        end = self.data.find(b"e", self.pos + 1)
        if end < 0:
            raise BencodeError(f"unterminated integer at offset {self.pos}")
        text = self.data[self.pos + 1 : end]
        if not _INTEGER.fullmatch(text) or text == b"-0":
            raise BencodeError(f"invalid integer {text!r} at offset {self.pos}")
        self.pos = end + 1
        return int(text)

    def _bytes(self) -> bytes:
        colon = self.data.find(b":", self.pos)
        if colon < 0:
            raise BencodeError(f"missing ':' in string at offset {self.pos}")
        length_text = self.data[self.pos : colon]
        if not _LENGTH.fullmatch(length_text):
            raise BencodeError(f"invalid string length {length_text!r} at offset {self.pos}")
        start = colon + 1
        end = start + int(length_text)
        if end > len(self.data):
            raise BencodeError(f"string at offset {self.pos} runs past end of input")
        self.pos = end
        return self.data[start:end]

    def _list(self) -> list:
        self.pos += 1
        items = []
        while self._peek() != ord("e"):
            items.append(self.value())
        self.pos += 1
        return items

    def _dict(self) -> dict:
        self.pos += 1
        result: dict[bytes, Any] = {}
        while self._peek() != ord("e"):
            if not ord("0") <= self._peek() <= ord("9"):
                raise BencodeError(f"dictionary key at offset {self.pos} is not a byte string")
            key = self._bytes()
            result[key] = self.value()
        self.pos += 1
        return result


def decode(data: bytes) -> Any:
    """Decode one bencoded value; dictionary keys and strings come back as bytes."""
    decoder = _Decoder(bytes(data))
    value = decoder.value()
    if decoder.pos != len(decoder.data):
        raise BencodeError(f"trailing data at offset {decoder.pos}")
    return value


def _key_bytes(key: Any) -> bytes:
    if isinstance(key, str):
        return key.encode("utf-8")
    if isinstance(key, (bytes, bytearray)):
        return bytes(key)
    raise BencodeError(f"dictionary key {key!r} is not a string")


def _encode_into(value: Any, parts: list[bytes]) -> None:
    if isinstance(value, bool):
        raise BencodeError("booleans cannot be bencoded")
    if isinstance(value, int):
        parts.append(b"i%de" % value)
    elif isinstance(value, str):
        _encode_into(value.encode("utf-8"), parts)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        parts.append(b"%d:" % len(raw))
        parts.append(raw)
    elif isinstance(value, (list, tuple)):
        parts.append(b"l")
        for item in value:
            _encode_into(item, parts)
        parts.append(b"e")
    elif isinstance(value, dict):
        entries = sorted((_key_bytes(key), item) for key, item in value.items())
        parts.append(b"d")
        for key, item in entries:
            _encode_into(key, parts)
            _encode_into(item, parts)
        parts.append(b"e")
    else:
        raise BencodeError(f"cannot bencode value of type {type(value).__name__}")


def encode(value: Any) -> bytes:
    """Bencode ints, strings, bytes, lists and dicts; dict keys are sorted."""
    parts: list[bytes] = []
    _encode_into(value, parts)
    return b"".join(parts)