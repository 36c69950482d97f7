"""Encoder and decoder for the bencode serialization format.

Strings decode to ``bytes``, integers to ``int``, lists to ``list`` and
dictionaries to ``dict`` with ``str`` keys. The decoder allows any amount of
whitespace between tokens.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from .scanner import Scanner

_DECIMAL = re.compile(rb"[+-]?[0-9]+")
_DIGITS = frozenset(b"0123456789")


class BencodeError(ValueError):
    """Raised when data cannot be decoded from or encoded to bencode."""


def _parse_decimal(text: bytes, what: str) -> int:
    if not _DECIMAL.fullmatch(text):
        raise BencodeError(f"{what} conversion errored: invalid syntax {text!r}")
    return int(text)


def _peek_byte(scanner: Scanner) -> int:
    try:
        return scanner.peek(1)[0]
    except EOFError:
        raise BencodeError("unexpected end of input") from None


def _key_text(key: bytes) -> str:
    return key.decode("utf-8", "surrogateescape")


def _key_bytes(key: Any) -> bytes:
    if isinstance(key, str):
        return key.encode("utf-8", "surrogateescape")
    if isinstance(key, (bytes, bytearray, memoryview)):
        return bytes(key)
    raise BencodeError(f"dictionary key must be a string, got {key!r}")


def parse_string(scanner: Scanner) -> bytes:
    """Parse a string of the form ``<length>:<bytes>``, e.g. ``4:spam``."""
    start = scanner.index
    digits, found = scanner.consume_until(b":")
    if not found:
        scanner.index = start
        raise BencodeError("expected length specification")

    length = _parse_decimal(digits, "length")
    if length < 0:
        raise BencodeError(f"negative string length {length}")

    scanner.advance(1)  # past the ':'
    try:
        return scanner.consume(length)
    except EOFError:
        raise BencodeError(
            f"string of length {length} runs past the end of input"
        ) from None


def parse_integer(scanner: Scanner) -> int:
    """Parse an integer of the form ``i<number>e``, e.g. ``i3e`` or ``i-3e``."""
    scanner.advance(1)  # past the 'i'
    digits, found = scanner.consume_until(b"e")
    if not found:
        raise BencodeError("expected end of integer")

    number = _parse_decimal(digits, "integer")
    scanner.advance(1)  # past the 'e'
    return number


def parse_list(scanner: Scanner) -> list[Any]:
    """Parse a list of the form ``l<items>e``."""
    items: list[Any] = []
    scanner.advance(1)  # past the 'l'

    while not scanner.ended():
        scanner.skip_whitespace()
        if _peek_byte(scanner) == ord("e"):
            scanner.advance(1)
            break
        items.append(parse_token(scanner))

    return items


def parse_dictionary(scanner: Scanner) -> dict[str, Any]:
    """Parse a dictionary of the form ``d<key><value>...e``."""
    dictionary: dict[str, Any] = {}
    scanner.advance(1)  # past the 'd'

    while not scanner.ended():
        scanner.skip_whitespace()
        if _peek_byte(scanner) == ord("e"):
            scanner.advance(1)
            break

        key = parse_token(scanner)
        if not isinstance(key, bytes):
            raise BencodeError(f"dictionary key must be a string, got {key!r}")

        scanner.skip_whitespace()
        dictionary[_key_text(key)] = parse_token(scanner)

    return dictionary


def parse_token(scanner: Scanner) -> Any:
    """Parse any bencode value at the scanner's position."""
    first = _peek_byte(scanner)

    if first in _DIGITS:
        return parse_string(scanner)
    if first == ord("i"):
        return parse_integer(scanner)
    if first == ord("l"):
        return parse_list(scanner)
    if first == ord("d"):
        return parse_dictionary(scanner)

    raise BencodeError(f"unexpected character {bytes([first])!r}")


def decode(contents: bytes | bytearray | str) -> list[Any]:
    """Decode every top-level value in ``contents`` and return them in order."""
    if isinstance(contents, str):
        contents = contents.encode("utf-8")
    scanner = Scanner(bytes(contents))

    tokens: list[Any] = []
    while not scanner.ended():
        scanner.skip_whitespace()
        tokens.append(parse_token(scanner))
    return tokens


def encode(value: Any) -> bytes:
    """Encode a string, bytes, integer, list or mapping as bencode."""
    if isinstance(value, str):
        value = value.encode("utf-8", "surrogateescape")

    if isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
        return b"%d:%s" % (len(data), data)

    if isinstance(value, bool):
        raise BencodeError(f"cannot serialize value {value!r}")

    if isinstance(value, int):
        return b"i%de" % value

    if isinstance(value, (list, tuple)):
        parts = []
        for item in value:
            try:
                parts.append(encode(item))
            except BencodeError as exc:
                raise BencodeError(f"error while encoding list item: {exc}") from exc
        return b"l" + b"".join(parts) + b"e"

    if isinstance(value, Mapping):
        pairs = sorted(
            ((_key_bytes(key), item) for key, item in value.items()),
            key=lambda pair: pair[0],
        )
        parts = []
        for key, item in pairs:
            parts.append(encode(key))
            try:
                parts.append(encode(item))
            except BencodeError as exc:
                raise BencodeError(f"error while encoding dict value: {exc}") from exc
        return b"d" + b"".join(parts) + b"e"

    raise BencodeError(f"cannot serialize value {value!r}")