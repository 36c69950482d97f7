"""A byte scanner used by the bencode decoder."""

from __future__ import annotations

from dataclasses import dataclass

# Bytes treated as whitespace: tab, line feed, vertical tab, form feed,
# carriage return, space, next line (0x85) and non-breaking space (0xA0).
WHITESPACE = frozenset(b"\t\n\v\f\r \x85\xa0")


@dataclass
class Scanner:
    """Walks forward through a byte string one position at a time."""

    contents: bytes
    index: int = 0

    def ended(self) -> bool:
        """Report whether the scanner has reached the end of its contents."""
        return self.index >= len(self.contents)

    def peek(self, n: int) -> bytes:
        """Return the next ``n`` bytes without advancing.

        Raises EOFError when fewer than ``n`` bytes remain.
        """
        if self.index + n - 1 >= len(self.contents):
            raise EOFError(f"cannot peek {n} byte(s) at offset {self.index}")
        return self.contents[self.index : self.index + n]

    def consume(self, n: int) -> bytes:
        """Return the next ``n`` bytes and advance past them.

        Raises EOFError when fewer than ``n`` bytes remain.
        """
        consumed = self.peek(n)
        if self.advance(n):
            return consumed
        return b""

    def advance(self, n: int) -> bool:
        """Skip ``n`` bytes; return whether the scanner moved."""
        if self.ended():
            return False
        self.index += n
        return True

    def skip_whitespace(self) -> None:
        """Skip every whitespace byte at the current position."""
        while not self.ended() and self.contents[self.index] in WHITESPACE:
            self.index += 1

    def consume_until(self, delimiter: bytes | int) -> tuple[bytes, bool]:
        """Consume bytes up to, but not including, ``delimiter``.

        Returns the consumed bytes and whether the delimiter was reached.
        When it is not reached, the rest of the contents is consumed.
        """
        if self.ended():
            return b"", False

        if isinstance(delimiter, int):
            delimiter = bytes([delimiter])
        if len(delimiter) != 1:
            raise ValueError("delimiter must be a single byte")

        position = self.contents.find(delimiter, self.index)
        if position < 0:
            accumulated = self.contents[self.index :]
            self.index = len(self.contents)
            return accumulated, False

        accumulated = self.contents[self.index : position]
        self.index = position
        return accumulated, True