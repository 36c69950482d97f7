"""The TCP peer wire protocol: handshakes and length-prefixed messages."""

from __future__ import annotations

import enum
import socket
import struct
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import BinaryIO, Union

from .metainfo import Torrent, TrackerPeer

PROTOCOL = "BitTorrent protocol"
_HASH_SIZE = 20
_RESERVED_SIZE = 8
_KEEP_ALIVE = b"\x00\x00\x00\x00"

Stream = Union[socket.socket, BinaryIO]


class MessageId(enum.IntEnum):
    """Identifiers of the peer messages."""

    CHOKE = 0
    UNCHOKE = 1
    INTERESTED = 2
    NOT_INTERESTED = 3
    HAVE = 4
    BITFIELD = 5
    REQUEST = 6
    PIECE = 7
    CANCEL = 8


_STATE_MESSAGES = frozenset(
    {MessageId.CHOKE, MessageId.UNCHOKE, MessageId.INTERESTED, MessageId.NOT_INTERESTED}
)


class PeerError(Exception):
    """Raised when talking to a peer fails or the peer misbehaves."""


@dataclass
class BitField:
    """The pieces a peer reports having, one bit per piece, high bit first."""

    field: bytes = b""
    length: int = 0

    def has_piece(self, index: int) -> bool:
        """Report whether the piece at ``index`` is marked in the bit field."""
        if index < 0 or index >= self.length:
            return False
        position, offset = divmod(index, 8)
        if position >= len(self.field):
            return False
        return bool(self.field[position] & (1 << (7 - offset)))


@dataclass
class Request:
    """A request (or cancel) for a block within a piece."""

    index: int = 0
    begin: int = 0
    length: int = 0


@dataclass
class Block:
    """A block of data from within a piece."""

    index: int = 0
    begin: int = 0
    block: bytes = b""


@dataclass
class Message:
    """A message exchanged with a peer.

    When ``keep_alive`` is true every other field is ignored. When ``generic``
    is true only ``id`` and ``contents`` are meaningful.
    """

    id: int = MessageId.CHOKE
    keep_alive: bool = False
    generic: bool = False
    contents: bytes = b""
    piece_index: int = 0
    bitfield: BitField = field(default_factory=BitField)
    request: Request = field(default_factory=Request)
    block: Block = field(default_factory=Block)


def _as_bytes(value: str | bytes) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return bytes(value)


@dataclass
class Handshake:
    """The opening message sent by both sides of a peer connection."""

    info_hash: bytes
    peer_id: str | bytes
    protocol: str = PROTOCOL
    reserved: bytes = bytes(_RESERVED_SIZE)

    def serialized(self) -> bytes:
        """Return the handshake as it goes over the wire."""
        protocol = self.protocol.encode("ascii")
        reserved = bytes(self.reserved).ljust(_RESERVED_SIZE, b"\x00")[:_RESERVED_SIZE]
        return (
            bytes([len(protocol)])
            + protocol
            + reserved
            + bytes(self.info_hash)
            + _as_bytes(self.peer_id)
        )


def read_exact(n: int, stream: Stream) -> bytes:
    """Read exactly ``n`` bytes from a socket or binary stream.

    Raises EOFError when the stream ends before ``n`` bytes arrive.
    """
    if n < 0:
        raise ValueError(f"cannot read a negative number of bytes: {n}")
    reader = stream.recv if isinstance(stream, socket.socket) else stream.read
    buffer = bytearray()
    while len(buffer) < n:
        chunk = reader(n - len(buffer))
        if not chunk:
            raise EOFError(f"expected {n} byte(s), got {len(buffer)}")
        buffer += chunk
    return bytes(buffer)


def _uint32s(payload: bytes, count: int) -> tuple[int, ...]:
    size = 4 * count
    if len(payload) < size:
        raise PeerError(f"message payload too short: {len(payload)} byte(s)")
    return struct.unpack(f">{count}I", payload[:size])


@dataclass
class PeerClient:
    """Holds connections to peers for one torrent."""

    peer_id: str | bytes
    metainfo: Torrent
    connections: dict[TrackerPeer, socket.socket] = field(default_factory=dict)
    connect: Callable[[tuple[str, int]], socket.socket] = socket.create_connection

    def __enter__(self) -> PeerClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def handshake(self, peer: TrackerPeer) -> socket.socket:
        """Connect to ``peer``, exchange handshakes and keep the connection."""
        info_hash = self.metainfo.info.hash()
        try:
            conn = self.connect((peer.ip, peer.port))
        except OSError as exc:
            raise PeerError(f"could not connect to {peer.ip}:{peer.port}: {exc}") from exc

        try:
            self._exchange_handshake(conn, peer, info_hash)
        except BaseException:
            conn.close()
            raise

        self.connections[peer] = conn
        return conn

    def _exchange_handshake(
        self, conn: socket.socket, peer: TrackerPeer, info_hash: bytes
    ) -> None:
        ours = Handshake(info_hash=info_hash, peer_id=self.peer_id)
        try:
            conn.sendall(ours.serialized())
        except OSError as exc:
            raise PeerError(f"could not send handshake message: {exc}") from exc

        def read(n: int, what: str) -> bytes:
            try:
                return read_exact(n, conn)
            except (EOFError, OSError) as exc:
                raise PeerError(f"could not read {what}: {exc}") from exc

        protocol_length = read(1, "peer handshake")[0]
        read(protocol_length, "peer handshake protocol")
        read(_RESERVED_SIZE, "reserved bytes")

        if read(_HASH_SIZE, "info hash") != info_hash:
            raise PeerError("ending due to info hash mismatch")

        sent_peer_id = read(_HASH_SIZE, "peer id")
        if peer.peer_id and sent_peer_id != peer.peer_id:
            raise PeerError("ending due to tracker peer id mismatch")

    def _connection(self, peer: TrackerPeer) -> socket.socket:
        try:
            return self.connections[peer]
        except KeyError:
            raise PeerError("peer does not have an active connection") from None

    def read_message(self, peer: TrackerPeer) -> Message:
        """Wait for the next message from ``peer`` and return it."""
        conn = self._connection(peer)

        try:
            (length,) = struct.unpack(">I", read_exact(4, conn))
        except (EOFError, OSError) as exc:
            raise PeerError(f"could not read message length: {exc}") from exc
        if length == 0:
            return Message(keep_alive=True)

        try:
            data = read_exact(length, conn)
        except (EOFError, OSError) as exc:
            raise PeerError(f"could not read message: {exc}") from exc

        raw_id, payload = data[0], data[1:]
        try:
            msg_id = MessageId(raw_id)
        except ValueError:
            return Message(id=raw_id, generic=True, contents=payload)

        if msg_id in _STATE_MESSAGES:
            return Message(id=msg_id)
        if msg_id is MessageId.HAVE:
            (index,) = _uint32s(payload, 1)
            return Message(id=msg_id, piece_index=index)
        if msg_id is MessageId.BITFIELD:
            pieces = len(self.metainfo.info.piece_hashes())
            return Message(id=msg_id, bitfield=BitField(field=payload, length=pieces))
        if msg_id in (MessageId.REQUEST, MessageId.CANCEL):
            index, begin, size = _uint32s(payload, 3)
            return Message(id=msg_id, request=Request(index=index, begin=begin, length=size))
        # The only id left is PIECE.
        index, begin = _uint32s(payload, 2)
        return Message(id=msg_id, block=Block(index=index, begin=begin, block=payload[8:]))

    def send_message(self, peer: TrackerPeer, message: Message) -> None:
        """Send ``message`` to ``peer``."""
        conn = self._connection(peer)

        if message.keep_alive:
            data, what = _KEEP_ALIVE, "keep alive"
        elif message.id in _STATE_MESSAGES:
            data, what = struct.pack(">IB", 1, message.id), "message"
        elif message.id == MessageId.REQUEST:
            body = struct.pack(
                ">B3I",
                message.id,
                message.request.index,
                message.request.begin,
                message.request.length,
            )
            data, what = struct.pack(">I", len(body)) + body, "request message"
        else:
            raise PeerError(f"no handler for message {message!r}")

        try:
            conn.sendall(data)
        except OSError as exc:
            raise PeerError(f"could not send {what}: {exc}") from exc

    def close(self) -> None:
        """Close every open peer connection."""
        for conn in self.connections.values():
            conn.close()
        self.connections.clear()