"""Torrent metainfo and the HTTP tracker protocol."""

from __future__ import annotations

import enum
import hashlib
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any

from .bencode import BencodeError, decode, encode

PIECE_HASH_SIZE = 20
_COMPACT_PEER_SIZE = 6


def _text(value: Any, what: str) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", "surrogateescape")
    if isinstance(value, str):
        return value
    raise ValueError(f"invalid {what}: {value!r}")


def _raw(value: Any, what: str) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    raise ValueError(f"invalid {what}: {value!r}")


def _integer(value: Any, what: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ValueError(f"invalid {what}: {value!r}")


@dataclass
class InfoFile:
    """One file of a multi-file torrent."""

    length: int
    path: list[str]


@dataclass
class Info:
    """The info section describing the files of a torrent."""

    name: str
    piece_length: int
    pieces: bytes
    length: int = 0
    files: list[InfoFile] = field(default_factory=list)

    def piece_hashes(self) -> list[bytes]:
        """Return the 20-byte SHA1 hash of every piece."""
        whole = len(self.pieces) - len(self.pieces) % PIECE_HASH_SIZE
        return [
            self.pieces[start : start + PIECE_HASH_SIZE]
            for start in range(0, whole, PIECE_HASH_SIZE)
        ]

    def total_length(self) -> int:
        """Return the total number of bytes in the torrent."""
        if not self.files:
            return self.length
        return sum(item.length for item in self.files)

    def bencodable(self) -> dict[str, Any]:
        """Return the info section as a value ready for bencoding."""
        contents: dict[str, Any] = {
            "name": self.name,
            "piece length": self.piece_length,
            "pieces": self.pieces,
        }
        if self.files:
            contents["files"] = [
                {"length": item.length, "path": list(item.path)} for item in self.files
            ]
        else:
            contents["length"] = self.length
        return contents

    def hash(self) -> bytes:
        """Return the info hash: the SHA1 digest of the bencoded info section."""
        try:
            bencoded = encode(self.bencodable())
        except BencodeError as exc:
            raise BencodeError(f"could not bencode data for info hash: {exc}") from exc
        return hashlib.sha1(bencoded).digest()


class TrackerEvent(str, enum.Enum):
    """Announcements a downloader may make to a tracker."""

    STARTED = "started"
    COMPLETED = "completed"
    STOPPED = "stopped"
    EMPTY = "empty"


@dataclass
class TrackerRequest:
    """Parameters of an announce request to a tracker."""

    info_hash: bytes
    peer_id: str
    port: int
    uploaded: int = 0
    downloaded: int = 0
    left: int = 0
    ip: str = ""
    event: TrackerEvent | None = None
    compact: int = 0


@dataclass(frozen=True)
class TrackerPeer:
    """A peer announced by a tracker."""

    ip: str
    port: int
    peer_id: bytes = b""


@dataclass
class TrackerResponse:
    """The interval and peers returned by a tracker."""

    interval: int
    peers: list[TrackerPeer]


class TrackerError(Exception):
    """Raised when a tracker cannot be reached or its answer is unusable."""


class TrackerFailure(TrackerError):
    """Raised when the tracker answers with a failure reason."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def _parse_files(items: list[Any]) -> list[InfoFile]:
    files = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError(f"invalid file item: {item!r}")
        raw_path = item.get("path")
        if not isinstance(raw_path, list):
            raise ValueError(f"invalid path list: {raw_path!r}")
        path = [_text(part, "path part") for part in raw_path]
        files.append(InfoFile(length=_integer(item.get("length"), "file length"), path=path))
    return files


@dataclass
class Torrent:
    """A torrent's metainfo: its info section and tracker announce URL."""

    info: Info
    announce: str

    @classmethod
    def from_dict(cls, contents: dict[str, Any]) -> Torrent:
        """Build a torrent from a decoded metainfo dictionary."""
        info = contents.get("info")
        if not isinstance(info, dict):
            raise ValueError(f"invalid info dictionary: {info!r}")

        files: list[InfoFile] = []
        items = info.get("files")
        if isinstance(items, list):
            try:
                files = _parse_files(items)
            except ValueError as exc:
                raise ValueError(f"could not parse files list: {exc}") from exc

        length = info.get("length")
        if not isinstance(length, int) or isinstance(length, bool):
            length = 0

        return cls(
            info=Info(
                name=_text(info.get("name"), "name"),
                piece_length=_integer(info.get("piece length"), "piece length"),
                pieces=_raw(info.get("pieces"), "pieces"),
                length=length,
                files=files,
            ),
            announce=_text(contents.get("announce"), "announce url"),
        )

    def announce_url(self, request: TrackerRequest) -> str:
        """Return the tracker URL with the request's query parameters set."""
        try:
            parts = urllib.parse.urlsplit(self.announce)
        except ValueError as exc:
            raise TrackerError(f"could not parse url: {exc}") from exc

        if parts.scheme not in ("http", "https"):
            raise TrackerError(f"unsupported scheme: {parts.scheme}")

        query: dict[str, list[Any]] = urllib.parse.parse_qs(
            parts.query, keep_blank_values=True
        )
        query["info_hash"] = [request.info_hash]
        query["peer_id"] = [request.peer_id]
        query["left"] = [str(request.left)]
        query["downloaded"] = [str(request.downloaded)]
        query["uploaded"] = [str(request.uploaded)]
        if request.ip:
            query["ip"] = [request.ip]
        query["port"] = [str(request.port)]
        query["compact"] = [str(request.compact)]

        encoded = urllib.parse.urlencode(sorted(query.items()), doseq=True)
        return urllib.parse.urlunsplit(parts._replace(query=encoded))

    def get_peers(self, request: TrackerRequest) -> TrackerResponse:
        """Announce to the tracker over HTTP and return the peers it lists."""
        url = self.announce_url(request)
        try:
            with urllib.request.urlopen(url) as response:
                status = response.status
                reason = response.reason
                if status != 200:
                    raise TrackerError(f"request to tracker returned {status} {reason}")
                body = response.read()
        except urllib.error.HTTPError as exc:
            raise TrackerError(
                f"request to tracker returned {exc.code} {exc.reason}"
            ) from exc
        except (urllib.error.URLError, OSError) as exc:
            raise TrackerError(f"request to tracker failed: {exc}") from exc

        return parse_tracker_response(body)


def compact_to_peer_list(peers: bytes) -> list[TrackerPeer]:
    """Decode a compact peer list: 4 bytes of IPv4 address then a 2-byte port."""
    if len(peers) % _COMPACT_PEER_SIZE:
        raise TrackerError(
            f"compact peer list length {len(peers)} is not a multiple of {_COMPACT_PEER_SIZE}"
        )
    result = []
    for start in range(0, len(peers), _COMPACT_PEER_SIZE):
        chunk = peers[start : start + _COMPACT_PEER_SIZE]
        ip = ".".join(str(octet) for octet in chunk[:4])
        port = int.from_bytes(chunk[4:6], "big")
        result.append(TrackerPeer(ip=ip, port=port))
    return result


def _peer_from_dict(peer: Any) -> TrackerPeer:
    if not isinstance(peer, dict):
        raise TrackerError(f"peer of unexpected type: {peer!r}")
    try:
        return TrackerPeer(
            ip=_text(peer["ip"], "peer ip"),
            port=_integer(peer["port"], "peer port"),
            peer_id=_raw(peer["peer id"], "peer id"),
        )
    except (KeyError, ValueError) as exc:
        raise TrackerError(f"invalid peer entry: {exc}") from exc


def parse_tracker_response(data: bytes) -> TrackerResponse:
    """Parse a bencoded tracker announce response."""
    try:
        tokens = decode(data)
    except BencodeError as exc:
        raise TrackerError(f"could not decode response: {exc}") from exc

    response = tokens[0] if tokens else None
    if not isinstance(response, dict):
        raise TrackerError(f"unexpected response type: {response!r}")

    if "failure reason" in response:
        raise TrackerFailure(_text(response["failure reason"], "failure reason"))

    peers = response.get("peers")
    if isinstance(peers, list):
        peer_list = [_peer_from_dict(peer) for peer in peers]
    elif isinstance(peers, bytes):
        peer_list = compact_to_peer_list(peers)
    else:
        raise TrackerError(f"unknown peer list kind: {peers!r}")

    interval = response.get("interval")
    if not isinstance(interval, int) or isinstance(interval, bool):
        raise TrackerError(f"invalid interval: {interval!r}")

    return TrackerResponse(interval=interval, peers=peer_list)