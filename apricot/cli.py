"""Command-line front end: inspect torrent files and ask trackers for peers."""

from __future__ import annotations

import json
import random
import sys
from dataclasses import dataclass
from pathlib import Path

from .bencode import BencodeError, decode
from .metainfo import Torrent, TrackerError, TrackerFailure, TrackerRequest

NAME = "Apricot"
PROG = "apricot"
STEP_SIZE = 1000
UNITS = ("B", "KB", "MB", "GB", "TB", "PB")
PEER_ID_LENGTH = 20
DEFAULT_PORT = 6881
SUBCOMMANDS = ("info", "peers", "pieces")


@dataclass(frozen=True)
class Version:
    """A MAJOR.MINOR.PATCH version number."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


VERSION = Version(0, 1, 0)


def human_bytes(size: int) -> str:
    """Return ``size`` bytes as a decimal-unit string such as ``1.00 KB``."""
    number = float(size)
    unit = UNITS[0]
    for unit in UNITS:
        if number < STEP_SIZE:
            break
        number /= STEP_SIZE
    return f"{number:.2f} {unit}"


def rand_int_string(n: int) -> str:
    """Return a string of ``n`` random binary digits."""
    return "".join(str(random.randrange(2)) for _ in range(n))


def make_peer_id(version: Version) -> str:
    """Return a 20-character Azureus-style peer ID for this client."""
    ident = f"-PI{version.major}{version.minor:02d}{version.patch}-"
    return ident + rand_int_string(PEER_ID_LENGTH - len(ident))


def _fatal(message: str) -> SystemExit:
    return SystemExit(message)


def open_torrent(filename: str) -> Torrent:
    """Read and parse a torrent file, exiting with a message on failure."""
    try:
        contents = Path(filename).read_bytes()
    except FileNotFoundError:
        raise _fatal(f"The file {json.dumps(filename)} does not exist.") from None
    except OSError as exc:
        raise _fatal(str(exc)) from exc

    try:
        tokens = decode(contents)
    except BencodeError as exc:
        raise _fatal(f"failed to decode torrent file: {exc}") from exc

    metainfo = tokens[0] if tokens else None
    if not isinstance(metainfo, dict):
        raise _fatal("failed to read torrent file: expected meta info dictionary.")

    try:
        return Torrent.from_dict(metainfo)
    except ValueError as exc:
        raise _fatal(f"failed to read torrent file: {exc}") from exc


def show_info(filename: str) -> None:
    """Print a summary of a torrent file."""
    torrent = open_torrent(filename)
    info = torrent.info

    print("announce url:", torrent.announce)
    if info.files:
        print("dirname:", info.name)
        print(f"files [{len(info.files)}]:")
        for item in info.files:
            print(f"  {'/'.join(item.path)} [{human_bytes(item.length)}]")
    else:
        print("filename:", info.name)
        print("file length:", human_bytes(info.length))

    print("piece length:", human_bytes(info.piece_length))

    hashes = info.piece_hashes()
    print(f"pieces [{len(hashes)}]: ")
    for piece in hashes[:2]:
        print(f"  {piece.hex()}")
    if len(hashes) > 3:
        print("  (...)")

    try:
        digest = info.hash()
    except BencodeError as exc:
        raise _fatal(f"could not get info hash: {exc}") from exc
    print("info hash:", digest.hex())


def show_pieces(filename: str) -> None:
    """Print the hex SHA1 hash of every piece, one per line."""
    torrent = open_torrent(filename)
    for piece in torrent.info.piece_hashes():
        print(piece.hex())


def show_peers(filename: str) -> None:
    """Ask the torrent's tracker for peers and print them."""
    torrent = open_torrent(filename)

    try:
        info_hash = torrent.info.hash()
    except BencodeError as exc:
        raise _fatal(f"failed to generate info hash: {exc}") from exc

    request = TrackerRequest(
        info_hash=info_hash,
        peer_id=make_peer_id(VERSION),
        port=DEFAULT_PORT,
        uploaded=0,
        downloaded=0,
        left=torrent.info.length,
        compact=1,
    )

    try:
        response = torrent.get_peers(request)
    except TrackerFailure as exc:
        raise _fatal(f"tracker returned error: {exc.message}") from exc
    except TrackerError as exc:
        raise _fatal(f"could not get peers: {exc}") from exc

    print(f"request interval: {response.interval} seconds")

    if not response.peers:
        print("no peers")
        return

    for number, peer in enumerate(response.peers, start=1):
        print("peer", number)
        print("  ip:     ", peer.ip)
        print("  port:   ", peer.port)
        if peer.peer_id:
            print(f"  peer id: {peer.peer_id.hex()}")


_COMMANDS = {"info": show_info, "pieces": show_pieces, "peers": show_peers}


def main(argv: list[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)

    if not args:
        print(f"{NAME} {VERSION}")
        print(f"usage: {PROG} {{{','.join(SUBCOMMANDS)}}} <options>")
        return 1

    command = args[0]
    handler = _COMMANDS.get(command)
    if handler is None:
        print(f"invalid subcommand {json.dumps(command)}")
        print(f"subcommands: {', '.join(SUBCOMMANDS)}")
        return 1

    if len(args) < 2:
        print(f"usage: {PROG} {command} <filename>", file=sys.stderr)
        return 1

    handler(args[1])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())