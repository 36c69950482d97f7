# apricot

A small BitTorrent client library and command-line tool. It reads `.torrent`
metainfo files, computes info hashes, asks HTTP trackers for peers, and
exchanges handshakes and basic messages over the peer wire protocol.

No third-party packages are needed.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
apricot info <file.torrent>     # announce URL, name, files, piece length, first piece hashes, info hash
apricot pieces <file.torrent>   # every piece's SHA-1 hash, one per line, in hex
apricot peers <file.torrent>    # announce to the tracker and list the peers it returns
```

Running `apricot` with no arguments prints the name, version and usage and
exits with status 1; an unknown subcommand or a missing file name also exits
with status 1. A file that is missing or cannot be parsed ends the command
with an error message.

Sizes are shown in decimal units with two decimals (`1.00 KB` is 1000 bytes).
`info` prints at most the first two piece hashes, followed by `(...)` when
the torrent has more than three pieces.

`peers` announces on port 6881 with a freshly made peer ID, asks for a compact
peer list, and reports the single-file length as the bytes left. A
`failure reason` from the tracker is printed as `tracker returned error: ...`.

## Library

### Bencode

```python
from apricot import bencode

bencode.encode({"spam": ["a", "b"], "n": 3})
# b'd1:ni3e4:spaml1:a1:bee'

bencode.decode(b"d3:cow3:moo4:spam4:eggse")
# [{'cow': b'moo', 'spam': b'eggs'}]
```

`encode` accepts `str`, `bytes`, `int`, lists, tuples and mappings, writes
dictionary keys in sorted order and returns `bytes`. `decode` accepts `bytes`
or `str` and returns a list of every top-level value it finds: strings come
back as `bytes`, dictionary keys as `str`. Whitespace between tokens is
tolerated. Malformed input, or a value that cannot be encoded, raises
`bencode.BencodeError` (a `ValueError`).

The lower-level `parse_string`, `parse_integer`, `parse_list`,
`parse_dictionary` and `parse_token` functions work on an
`apricot.scanner.Scanner` positioned over the input.

### Metainfo and trackers

```python
from apricot import bencode
from apricot.cli import VERSION, make_peer_id
from apricot.metainfo import Torrent, TrackerRequest

with open("example.torrent", "rb") as fh:
    meta = bencode.decode(fh.read())[0]

torrent = Torrent.from_dict(meta)
print(torrent.announce, torrent.info.name, torrent.info.total_length())
print(torrent.info.hash().hex())

for piece in torrent.info.piece_hashes():  # 20-byte SHA-1 digests
    ...

request = TrackerRequest(
    info_hash=torrent.info.hash(),
    peer_id=make_peer_id(VERSION),
    port=6881,
    left=torrent.info.total_length(),
    compact=1,
)
print(torrent.announce_url(request))
response = torrent.get_peers(request)
print(response.interval)
for peer in response.peers:
    print(peer.ip, peer.port, peer.peer_id.hex())
```

`parse_tracker_response` parses a tracker's bencoded answer directly, and
`compact_to_peer_list` decodes the compact (6 bytes per peer) peer format.
A tracker that answers with a `failure reason` raises `TrackerFailure`; other
problems raise `TrackerError`. Only `http` and `https` announce URLs are
supported.

### Peer wire protocol

```python
from apricot.peer import Message, MessageId, PeerClient, Request

with PeerClient(make_peer_id(VERSION), torrent) as client:
    client.handshake(peer)
    client.send_message(peer, Message(id=MessageId.INTERESTED))
    message = client.read_message(peer)
    if message.id is MessageId.BITFIELD and message.bitfield.has_piece(0):
        client.send_message(
            peer,
            Message(id=MessageId.REQUEST, request=Request(index=0, begin=0, length=16384)),
        )
```

`handshake` connects, sends the handshake and checks the peer's info hash
(and its peer ID, when the tracker gave one). `read_message` returns
keep-alives, choke/unchoke/interested/not-interested, have, bitfield,
request, piece and cancel messages; unknown ids come back with
`generic=True` and the raw payload. Leaving the `with` block, or calling
`close()`, closes every connection. Errors on a connection raise `PeerError`;
`read_exact` raises `EOFError` when a stream ends early.

## What it does not do

apricot does not download or seed torrents: it does not schedule piece
requests, verify or store downloaded data, or accept incoming connections.
`send_message` can send only keep-alive, choke, unchoke, interested,
not-interested and request messages. UDP and WebSocket trackers are not
supported.