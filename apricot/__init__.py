"""A small BitTorrent client: bencode, metainfo, HTTP trackers and peer messages."""

__version__ = "0.1.0"
__all__ = ["bencode", "cli", "metainfo", "peer", "scanner"]