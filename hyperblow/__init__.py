"""BitTorrent tracker messages, bencode, tracker clients and torrent source helpers."""

__version__ = "0.1.0"