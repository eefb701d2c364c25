"""Announcing to HTTP(S) trackers: URL building and response parsing."""

from __future__ import annotations

import ipaddress
import logging
import string
import struct
import urllib.error
import urllib.request
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from hyperblow.bencode import BencodeError, decode
from hyperblow.udp_messages import (
    ACTION_ANNOUNCE,
    PEER_ID,
    AnnounceResponse,
    PeerAddress,
)

log = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1800
NUM_WANT = 80

_UNRESERVED = frozenset((string.ascii_letters + string.digits).encode("ascii"))


class TrackerError(Exception):
    """Raised when an HTTP tracker announce cannot be made or understood."""


def _percent_encode(value: bytes) -> str:
    """Escape every byte that is not an ASCII letter or digit."""
    return "".join(chr(byte) if byte in _UNRESERVED else f"%{byte:02X}" for byte in value)


def build_announce_url(
    address: str, info_hash: bytes, downloaded: int, left: int, port: int
) -> str:
    """Return the announce URL for ``address`` carrying the given transfer state.

    Any query already present on the tracker address is kept in front of the
    announce parameters; a fragment is dropped.
    """
    parts = urlsplit(address)
    if not parts.scheme or not parts.netloc:
        raise TrackerError(f"invalid tracker URL: {address!r}")
    path = parts.path
    if not path and parts.scheme.lower() in ("http", "https"):
        path = "/"
    base = urlunsplit((parts.scheme, parts.netloc, path, "", ""))

    pairs = [
        ("info_hash", _percent_encode(bytes(info_hash))),
        ("peer_id", _percent_encode(PEER_ID)),
        ("port", str(port)),
        ("uploaded", "0"),
        ("downloaded", str(max(downloaded, 0))),
        ("left", str(max(left, 0))),
        ("compact", "1"),
        ("numwant", str(NUM_WANT)),
        ("event", "started"),
    ]
    query = "&".join(
        ([parts.query] if parts.query else []) + [f"{key}={value}" for key, value in pairs]
    )
    return f"{base}?{query}"


def parse_compact_ipv4_peers(data: bytes) -> list[PeerAddress]:
    """Parse a compact peer list of 4-byte addresses and 2-byte ports."""
    if len(data) % 6:
        raise TrackerError(
            f"compact IPv4 peer list length must be a multiple of 6, got {len(data)}"
        )
    return [
        PeerAddress(ipaddress.IPv4Address(ip), port)
        for ip, port in struct.iter_unpack(">4sH", bytes(data))
    ]


def parse_compact_ipv6_peers(data: bytes) -> list[PeerAddress]:
    """Parse a compact peer list of 16-byte addresses and 2-byte ports."""
    if len(data) % 18:
        raise TrackerError(
            f"compact IPv6 peer list length must be a multiple of 18, got {len(data)}"
        )
    return [
        PeerAddress(ipaddress.IPv6Address(ip), port)
        for ip, port in struct.iter_unpack(">16sH", bytes(data))
    ]


def _optional_int(response: dict[bytes, Any], key: bytes) -> int | None:
    value = response.get(key)
    if value is None:
        return None
    if not isinstance(value, int):
        raise TrackerError(f"tracker response field {key.decode()!r} is not an integer")
    return value


def _text(value: Any, what: str) -> str:
    if not isinstance(value, bytes):
        raise TrackerError(f"tracker response {what} is not a string")
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as error:
        raise TrackerError(f"tracker response {what} is not valid UTF-8") from error


def _dictionary_peer(entry: Any) -> PeerAddress:
    if not isinstance(entry, dict) or b"ip" not in entry or b"port" not in entry:
        raise TrackerError("tracker response peer entry needs 'ip' and 'port'")
    ip_text = _text(entry[b"ip"], "peer ip")
    port = entry[b"port"]
    if not isinstance(port, int) or not 0 <= port <= 0xFFFF:
        raise TrackerError(f"tracker response peer port is invalid: {port!r}")
    try:
        ip = ipaddress.ip_address(ip_text)
    except ValueError as error:
        raise TrackerError(f"invalid peer IP address in tracker response: {ip_text}") from error
    return PeerAddress(ip, port)


def parse_announce_response(data: bytes) -> AnnounceResponse:
    """Decode a bencoded announce response into an :class:`AnnounceResponse`."""
    try:
        response = decode(data)
    except BencodeError as error:
        raise TrackerError("tracker bencode response could not be decoded") from error
    if not isinstance(response, dict):
        raise TrackerError("tracker bencode response could not be decoded")

    interval = _optional_int(response, b"interval")
    complete = _optional_int(response, b"complete")
    incomplete = _optional_int(response, b"incomplete")

    failure = response.get(b"failure reason")
    if failure is not None:
        raise TrackerError(f"tracker returned failure: {_text(failure, 'failure reason')}")

    peers: list[PeerAddress] = []
    raw_peers = response.get(b"peers")
    if isinstance(raw_peers, bytes):
        peers.extend(parse_compact_ipv4_peers(raw_peers))
    elif isinstance(raw_peers, list):
        peers.extend(_dictionary_peer(entry) for entry in raw_peers)
    elif raw_peers is not None:
        raise TrackerError("tracker response 'peers' is neither a string nor a list")

    raw_peers6 = response.get(b"peers6", b"")
    if not isinstance(raw_peers6, bytes):
        raise TrackerError("tracker response 'peers6' is not a string")
    peers.extend(parse_compact_ipv6_peers(raw_peers6))

    return AnnounceResponse(
        action=ACTION_ANNOUNCE,
        transaction_id=0,
        interval=max(DEFAULT_INTERVAL if interval is None else interval, 1),
        leechers=max(incomplete or 0, 0),
        seeders=max(complete or 0, 0),
        peers=peers,
    )


def fetch_announce(
    address: str,
    info_hash: bytes,
    downloaded: int,
    left: int,
    port: int,
    timeout: float | None = 30.0,
) -> AnnounceResponse:
    """Send an announce GET request to an HTTP tracker and parse its answer."""
    url = build_announce_url(address, info_hash, downloaded, left, port)
    try:
        with urllib.request.urlopen(url, timeout=timeout) as reply:
            status = getattr(reply, "status", 200)
            if status >= 400:
                raise TrackerError(f"HTTP tracker request failed with status {status}")
            body = reply.read()
    except urllib.error.HTTPError as error:
        raise TrackerError(f"HTTP tracker request failed with status {error.code}") from error
    except (urllib.error.URLError, OSError, ValueError) as error:
        raise TrackerError("HTTP tracker request failed") from error

    response = parse_announce_response(body)
    log.info(
        "HTTP tracker %s announce returned %d peers (interval %d)",
        address,
        len(response.peers),
        response.interval,
    )
    return response