"""Binary messages of the UDP tracker protocol (BEP 15)."""

from __future__ import annotations

import ipaddress
import random
import struct
from dataclasses import dataclass, field
from typing import NamedTuple, Union

PEER_ID = b"-HBYxxx-QMAXYDGHQAHF"
PROTOCOL_ID = 0x41727101980

ACTION_CONNECT = 0
ACTION_ANNOUNCE = 1
ACTION_SCRAPE = 2
ACTION_ERROR = 3

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class MessageError(ValueError):
    """Raised when a message cannot be built or parsed."""


class PeerAddress(NamedTuple):
    """An IP address and port of a peer."""

    ip: IPAddress
    port: int

    def __str__(self) -> str:
        if self.ip.version == 6:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


def _random_i32() -> int:
    return random.randint(-(2**31), 2**31 - 1)


@dataclass
class ConnectRequest:
    """The 16-byte connect request."""

    protocol_id: int = PROTOCOL_ID
    action: int = ACTION_CONNECT
    transaction_id: int = field(default_factory=_random_i32)

    def to_bytes(self) -> bytes:
        return struct.pack(">qii", self.protocol_id, self.action, self.transaction_id)


@dataclass(frozen=True)
class ConnectResponse:
    """The tracker's answer to a connect request."""

    action: int
    transaction_id: int
    connection_id: int

    @classmethod
    def from_bytes(cls, data: bytes) -> ConnectResponse:
        if len(data) < 16:
            raise MessageError(f"connect response must be at least 16 bytes, got {len(data)}")
        action, transaction_id, connection_id = struct.unpack_from(">iiq", data)
        return cls(action, transaction_id, connection_id)


@dataclass
class AnnounceRequest:
    """The 98-byte announce request; unset required fields prevent serialisation."""

    connection_id: int | None = None
    transaction_id: int | None = None
    info_hash: bytes | None = None
    downloaded: int | None = None
    left: int | None = None
    uploaded: int | None = None
    port: int | None = None
    key: int | None = None
    action: int = ACTION_ANNOUNCE
    peer_id: bytes = PEER_ID
    event: int = 1
    ip_address: int = 0
    num_want: int = -1

    def to_bytes(self) -> bytes:
        required = {
            "connection_id": self.connection_id,
            "transaction_id": self.transaction_id,
            "info_hash": self.info_hash,
            "downloaded": self.downloaded,
            "left": self.left,
            "uploaded": self.uploaded,
            "port": self.port,
            "key": self.key,
        }
        missing = [name for name, value in required.items() if value is None]
        if missing:
            raise MessageError(f"announce request is missing: {', '.join(missing)}")
        return b"".join(
            (
                struct.pack(">qii", self.connection_id, self.action, self.transaction_id),
                bytes(self.info_hash),
                bytes(self.peer_id),
                struct.pack(
                    ">qqqiiiiH",
                    self.downloaded,
                    self.left,
                    self.uploaded,
                    self.event,
                    self.ip_address,
                    self.key,
                    self.num_want,
                    self.port & 0xFFFF,
                ),
            )
        )


@dataclass(frozen=True)
class AnnounceResponse:
    """The tracker's answer to an announce request."""

    action: int
    transaction_id: int
    interval: int
    leechers: int
    seeders: int
    peers: list[PeerAddress] = field(default_factory=list)

    @classmethod
    def from_bytes(cls, data: bytes) -> AnnounceResponse:
        if len(data) < 20:
            raise MessageError(f"announce response must be at least 20 bytes, got {len(data)}")
        payload = data[20:]
        if len(payload) % 6:
            raise MessageError(
                f"compact peer payload length must be a multiple of 6, got {len(payload)}"
            )
        action, transaction_id, interval, leechers, seeders = struct.unpack_from(">iiiii", data)
        peers = [
            PeerAddress(ipaddress.IPv4Address(ip), port)
            for ip, port in struct.iter_unpack(">4sH", payload)
        ]
        return cls(action, transaction_id, interval, leechers, seeders, peers)


@dataclass(frozen=True)
class ErrorResponse:
    """An error message sent by the tracker."""

    action: int
    transaction_id: int
    message: str

    @classmethod
    def from_bytes(cls, data: bytes) -> ErrorResponse:
        if len(data) < 8:
            raise MessageError(f"error response must be at least 8 bytes, got {len(data)}")
        action, transaction_id = struct.unpack_from(">ii", data)
        try:
            message = bytes(data[8:]).decode("utf-8")
        except UnicodeDecodeError as error:
            raise MessageError("error response message is not valid UTF-8") from error
        return cls(action, transaction_id, message)


@dataclass
class ScrapeRequest:
    """A scrape request for a single info hash."""

    connection_id: int | None = None
    transaction_id: int | None = None
    info_hash: bytes | None = None
    action: int = ACTION_SCRAPE

    def to_bytes(self) -> bytes:
        if self.connection_id is None or self.transaction_id is None or self.info_hash is None:
            raise MessageError("scrape request needs connection_id, transaction_id and info_hash")
        return struct.pack(">qii", self.connection_id, self.action, self.transaction_id) + bytes(
            self.info_hash
        )