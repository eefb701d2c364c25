"""A single BitTorrent tracker: its address, state and announce exchanges."""

from __future__ import annotations

import enum
import ipaddress
import logging
import random
import socket
import struct
import time
from urllib.parse import urlsplit

from hyperblow.http_tracker import TrackerError, fetch_announce
from hyperblow.udp_messages import (
    ACTION_ANNOUNCE,
    ACTION_CONNECT,
    AnnounceRequest,
    AnnounceResponse,
    ConnectRequest,
    ConnectResponse,
    MessageError,
    PeerAddress,
)

log = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}
_RECEIVE_SIZE = 65535


class TrackerProtocol(enum.Enum):
    """Transport used to talk to a tracker."""

    UDP = "udp"
    HTTP = "http"


class TrackerState(enum.Enum):
    """The states a tracker passes through while being contacted."""

    IDLE = "Idle"
    DNS_RESOLVING = "DNS Resolving"
    DNS_UNRESOLVED = "DNSUnresolved"
    DNS_RESOLVED = "DNS Resolved"
    WAITING_FOR_CONNECT_RESPONSE = "Waiting for Connect Response"
    WAITING_FOR_ANNOUNCE_RESPONSE = "Waiting for Announce Response"
    WAITING_FOR_SCRAPE_RESPONSE = "Waiting for Scrape Response"

    def describe(self, since: float | None = None) -> str:
        """Human readable state; ``since`` is the monotonic time resolution failed."""
        if self is TrackerState.DNS_UNRESOLVED:
            elapsed = 0 if since is None else max(int(time.monotonic() - since), 0)
            return f"DNSUnresolved ({elapsed}/30 sec)"
        return self.value

    def __str__(self) -> str:
        return self.describe()


def _to_peer_address(sockaddr: tuple) -> PeerAddress:
    return PeerAddress(ipaddress.ip_address(sockaddr[0]), sockaddr[1])


class Tracker:
    """A tracker URL together with the requests and responses exchanged with it."""

    def __init__(self, address: str) -> None:
        parts = urlsplit(address)
        if not parts.scheme or not parts.netloc or not parts.hostname:
            raise TrackerError(f"invalid tracker URL: {address!r}")
        try:
            port = parts.port
        except ValueError as error:
            raise TrackerError(f"invalid tracker URL: {address!r}") from error

        scheme = parts.scheme.lower()
        if scheme == "udp":
            self.protocol = TrackerProtocol.UDP
        elif scheme in ("http", "https"):
            self.protocol = TrackerProtocol.HTTP
        else:
            raise TrackerError(f"unsupported tracker protocol: {scheme}")

        self.address = address
        self.host: str = parts.hostname
        self.port: int | None = port if port is not None else _DEFAULT_PORTS.get(scheme)
        self.socket_addrs: list[PeerAddress] = []
        self.state = TrackerState.IDLE
        self.retry_time: float | None = None
        self.connect_request: ConnectRequest | None = None
        self.connect_response: ConnectResponse | None = None
        self.announce_request: AnnounceRequest | None = None
        self.announce_response: AnnounceResponse | None = None

    def __repr__(self) -> str:
        return f"Tracker({self.address!r})"

    def is_udp(self) -> bool:
        return self.protocol is TrackerProtocol.UDP

    def is_http(self) -> bool:
        return self.protocol is TrackerProtocol.HTTP

    def _mark_unresolved(self) -> None:
        self.state = TrackerState.DNS_UNRESOLVED
        self.retry_time = time.monotonic()

    def resolve(self) -> bool:
        """Resolve the tracker's host into socket addresses; True on success."""
        self.state = TrackerState.DNS_RESOLVING
        log.debug("resolving tracker DNS for %s", self.address)
        addresses: list[PeerAddress] = []
        if self.port is not None:
            try:
                infos = socket.getaddrinfo(self.host, self.port)
            except (OSError, UnicodeError):
                infos = []
            for info in infos:
                try:
                    peer = _to_peer_address(info[4])
                except ValueError:
                    continue
                if peer not in addresses:
                    addresses.append(peer)

        if not addresses:
            self._mark_unresolved()
            log.warning("tracker DNS resolution failed for %s", self.address)
            return False

        self.socket_addrs = addresses
        self.state = TrackerState.DNS_RESOLVED
        log.info("tracker %s resolved to %d addresses", self.address, len(addresses))
        return True

    def is_equal_to(self, address: PeerAddress) -> bool:
        """True when ``address`` is one of the tracker's resolved addresses."""
        return address in self.socket_addrs

    def make_connect_request(self) -> bytes:
        """Create a fresh connect request, remember it and return its bytes."""
        request = ConnectRequest()
        data = request.to_bytes()
        self.connect_request = request
        return data

    def make_announce_request(
        self, info_hash: bytes, downloaded: int, total_length: int, port: int | None
    ) -> bytes:
        """Create an announce request from the stored connect response.

        Raises :class:`MessageError` when no connect response has been received
        or no port is given.
        """
        request = AnnounceRequest()
        if self.connect_response is not None:
            request.connection_id = self.connect_response.connection_id
            request.transaction_id = self.connect_response.transaction_id
            request.info_hash = bytes(info_hash)
            request.downloaded = downloaded
            request.uploaded = 0
            request.left = total_length - downloaded
            request.port = port
            request.key = random.randint(-(2**31), 2**31 - 1)
        data = request.to_bytes()
        self.announce_request = request
        return data

    def is_connect_response(self, data: bytes) -> bool:
        """True when ``data`` answers the stored connect request."""
        if len(data) < 16:
            return False
        action, transaction_id = struct.unpack_from(">ii", data)
        if action != ACTION_CONNECT:
            return False
        expected = self.connect_request.transaction_id if self.connect_request else 0
        return transaction_id == expected

    def is_announce_response(self, data: bytes) -> bool:
        """True when ``data`` answers the stored announce request."""
        if len(data) < 20:
            return False
        action, transaction_id = struct.unpack_from(">ii", data)
        if action != ACTION_ANNOUNCE:
            return False
        expected = 0
        if self.announce_request is not None and self.announce_request.transaction_id is not None:
            expected = self.announce_request.transaction_id
        return transaction_id == expected

    def handle_response(self, data: bytes) -> ConnectResponse | AnnounceResponse | None:
        """Recognise, parse and store a UDP response; None when it is not one."""
        if self.is_connect_response(data):
            try:
                response = ConnectResponse.from_bytes(data)
            except MessageError:
                return None
            self.connect_response = response
            return response
        if self.is_announce_response(data):
            try:
                announce = AnnounceResponse.from_bytes(data)
            except MessageError:
                return None
            self.announce_response = announce
            return announce
        return None

    def announce_http(
        self,
        info_hash: bytes,
        downloaded: int,
        total_length: int,
        port: int,
        timeout: float | None = 30.0,
    ) -> AnnounceResponse:
        """Announce to an HTTP tracker and return its response."""
        self.state = TrackerState.WAITING_FOR_ANNOUNCE_RESPONSE
        try:
            response = fetch_announce(
                self.address, info_hash, downloaded, total_length - downloaded, port, timeout
            )
        except TrackerError as error:
            self._mark_unresolved()
            log.warning("HTTP tracker %s announce failed: %s", self.address, error)
            raise
        self.announce_response = response
        self.state = TrackerState.DNS_RESOLVED
        return response

    def _receive(
        self, sock: socket.socket, deadline: float, expected: type, what: str
    ) -> ConnectResponse | AnnounceResponse:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TrackerError(f"UDP tracker {what} timed out")
            sock.settimeout(remaining)
            try:
                data, sender = sock.recvfrom(_RECEIVE_SIZE)
            except socket.timeout as error:
                raise TrackerError(f"UDP tracker {what} timed out") from error
            except OSError as error:
                raise TrackerError(f"UDP tracker {what} failed") from error
            try:
                origin = _to_peer_address(sender)
            except ValueError:
                continue
            if not self.is_equal_to(origin):
                continue
            response = self.handle_response(data)
            if isinstance(response, expected):
                return response

    def announce_udp(
        self,
        sock: socket.socket,
        info_hash: bytes,
        downloaded: int,
        total_length: int,
        port: int,
        timeout: float = 15.0,
    ) -> AnnounceResponse:
        """Run one connect and announce exchange with a UDP tracker over ``sock``."""
        if not self.socket_addrs:
            raise TrackerError("tracker has no resolved socket addresses")
        remote = self.socket_addrs[0]
        target = (str(remote.ip), remote.port)
        previous_timeout = sock.gettimeout()
        try:
            self.state = TrackerState.WAITING_FOR_CONNECT_RESPONSE
            try:
                sock.sendto(self.make_connect_request(), target)
            except OSError as error:
                raise TrackerError("could not send UDP connect request") from error
            log.debug("sent UDP connect request to %s", remote)
            self._receive(sock, time.monotonic() + timeout, ConnectResponse, "connect")

            self.state = TrackerState.WAITING_FOR_ANNOUNCE_RESPONSE
            request = self.make_announce_request(info_hash, downloaded, total_length, port)
            try:
                sock.sendto(request, target)
            except OSError as error:
                raise TrackerError("could not send UDP announce request") from error
            log.debug("sent UDP announce request to %s", remote)
            response = self._receive(
                sock, time.monotonic() + timeout, AnnounceResponse, "announce"
            )
        finally:
            sock.settimeout(previous_timeout)

        self.state = TrackerState.DNS_RESOLVED
        log.info(
            "UDP tracker %s announce returned %d peers (interval %d)",
            self.address,
            len(response.peers),
            response.interval,
        )
        return response