import http.server
import ipaddress
import socket
import struct
import threading
import time

import pytest

from hyperblow.http_tracker import TrackerError
from hyperblow.udp_messages import (
    PEER_ID,
    PROTOCOL_ID,
    AnnounceResponse,
    ConnectResponse,
    MessageError,
    PeerAddress,
)
from hyperblow.tracker import Tracker, TrackerProtocol, TrackerState

LOCAL_PEER = PeerAddress(ipaddress.IPv4Address("127.0.0.1"), 51413)


def _compact_body():
    peers = bytes([127, 0, 0, 1]) + struct.pack(">H", 51413)
    return b"d8:intervali30e5:peers" + str(len(peers)).encode() + b":" + peers + b"e"


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


@pytest.mark.parametrize(
    "address, protocol",
    [
        ("udp://tracker.example.com:6969/announce", TrackerProtocol.UDP),
        ("http://tracker.example.com/announce", TrackerProtocol.HTTP),
        ("https://tracker.example.com/announce", TrackerProtocol.HTTP),
    ],
)
def test_protocol_from_scheme(address, protocol):
    tracker = Tracker(address)
    assert tracker.protocol is protocol
    assert tracker.is_udp() == (protocol is TrackerProtocol.UDP)
    assert tracker.is_http() == (protocol is TrackerProtocol.HTTP)
    assert tracker.state is TrackerState.IDLE


def test_unsupported_protocol_is_rejected():
    with pytest.raises(TrackerError, match="unsupported tracker protocol: wss"):
        Tracker("wss://tracker.example.com/announce")


def test_invalid_url_is_rejected():
    with pytest.raises(TrackerError):
        Tracker("not a url")


def test_state_descriptions():
    assert TrackerState.IDLE.describe() == "Idle"
    assert str(TrackerState.DNS_RESOLVED) == "DNS Resolved"
    assert TrackerState.WAITING_FOR_CONNECT_RESPONSE.describe() == "Waiting for Connect Response"
    assert TrackerState.DNS_UNRESOLVED.describe(time.monotonic() - 5.5) == "DNSUnresolved (5/30 sec)"


def test_resolve_local_address():
    tracker = Tracker("udp://127.0.0.1:6969/announce")
    assert tracker.resolve() is True
    assert tracker.state is TrackerState.DNS_RESOLVED
    assert tracker.socket_addrs == [PeerAddress(ipaddress.IPv4Address("127.0.0.1"), 6969)]
    assert tracker.is_equal_to(PeerAddress(ipaddress.IPv4Address("127.0.0.1"), 6969))
    assert not tracker.is_equal_to(PeerAddress(ipaddress.IPv4Address("127.0.0.1"), 6970))


def test_resolve_without_port_fails():
    tracker = Tracker("udp://127.0.0.1/announce")
    assert tracker.resolve() is False
    assert tracker.state is TrackerState.DNS_UNRESOLVED
    assert tracker.retry_time is not None
    assert tracker.socket_addrs == []


def test_connect_request_is_stored_and_matched():
    tracker = Tracker("udp://127.0.0.1:6969")
    data = tracker.make_connect_request()
    assert len(data) == 16
    protocol_id, action, transaction_id = struct.unpack(">qii", data)
    assert protocol_id == PROTOCOL_ID
    assert action == 0
    assert transaction_id == tracker.connect_request.transaction_id

    reply = struct.pack(">iiq", 0, transaction_id, 77)
    assert tracker.is_connect_response(reply)
    assert not tracker.is_connect_response(struct.pack(">iiq", 0, transaction_id ^ 1, 77))
    assert not tracker.is_connect_response(struct.pack(">iiq", 1, transaction_id, 77))
    assert not tracker.is_connect_response(reply[:15])


def test_handle_connect_response_stores_it():
    tracker = Tracker("udp://127.0.0.1:6969")
    tracker.make_connect_request()
    tid = tracker.connect_request.transaction_id
    response = tracker.handle_response(struct.pack(">iiq", 0, tid, 0x1234))
    assert response == ConnectResponse(0, tid, 0x1234)
    assert tracker.connect_response == response


def test_handle_unknown_packet_returns_none():
    tracker = Tracker("udp://127.0.0.1:6969")
    tracker.make_connect_request()
    assert tracker.handle_response(struct.pack(">ii", 3, 5) + b"oops") is None
    assert tracker.connect_response is None


def test_announce_request_requires_connect_response():
    tracker = Tracker("udp://127.0.0.1:6969")
    with pytest.raises(MessageError):
        tracker.make_announce_request(b"\x03" * 20, 0, 100, 6881)
    assert tracker.announce_request is None


def test_announce_request_layout_and_matching():
    tracker = Tracker("udp://127.0.0.1:6969")
    tracker.make_connect_request()
    tid = tracker.connect_request.transaction_id
    tracker.handle_response(struct.pack(">iiq", 0, tid, 99))

    data = tracker.make_announce_request(b"\x03" * 20, 25, 100, 6881)
    assert len(data) == 98
    connection_id, action, announce_tid = struct.unpack_from(">qii", data)
    assert (connection_id, action, announce_tid) == (99, 1, tid)
    assert data[16:36] == b"\x03" * 20
    assert data[36:56] == PEER_ID
    downloaded, left, uploaded, event, ip, _key, num_want, port = struct.unpack_from(
        ">qqqiiiiH", data, 56
    )
    assert (downloaded, left, uploaded, event, ip, num_want, port) == (25, 75, 0, 1, 0, -1, 6881)

    reply = struct.pack(">iiiii", 1, tid, 1800, 3, 5) + bytes([127, 0, 0, 1]) + struct.pack(">H", 51413)
    assert tracker.is_announce_response(reply)
    response = tracker.handle_response(reply)
    assert response.peers == [LOCAL_PEER]
    assert tracker.announce_response == response


def test_http_announce_reaches_tracker_and_returns_peers():
    paths = []
    body = _compact_body()

    class Handler(http.server.BaseHTTPRequestHandler):
        def do_GET(self):
            paths.append(self.path)
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    server = http.server.HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.handle_request)
    thread.start()
    try:
        tracker = Tracker(f"http://127.0.0.1:{server.server_address[1]}/announce")
        response = tracker.announce_http(b"\x03" * 20, 0, 1024, 6881, timeout=5)
    finally:
        thread.join(5)
        server.server_close()

    assert response.peers == [LOCAL_PEER]
    assert tracker.announce_response == response
    assert tracker.state is TrackerState.DNS_RESOLVED
    assert paths[0].startswith("/announce?")
    assert "info_hash=%03%03%03%03" in paths[0]
    assert "compact=1" in paths[0]
    assert "left=1024" in paths[0]


def test_http_announce_failure_marks_unresolved():
    tracker = Tracker(f"http://127.0.0.1:{_free_port()}/announce")
    with pytest.raises(TrackerError):
        tracker.announce_http(b"\x03" * 20, 0, 1024, 6881, timeout=2)
    assert tracker.state is TrackerState.DNS_UNRESOLVED


def test_udp_announce_exchange():
    server = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    server.bind(("127.0.0.1", 0))
    server.settimeout(5)
    received = {}

    def serve():
        data, client = server.recvfrom(2048)
        protocol_id, action, tid = struct.unpack(">qii", data)
        received["connect"] = (len(data), protocol_id, action)
        server.sendto(struct.pack(">iiq", 0, tid, 0x1234), client)
        data, client = server.recvfrom(2048)
        connection_id, action, tid = struct.unpack_from(">qii", data)
        received["announce"] = (len(data), connection_id, action, data[16:36])
        peer = bytes([127, 0, 0, 1]) + struct.pack(">H", 51413)
        server.sendto(struct.pack(">iiiii", 1, tid, 1800, 3, 5) + peer, client)

    thread = threading.Thread(target=serve)
    thread.start()
    client = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    client.bind(("127.0.0.1", 0))
    try:
        tracker = Tracker(f"udp://127.0.0.1:{server.getsockname()[1]}/announce")
        assert tracker.resolve()
        response = tracker.announce_udp(client, b"\x07" * 20, 0, 1024, 6881, timeout=5)
    finally:
        thread.join(5)
        client.close()
        server.close()

    assert isinstance(response, AnnounceResponse)
    assert response.peers == [LOCAL_PEER]
    assert (response.interval, response.leechers, response.seeders) == (1800, 3, 5)
    assert received["connect"] == (16, PROTOCOL_ID, 0)
    assert received["announce"] == (98, 0x1234, 1, b"\x07" * 20)
    assert tracker.state is TrackerState.DNS_RESOLVED


def test_udp_announce_times_out():
    server = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    server.bind(("127.0.0.1", 0))
    client = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    client.bind(("127.0.0.1", 0))
    try:
        tracker = Tracker(f"udp://127.0.0.1:{server.getsockname()[1]}")
        tracker.resolve()
        with pytest.raises(TrackerError, match="timed out"):
            tracker.announce_udp(client, b"\x07" * 20, 0, 1024, 6881, timeout=0.2)
    finally:
        client.close()
        server.close()


def test_udp_announce_needs_resolved_address():
    tracker = Tracker("udp://127.0.0.1:6969")
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as client:
        with pytest.raises(TrackerError, match="no resolved socket addresses"):
            tracker.announce_udp(client, b"\x07" * 20, 0, 1024, 6881, timeout=0.2)