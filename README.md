# hyperblow

Building blocks for a BitTorrent client. It is written in pure Python and
needs nothing outside the standard library.

## Modules

### `hyperblow.udp_messages`

Binary messages of the UDP tracker protocol:

- `ConnectRequest.to_bytes()` gives the 16-byte connect request. Its
  transaction id is random unless you set one.
- `ConnectResponse.from_bytes(data)` parses the tracker's reply to a connect
  request.
- `AnnounceRequest.to_bytes()` gives the 98-byte announce request. It raises
  `MessageError` if a required field is unset.
- `AnnounceResponse.from_bytes(data)` parses a reply into a list of
  `PeerAddress` values. It raises `MessageError` for a reply shorter than
  20 bytes or a truncated peer list.
- `ErrorResponse.from_bytes(data)` parses an error message from the tracker.
- `ScrapeRequest.to_bytes()` encodes a scrape request for one info hash.

### `hyperblow.bencode`

`encode(value)` bencodes ints, strings, bytes, lists and dicts, writing dict
keys in sorted order. `decode(data)` returns ints, bytes, lists and dicts
with bytes keys. Malformed input raises `BencodeError`.

### `hyperblow.http_tracker`

- `build_announce_url(address, info_hash, downloaded, left, port)` builds the
  announce URL. Any query already on the address is kept, and the binary
  fields are percent-encoded.
- `parse_announce_response(data)` decodes a bencoded reply. It accepts
  compact peers, dictionary peers and `peers6`, and raises `TrackerError` on
  a `failure reason`.
- `parse_compact_ipv4_peers(data)` and `parse_compact_ipv6_peers(data)`
  decode compact peer lists.
- `fetch_announce(address, info_hash, downloaded, left, port, timeout=30.0)`
  makes the GET request and parses the reply.

### `hyperblow.tracker`

`Tracker(address)` accepts `udp://`, `http://` and `https://` URLs. Any
other scheme raises `TrackerError`. A `Tracker`:

- resolves its host with `resolve()`;
- keeps its current `TrackerState`;
- builds connect and announce requests (`make_connect_request`,
  `make_announce_request`);
- recognises UDP replies that answer them (`is_connect_response`,
  `is_announce_response`, `handle_response`).

`announce_http(...)` and `announce_udp(sock, ...)` each run one announce
exchange and return an `AnnounceResponse`.

### `hyperblow.download_directory`

`DownloadDirectory(path)` represents the directory that downloads go to.
`DownloadDirectory.default()` is `$HOME/hyperblow_downloads`.
`ensure_exists()` creates the directory. Failures raise
`DownloadDirectoryError`.

### `hyperblow.sources`

- `TorrentSource.magnet(uri)` and `TorrentSource.file(path)` describe a
  torrent source, and `kind()` returns its `SourceKind`.
- `TrackerSnapshot` holds what is shown about one tracker, and
  `queued_snapshots(addresses)` makes snapshots for trackers not yet
  contacted.
- `magnet_title(display_name, exact_topic)` gives a readable title for a
  magnet link.
- `progress_percent(bytes_complete, bytes_total)` gives whole percent
  complete, capped at 100.

### `hyperblow.logger`

`init_from_env()` sends log records to standard output when `HYPERBLOW_LOG`
holds a filter. The filter is a level such as `debug` or `info`, optionally
followed by `target=level` entries, for example `info,hyperblow.tracker=debug`.
It returns `True` when logging was set up. An invalid filter prints a message
and leaves logging off.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

Announcing to an HTTP tracker:

```python
from hyperblow.http_tracker import fetch_announce

response = fetch_announce(
    "http://tracker.example.com/announce",
    info_hash=bytes(20),
    downloaded=0,
    left=1024,
    port=6881,
    timeout=10,
)
for peer in response.peers:
    print(peer)
```

Announcing to a UDP tracker:

```python
import socket
from hyperblow.tracker import Tracker

tracker = Tracker("udp://tracker.example.com:6969")
if tracker.resolve():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        response = tracker.announce_udp(
            sock, bytes(20), downloaded=0, total_length=1024, port=6881
        )
```

Naming a magnet link for display:

```python
from hyperblow.sources import magnet_title

magnet_title(None, "urn:btih:08ada5a7a6183aae1e09d831df6748d566095a10")
# 'Magnet 08ada5a7a618'
```

## What it does not do

This package talks to trackers and describes torrents. It does not download
them:

- It has no peer wire protocol, piece selection or writing of data to disk.
- It does not parse `.torrent` files or magnet URIs. `magnet_title` takes
  fields that have already been parsed.
- It has no DHT and does not send or parse UDP scrape replies.
- It provides no command-line program or terminal interface.