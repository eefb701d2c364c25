"""Torrent sources and the display values derived from a torrent's state."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable

_SHORT_HASH_LENGTH = 12


class SourceKind(str, enum.Enum):
    """Where a torrent comes from."""

    MAGNET = "magnet"
    FILE = "file"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TorrentSource:
    """A magnet URI or a path to a ``.torrent`` file."""

    source_kind: SourceKind
    value: str

    @classmethod
    def magnet(cls, uri: str) -> TorrentSource:
        return cls(SourceKind.MAGNET, uri)

    @classmethod
    def file(cls, path: str) -> TorrentSource:
        return cls(SourceKind.FILE, path)

    def kind(self) -> SourceKind:
        return self.source_kind


@dataclass(frozen=True)
class TrackerSnapshot:
    """What is shown about one tracker of a torrent."""

    url: str
    status: str
    is_error: bool = False


def queued_snapshots(addresses: Iterable[str]) -> list[TrackerSnapshot]:
    """Snapshots for trackers that are known by address but not yet contacted."""
    return [TrackerSnapshot(url, "Queued", False) for url in addresses]


def _hash_from_exact_topic(exact_topic: str) -> str | None:
    if ":" not in exact_topic:
        return None
    hash_part = exact_topic.rsplit(":", 1)[1]
    return hash_part or None


def magnet_title(display_name: str | None, exact_topic: str | None) -> str:
    """A readable title for a magnet link from its ``dn`` and ``xt`` fields."""
    if display_name is not None and display_name.strip():
        return display_name.strip()
    if exact_topic is not None:
        hash_part = _hash_from_exact_topic(exact_topic)
        if hash_part is not None:
            return f"Magnet {hash_part[:_SHORT_HASH_LENGTH]}"
    return "Magnet torrent"


def progress_percent(bytes_complete: int, bytes_total: int | None) -> int:
    """Whole percent downloaded, 0 when the size is unknown or zero, at most 100."""
    if not bytes_total or bytes_total <= 0:
        return 0
    return min(max(bytes_complete, 0) * 100 // bytes_total, 100)