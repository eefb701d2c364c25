"""Location on disk where downloaded torrent data is stored."""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_DOWNLOAD_DIRECTORY_NAME = "hyperblow_downloads"


class DownloadDirectoryError(Exception):
    """Raised when the download directory cannot be resolved or created."""


class DownloadDirectory:
    """A directory that downloads are written into."""

    __slots__ = ("_path",)

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @classmethod
    def default(cls) -> DownloadDirectory:
        """Return the default directory, located under ``$HOME``."""
        home = os.environ.get("HOME")
        if home is None:
            raise DownloadDirectoryError(
                "HOME is not set, cannot resolve default download directory"
            )
        return cls(Path(home) / DEFAULT_DOWNLOAD_DIRECTORY_NAME)

    @property
    def path(self) -> Path:
        return self._path

    def ensure_exists(self) -> None:
        """Create the directory and its parents if they are missing."""
        if self._path.exists() and not self._path.is_dir():
            raise DownloadDirectoryError(
                f"download directory path exists but is not a directory: {self._path}"
            )
        try:
            self._path.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise DownloadDirectoryError(
                f"could not create download directory: {self._path}"
            ) from error

    def display_path(self) -> str:
        return str(self._path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DownloadDirectory):
            return NotImplemented
        return self._path == other._path

    def __hash__(self) -> int:
        return hash(self._path)

    def __repr__(self) -> str:
        return f"DownloadDirectory({str(self._path)!r})"