"""Inventory building for sync operations."""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..models import StorageObject
from ..utils import PARTIAL_SUFFIX, timestamp_to_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileRecord:
    """One file on either side of a sync.

    Two records with the same ``path`` describe the same logical file,
    so equality and hashing only look at the path.
    """

    path: str
    """Path relative to the sync root (forward slashes)"""

    last_modified: datetime = field(compare=False)
    """Last modification time (UTC)"""

    size: int = field(compare=False)
    """File size in bytes"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> FileRecord:
        """Create a FileRecord from a local file.

        Args:
            file_path: Absolute path to the file
            base_path: Sync root used to compute the relative path

        Returns:
            FileRecord instance
        """
        stat = file_path.stat()
        return cls(
            path=file_path.relative_to(base_path).as_posix(),
            last_modified=timestamp_to_utc(stat.st_mtime),
            size=stat.st_size,
        )

    @classmethod
    def from_storage_object(cls, entry: StorageObject) -> FileRecord:
        """Create a FileRecord from a remote listing entry.

        The zone-name prefix of the storage path is stripped so that the
        path is relative to the zone root. Entries without a timestamp are
        treated as infinitely old.
        """
        return cls(
            path=entry.relative_path,
            last_modified=entry.last_changed or timestamp_to_utc(0),
            size=entry.length,
        )


class DirectoryScanner:
    """Walks a local directory tree and produces FileRecords.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> files = list(scanner.scan_local(Path("/sync/folder")))

        >>> # With ignore patterns
        >>> scanner = DirectoryScanner(ignore_patterns=["*.tmp", "cache/*"])
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        exclude_dot_files: bool = False,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: Glob patterns matched against the relative path
                and the file name (e.g., ["*.log", "temp/*"])
            exclude_dot_files: Whether to skip files/folders starting with a dot
        """
        self.ignore_patterns = ignore_patterns or []
        self.exclude_dot_files = exclude_dot_files

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if a path should be skipped.

        Args:
            path: Path to check
            base_path: Sync root for relative path calculation

        Returns:
            True if path should be ignored
        """
        if self.exclude_dot_files and path.name.startswith("."):
            return True

        relative_path = path.relative_to(base_path).as_posix()
        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(
                path.name, pattern
            ):
                logger.debug("Ignoring (pattern %s): %s", pattern, relative_path)
                return True

        return False

    def scan_local(
        self, directory: Path, base_path: Optional[Path] = None
    ) -> Iterator[FileRecord]:
        """Recursively walk a local directory.

        Entries are visited in name order so the resulting inventory is
        deterministic. Entries that cannot be accessed are skipped, as are
        leftover partial downloads.

        Args:
            directory: Directory to scan
            base_path: Base path for relative paths (defaults to directory)

        Yields:
            FileRecord for every regular file below the directory
        """
        if base_path is None:
            base_path = directory

        try:
            items = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", directory, e)
            return

        for item in items:
            if self.should_ignore(item, base_path):
                continue

            try:
                if item.is_symlink() and item.is_dir():
                    continue
                if item.is_dir():
                    yield from self.scan_local(item, base_path)
                    continue
                if not item.is_file() or item.name.endswith(PARTIAL_SUFFIX):
                    continue
                record = FileRecord.from_path(item, base_path)
            except OSError as e:
                logger.debug("Skipping inaccessible entry %s: %s", item, e)
                continue

            yield record


def scan_remote(entries: Iterable[StorageObject]) -> list[FileRecord]:
    """Convert a remote listing into FileRecords.

    Args:
        entries: Listing entries, directories included

    Returns:
        FileRecord for every file entry, in listing order
    """
    records: list[FileRecord] = []
    for entry in entries:
        if entry.is_directory:
            continue
        records.append(FileRecord.from_storage_object(entry))
    return records
