"""Data models for storage API responses."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .utils import parse_iso_timestamp


@dataclass
class StorageObject:
    """A single entry of a storage zone listing."""

    object_name: str
    """File or directory name"""

    path: str
    """Parent path including the zone name, e.g. ``/myzone/docs/``"""

    storage_zone_name: str
    """Name of the zone the object lives in"""

    is_directory: bool
    """True for directories"""

    length: int = 0
    """Size in bytes (0 for directories)"""

    last_changed: Optional[datetime] = None
    """Last modification time (UTC)"""

    date_created: Optional[datetime] = None
    """Creation time (UTC)"""

    guid: str = ""
    """Unique object identifier"""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StorageObject:
        """Create a StorageObject from an API listing entry.

        Args:
            data: One element of the JSON array returned by a listing request

        Returns:
            StorageObject instance
        """
        return cls(
            object_name=data.get("ObjectName", ""),
            path=data.get("Path", "/"),
            storage_zone_name=data.get("StorageZoneName", ""),
            is_directory=bool(data.get("IsDirectory", False)),
            length=int(data.get("Length") or 0),
            last_changed=parse_iso_timestamp(data.get("LastChanged")),
            date_created=parse_iso_timestamp(data.get("DateCreated")),
            guid=data.get("Guid") or "",
        )

    @property
    def full_path(self) -> str:
        """Storage path of the object, including the zone prefix."""
        path = self.path if self.path.endswith("/") else self.path + "/"
        return f"{path}{self.object_name}"

    @property
    def relative_path(self) -> str:
        """Path of the object relative to the zone root."""
        full = self.full_path.lstrip("/")
        prefix = f"{self.storage_zone_name}/"
        if self.storage_zone_name and full.lower().startswith(prefix.lower()):
            full = full[len(prefix) :]
        return full
