"""Sync directions."""

from enum import Enum

from ..exceptions import BunConfigError


class SyncDirection(str, Enum):
    """Direction of a one-way sync."""

    NONE = "none"
    """Unset sentinel, never valid for a sync run"""

    UP = "up"
    """Local tree is the source, remote zone is the base"""

    DOWN = "down"
    """Remote zone is the source, local tree is the base"""

    @classmethod
    def from_string(cls, value: str) -> "SyncDirection":
        """Parse a direction name, case-insensitively.

        Args:
            value: Direction name ("up" or "down")

        Returns:
            The matching SyncDirection

        Raises:
            BunConfigError: If the value is not a valid direction

        Examples:
            >>> SyncDirection.from_string("UP")
            <SyncDirection.UP: 'up'>
        """
        normalized = (value or "").strip().lower()
        if normalized == cls.UP.value:
            return cls.UP
        if normalized == cls.DOWN.value:
            return cls.DOWN
        raise BunConfigError(
            f"Invalid sync direction '{value}'. Valid directions: up, down"
        )

    @property
    def is_valid(self) -> bool:
        """True for UP and DOWN."""
        return self is not SyncDirection.NONE
