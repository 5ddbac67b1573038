"""Utility functions for pybun."""

from datetime import datetime, timezone
from typing import Optional

# =============================================================================
# Constants for file operations
# =============================================================================

# Chunk size for streamed downloads and uploads (64 KiB)
DEFAULT_CHUNK_SIZE: int = 64 * 1024

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Suffix of in-progress download files
PARTIAL_SUFFIX: str = ".part"


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO format timestamp from the storage API.

    The API reports times in UTC, usually without an offset
    (e.g. "2025-01-15T10:30:00.123"). Naive values are therefore
    interpreted as UTC.

    Args:
        timestamp_str: ISO format timestamp string

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"

        try:
            dt = datetime.fromisoformat(timestamp_str)
        except ValueError:
            # Older interpreters reject fractional seconds that are not 3 or 6
            # digits long
            if "." not in timestamp_str:
                raise
            head, tail = timestamp_str.split(".", 1)
            offset = ""
            for sign in ("+", "-"):
                if sign in tail:
                    offset = sign + tail.split(sign, 1)[1]
                    break
            dt = datetime.fromisoformat(head + offset)

        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, AttributeError):
        return None


def timestamp_to_utc(timestamp: float) -> datetime:
    """Convert a Unix timestamp to a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


# =============================================================================
# Size formatting utilities
# =============================================================================

_SIZE_UNITS = ["B", "KiB", "MiB", "GiB", "TiB"]


def format_size(size_bytes: float) -> str:
    """Format a byte count in human-readable binary units.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "0 B", "512 B", "1.50 KiB")

    Examples:
        >>> format_size(0)
        '0 B'
        >>> format_size(1536)
        '1.50 KiB'
    """
    if size_bytes <= 0:
        return "0 B"

    reduced = float(size_bytes)
    exponent = 0
    while reduced >= 1024 and exponent < len(_SIZE_UNITS) - 1:
        reduced /= 1024
        exponent += 1

    if exponent == 0:
        return f"{reduced:.0f} {_SIZE_UNITS[0]}"
    return f"{reduced:.2f} {_SIZE_UNITS[exponent]}"


def normalize_remote_path(path: str) -> str:
    """Normalize a remote path to a zone-relative path with forward slashes.

    Examples:
        >>> normalize_remote_path("/docs/a.txt")
        'docs/a.txt'
    """
    return path.replace("\\", "/").lstrip("/")
