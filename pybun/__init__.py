"""pybun - CLI tool for listing, transferring and syncing files in a storage zone."""

from .api import BunClient
from .exceptions import (
    BunAPIError,
    BunAuthenticationError,
    BunCancelledError,
    BunConfigError,
    BunDownloadError,
    BunError,
    BunInvalidResponseError,
    BunInventoryError,
    BunNetworkError,
    BunNotFoundError,
    BunPermissionError,
    BunRateLimitError,
    BunUploadError,
)
from .utils import format_size

__all__ = [
    "BunClient",
    "BunError",
    "BunAPIError",
    "BunAuthenticationError",
    "BunCancelledError",
    "BunConfigError",
    "BunDownloadError",
    "BunInvalidResponseError",
    "BunInventoryError",
    "BunNetworkError",
    "BunNotFoundError",
    "BunPermissionError",
    "BunRateLimitError",
    "BunUploadError",
    "format_size",
]
