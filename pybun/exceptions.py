"""Custom exceptions for pybun."""

from __future__ import annotations


class BunError(Exception):
    """Base exception for all pybun errors."""


class BunConfigError(BunError):
    """Raised for invalid or missing configuration (key, zone, direction, root)."""


class BunCancelledError(BunError):
    """Raised when a shutdown was requested while an operation was running."""


class BunAPIError(BunError):
    """Base exception for errors returned by the storage API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class BunAuthenticationError(BunAPIError):
    """Raised when the access key is rejected."""


class BunPermissionError(BunAPIError):
    """Raised when access to a resource is forbidden."""


class BunNotFoundError(BunAPIError):
    """Raised when a remote object does not exist."""


class BunRateLimitError(BunAPIError):
    """Raised when the API rate limit is exceeded."""


class BunNetworkError(BunAPIError):
    """Raised on connection problems and timeouts."""


class BunInvalidResponseError(BunAPIError):
    """Raised when the API returns something that cannot be parsed."""


class BunInventoryError(BunAPIError):
    """Raised when the remote file listing cannot be fetched."""


class BunUploadError(BunAPIError):
    """Raised when an upload fails."""


class BunDownloadError(BunAPIError):
    """Raised when a download fails."""
