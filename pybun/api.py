"""API client for Bunny-style storage zones."""

from __future__ import annotations

import io
import logging
import random
import time
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, BinaryIO, Callable
from urllib.parse import quote

import httpx

from .config import config
from .exceptions import (
    BunAPIError,
    BunAuthenticationError,
    BunConfigError,
    BunDownloadError,
    BunInvalidResponseError,
    BunInventoryError,
    BunNetworkError,
    BunNotFoundError,
    BunPermissionError,
    BunRateLimitError,
    BunUploadError,
)
from .models import StorageObject
from .utils import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    normalize_remote_path,
)

if TYPE_CHECKING:
    from .sync.cancellation import CancellationToken

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class BunClient:
    """Client for a single storage zone."""

    def __init__(
        self,
        api_key: str | None = None,
        zone: str | None = None,
        api_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the storage client.

        Args:
            api_key: Access key of the storage zone (uses config if not provided)
            zone: Storage zone name (uses config if not provided)
            api_url: Storage API base URL (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport, used by tests
        """
        self.api_key = api_key or config.api_key
        self.zone = zone or config.zone
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        if not self.api_key:
            raise BunConfigError(
                "Key not defined. Either pass the key as an argument "
                "or set the BUN_KEY environment variable."
            )
        if not self.zone:
            raise BunConfigError(
                "Zone not defined. Either pass the zone as an argument "
                "or set the BUN_ZONE environment variable."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"AccessKey": self.api_key or ""},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> BunClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _object_url(self, remote_name: str, directory: bool = False) -> str:
        """Build the URL of an object (or directory) inside the zone."""
        name = normalize_remote_path(remote_name).rstrip("/")
        path = quote(name, safe="/")
        if directory:
            path = f"{path}/" if path else ""
        return f"{self.api_url}/{quote(self.zone or '', safe='')}/{path}"

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        if isinstance(exception, (BunNetworkError, BunRateLimitError)):
            return True

        if isinstance(exception, BunAPIError) and exception.status_code is not None:
            return 500 <= exception.status_code < 600

        return False

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Jitter of +/- 25% to avoid synchronized retries
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _error_from_response(self, response: httpx.Response) -> BunAPIError:
        """Map an unsuccessful response to an exception."""
        status_code = response.status_code

        if status_code == 401:
            return BunAuthenticationError(
                "Invalid access key or unauthorized access", status_code
            )
        if status_code == 403:
            return BunPermissionError(
                "Access forbidden - check your permissions", status_code
            )
        if status_code == 404:
            return BunNotFoundError("Resource not found", status_code)
        if status_code == 429:
            return BunRateLimitError(
                "Rate limit exceeded - please try again later", status_code
            )

        error_msg = f"API request failed with status {status_code}"
        try:
            if response.content:
                error_data = response.json()
                if isinstance(error_data, dict):
                    msg = error_data.get("Message") or error_data.get("message")
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON, keep the status-based message
            pass
        return BunAPIError(error_msg, status_code)

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            url: Full request URL
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data, or an empty dict for empty bodies

        Raises:
            BunAPIError: If the request fails after all retries
        """
        client = self._get_client()
        last_exception: BunAPIError | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                error: BunAPIError = BunNetworkError(f"Network error: {e}")
            else:
                if response.is_success:
                    return self._parse_json(response)
                error = self._error_from_response(response)
                if isinstance(error, BunRateLimitError):
                    retry_after = response.headers.get("Retry-After")
                    if retry_after and retry_after.isdigit() and self._should_retry(
                        error, attempt
                    ):
                        logger.debug("Rate limited, retrying in %ss", retry_after)
                        time.sleep(float(retry_after))
                        continue

            last_exception = error
            if not self._should_retry(error, attempt):
                raise error

            delay = self._calculate_retry_delay(attempt)
            logger.debug(
                "%s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                method,
                url,
                attempt + 1,
                self.max_retries + 1,
                delay,
                error,
            )
            time.sleep(delay)

        if last_exception:
            raise last_exception
        raise BunAPIError("Request failed after all retry attempts")

    @staticmethod
    def _parse_json(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        content_type = response.headers.get("Content-Type", "")
        if "text/html" in content_type:
            raise BunInvalidResponseError(
                "Server returned HTML instead of JSON - check the API URL",
                response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise BunInvalidResponseError(
                "Invalid JSON response from server", response.status_code
            ) from e

    # =========================
    # Listing
    # =========================

    def list_directory(self, path: str = "") -> list[StorageObject]:
        """List the direct children of a directory in the zone.

        Args:
            path: Zone-relative directory path ("" for the zone root)

        Returns:
            List of StorageObject entries (files and directories)
        """
        data = self._request("GET", self._object_url(path, directory=True))
        if not isinstance(data, list):
            raise BunInvalidResponseError(
                f"Unexpected listing response for '{path or '/'}'"
            )
        return [StorageObject.from_dict(item) for item in data]

    def list_files(self) -> list[StorageObject]:
        """List every object in the zone, recursing into directories.

        Directory entries are included; callers interested only in files
        filter on ``is_directory``.

        Returns:
            List of StorageObject entries sorted by full path

        Raises:
            BunInventoryError: If any listing request fails
        """
        objects: list[StorageObject] = []
        pending = [""]

        try:
            while pending:
                directory = pending.pop()
                logger.debug("Listing remote directory: /%s", directory)
                for entry in self.list_directory(directory):
                    objects.append(entry)
                    if entry.is_directory:
                        pending.append(entry.relative_path)
        except BunAPIError as e:
            raise BunInventoryError(
                f"Could not complete listing: {e}", e.status_code
            ) from e

        objects.sort(key=lambda o: o.full_path)
        return objects

    # =========================
    # Transfers
    # =========================

    def get_file(
        self,
        remote_name: str,
        destination: BinaryIO,
        progress_callback: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout: float = 60.0,
    ) -> int:
        """Download a file into a binary stream.

        The cancellation token is checked before each chunk is written, so a
        shutdown stops the copy within one chunk.

        Args:
            remote_name: Zone-relative path of the file
            destination: Writable binary stream
            progress_callback: Optional callback function(bytes_done, total_bytes)
            cancel_token: Optional token observed during the copy
            chunk_size: Size of the streamed chunks in bytes
            timeout: Request timeout in seconds (default: 60)

        Returns:
            Number of bytes written

        Raises:
            BunCancelledError: If cancellation was requested mid-stream
            BunDownloadError: If the download fails
            BunNetworkError: On connection problems
        """
        url = self._object_url(remote_name)
        client = self._get_client()
        bytes_downloaded = 0

        try:
            with client.stream("GET", url, timeout=timeout) as response:
                if not response.is_success:
                    response.read()
                    error = self._error_from_response(response)
                    raise BunDownloadError(
                        f"Could not complete download: {error}", response.status_code
                    )

                total_size = int(response.headers.get("Content-Length", 0))
                for chunk in response.iter_bytes(chunk_size=chunk_size):
                    if cancel_token is not None:
                        cancel_token.raise_if_cancelled()
                    if not chunk:
                        continue
                    destination.write(chunk)
                    bytes_downloaded += len(chunk)
                    if progress_callback:
                        progress_callback(bytes_downloaded, total_size)

            return bytes_downloaded

        except httpx.RequestError as e:
            raise BunNetworkError(f"Network error during download: {e}") from e
        except OSError as e:
            raise BunDownloadError(f"Failed to write file: {e}") from e

    def put_file(
        self,
        remote_name: str,
        source: BinaryIO,
        progress_callback: ProgressCallback | None = None,
        size: int | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout: float = 300.0,
    ) -> int:
        """Upload a binary stream to the zone.

        Args:
            remote_name: Zone-relative path to store the file under
            source: Readable binary stream
            progress_callback: Optional callback function(bytes_sent, total_bytes)
            size: Number of bytes in the stream; when unknown the stream is
                read into memory first
            chunk_size: Size of the streamed chunks in bytes
            timeout: Request timeout in seconds (default: 300)

        Returns:
            HTTP status code of the response

        Raises:
            BunUploadError: If the upload fails
            BunNetworkError: On connection problems
        """
        if size is None:
            data = source.read()
            size = len(data)
            source = io.BytesIO(data)

        total_size = size

        def iter_chunks() -> Iterator[bytes]:
            bytes_sent = 0
            while True:
                chunk = source.read(chunk_size)
                if not chunk:
                    break
                bytes_sent += len(chunk)
                yield chunk
                if progress_callback:
                    progress_callback(bytes_sent, total_size)

        url = self._object_url(remote_name)
        client = self._get_client()

        try:
            response = client.request(
                "PUT",
                url,
                content=iter_chunks(),
                headers={
                    "Content-Type": "application/octet-stream",
                    "Content-Length": str(total_size),
                },
                timeout=timeout,
            )
        except httpx.RequestError as e:
            raise BunNetworkError(f"Network error during upload: {e}") from e
        except OSError as e:
            raise BunUploadError(f"Failed to read file: {e}") from e

        if response.status_code not in (200, 201):
            error = self._error_from_response(response)
            raise BunUploadError(
                f"Could not complete upload: {error}", response.status_code
            )
        return response.status_code

    def delete_file(self, remote_name: str) -> Any:
        """Delete a file from the zone.

        Args:
            remote_name: Zone-relative path of the file

        Returns:
            Response data from the API

        Raises:
            BunNotFoundError: If the file does not exist
        """
        return self._request("DELETE", self._object_url(remote_name))
