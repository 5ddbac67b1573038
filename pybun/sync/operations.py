"""Sync operations wrapper for unified upload/download interface."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Optional

from ..api import BunClient
from ..utils import PARTIAL_SUFFIX
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)


class SyncOperations:
    """Single-file transfers between a local tree and the storage zone."""

    def __init__(self, client: BunClient):
        """Initialize sync operations.

        Args:
            client: Storage API client
        """
        self.client = client

    def upload_file(
        self,
        local_path: Path,
        remote_path: str,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        """Upload a local file to remote storage.

        Args:
            local_path: File on disk
            remote_path: Zone-relative path to store the file under
            progress_callback: Optional progress callback
                function(bytes_uploaded, total_bytes)

        Returns:
            HTTP status code returned by the API
        """
        size = local_path.stat().st_size
        with open(local_path, "rb") as source:
            return self.client.put_file(
                remote_path,
                source,
                progress_callback=progress_callback,
                size=size,
            )

    def download_file(
        self,
        remote_path: str,
        local_path: Path,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        """Download a remote file to local storage.

        The data is streamed into ``<name>.part`` next to the destination and
        moved into place only once complete. On any failure, cancellation
        included, the partial file is removed, so an interrupted download
        never looks like an up-to-date copy.

        Args:
            remote_path: Zone-relative path of the file
            local_path: Local path where file should be saved
            progress_callback: Optional progress callback
                function(bytes_downloaded, total_bytes)
            cancel_token: Optional token observed during the copy

        Returns:
            Path where file was saved
        """
        # Intermediate directories implied by the relative path
        local_path.parent.mkdir(parents=True, exist_ok=True)
        partial_path = local_path.with_name(local_path.name + PARTIAL_SUFFIX)

        try:
            with open(partial_path, "wb") as destination:
                self.client.get_file(
                    remote_path,
                    destination,
                    progress_callback=progress_callback,
                    cancel_token=cancel_token,
                )
            os.replace(partial_path, local_path)
        except BaseException:
            logger.debug("Removing partial download %s", partial_path)
            partial_path.unlink(missing_ok=True)
            raise

        return local_path
