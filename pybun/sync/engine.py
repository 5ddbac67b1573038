"""Core sync engine for executing sync operations."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from ..api import BunClient
from ..exceptions import BunAPIError, BunConfigError
from ..output import OutputFormatter
from .cancellation import CancellationToken
from .comparator import SetComparator
from .executor import ExecutionReport, TransferExecutor
from .modes import SyncDirection
from .operations import SyncOperations
from .progress import ProgressReporter
from .scanner import DirectoryScanner, FileRecord, scan_remote

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Terminal state of a sync run."""

    DONE = "done"
    """All planned files were processed, or none were needed"""

    CANCELLED = "cancelled"
    """Stopped early on request; earlier transfers may have completed"""

    FAILED = "failed"
    """Configuration or inventory error, nothing was transferred"""


@dataclass
class SyncResult:
    """Outcome of a sync run."""

    state: SyncState
    direction: SyncDirection = SyncDirection.NONE
    plan: list[FileRecord] = field(default_factory=list)
    transferred: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def planned(self) -> int:
        """Number of files in the transfer plan."""
        return len(self.plan)

    def to_dict(self) -> dict:
        """Summary suitable for JSON output."""
        return {
            "state": self.state.value,
            "direction": self.direction.value,
            "planned": self.planned,
            "transferred": len(self.transferred),
            "failed": self.failed,
            "error": self.error,
        }


class SyncEngine:
    """Reconciles a local directory with the storage zone in one direction.

    A run goes through these steps: validate direction, fetch the remote
    inventory, walk the local inventory, compare, execute transfers. It
    stops as CANCELLED as soon as the cancellation token is set and as
    FAILED on configuration or listing errors.
    """

    def __init__(
        self,
        client: BunClient,
        output: Optional[OutputFormatter] = None,
        cancel_token: Optional[CancellationToken] = None,
        scanner: Optional[DirectoryScanner] = None,
        reporter: Optional[ProgressReporter] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Storage API client
            output: Output formatter for displaying progress/status
            cancel_token: Token signalling a requested shutdown
            scanner: Local directory scanner (default: scan everything)
            reporter: Byte progress renderer (default: a new reporter unless
                output is quiet)
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.cancel_token = cancel_token or CancellationToken()
        self.scanner = scanner or DirectoryScanner()
        if reporter is None and not self.output.quiet:
            reporter = ProgressReporter()
        self.reporter = reporter
        self.operations = SyncOperations(client)
        self.comparator = SetComparator()

    def sync(
        self,
        local_root: Path,
        direction: Union[SyncDirection, str],
        dry_run: bool = False,
    ) -> SyncResult:
        """Synchronize a local directory with the zone.

        Args:
            local_root: Local sync root
            direction: SyncDirection or its name ("up"/"down")
            dry_run: If True, only show the plan

        Returns:
            SyncResult with the terminal state

        Examples:
            >>> engine = SyncEngine(client)
            >>> result = engine.sync(Path("/local"), "down", dry_run=True)
            >>> print(f"Would download {result.planned} files")
        """
        start_time = time.time()

        try:
            resolved = self.validate_direction(direction)
            self._validate_root(local_root)
        except BunConfigError as e:
            self.output.error(str(e))
            return SyncResult(state=SyncState.FAILED, error=str(e))

        if self.cancel_token.is_cancelled:
            return self._cancelled(resolved)

        if not self.output.quiet:
            arrow = "->" if resolved is SyncDirection.UP else "<-"
            self.output.info(f"Syncing: {local_root} {arrow} {self.client.zone}")
            if dry_run:
                self.output.info("Dry run: No changes will be made")

        try:
            remote_files = self.fetch_remote_inventory()
        except BunAPIError as e:
            self.output.error(str(e))
            return SyncResult(state=SyncState.FAILED, direction=resolved, error=str(e))

        if self.cancel_token.is_cancelled:
            return self._cancelled(resolved)

        local_files = self.walk_local_inventory(local_root)

        if self.cancel_token.is_cancelled:
            return self._cancelled(resolved)

        self.output.info(
            f"Found {len(local_files)} local file(s), "
            f"{len(remote_files)} remote file(s)"
        )

        plan = self.compare(resolved, local_files, remote_files)
        logger.debug(
            "Computed plan of %d file(s) in %.2fs", len(plan), time.time() - start_time
        )

        if dry_run:
            self._display_plan(resolved, plan)
            return SyncResult(state=SyncState.DONE, direction=resolved, plan=plan)

        report = self.execute(resolved, plan, local_root)

        return SyncResult(
            state=SyncState.CANCELLED if report.cancelled else SyncState.DONE,
            direction=resolved,
            plan=plan,
            transferred=report.succeeded,
            failed=report.failed,
        )

    @staticmethod
    def validate_direction(direction: Union[SyncDirection, str]) -> SyncDirection:
        """Resolve and validate a sync direction.

        Raises:
            BunConfigError: For unknown names and for SyncDirection.NONE
        """
        if not isinstance(direction, SyncDirection):
            direction = SyncDirection.from_string(direction)
        if not direction.is_valid:
            raise BunConfigError("Sync direction not set. Use 'up' or 'down'.")
        return direction

    @staticmethod
    def _validate_root(local_root: Path) -> None:
        if not local_root.exists():
            raise BunConfigError(f"Local directory does not exist: {local_root}")
        if not local_root.is_dir():
            raise BunConfigError(f"Local path is not a directory: {local_root}")

    def fetch_remote_inventory(self) -> list[FileRecord]:
        """List the zone and convert its files to FileRecords.

        Raises:
            BunInventoryError: If the listing fails
        """
        entries = self.client.list_files()
        records = scan_remote(entries)
        logger.debug(
            "Remote listing: %d entries, %d file(s)", len(entries), len(records)
        )
        return records

    def walk_local_inventory(self, local_root: Path) -> list[FileRecord]:
        """Walk the local root and collect its files."""
        return list(self.scanner.scan_local(local_root))

    def compare(
        self,
        direction: SyncDirection,
        local_files: list[FileRecord],
        remote_files: list[FileRecord],
    ) -> list[FileRecord]:
        """Pick source and base for the direction and compute the plan.

        Raises:
            BunConfigError: If direction is SyncDirection.NONE
        """
        if direction is SyncDirection.UP:
            return self.comparator.compare(source=local_files, base=remote_files)
        if direction is SyncDirection.DOWN:
            return self.comparator.compare(source=remote_files, base=local_files)
        raise BunConfigError("Sync direction not set. Use 'up' or 'down'.")

    def execute(
        self, direction: SyncDirection, plan: list[FileRecord], local_root: Path
    ) -> ExecutionReport:
        """Transfer every file of the plan in the given direction."""
        executor = TransferExecutor(self.output, self.cancel_token)
        if direction is SyncDirection.UP:
            transfer_one = self._upload_one(local_root)
        else:
            transfer_one = self._download_one(local_root)
        return executor.execute(plan, transfer_one)

    def _upload_one(self, local_root: Path) -> Callable[[FileRecord], object]:
        def upload(record: FileRecord) -> object:
            try:
                return self.operations.upload_file(
                    local_path=local_path_for(local_root, record.path),
                    remote_path=record.path,
                    progress_callback=self._progress_callback(record),
                )
            finally:
                self._finish_progress()

        return upload

    def _download_one(self, local_root: Path) -> Callable[[FileRecord], object]:
        def download(record: FileRecord) -> object:
            try:
                return self.operations.download_file(
                    remote_path=record.path,
                    local_path=local_path_for(local_root, record.path),
                    progress_callback=self._progress_callback(record),
                    cancel_token=self.cancel_token,
                )
            finally:
                self._finish_progress()

        return download

    def _finish_progress(self) -> None:
        # Close a progress line left open by an interrupted transfer
        if self.reporter is not None:
            self.reporter.finish()

    def _progress_callback(
        self, record: FileRecord
    ) -> Optional[Callable[[int, int], None]]:
        if self.reporter is None:
            return None
        return self.reporter.callback_for(record.size)

    def _display_plan(self, direction: SyncDirection, plan: list[FileRecord]) -> None:
        if self.output.quiet:
            return
        if not plan:
            self.output.info("Nothing to sync.")
            return
        verb = "Upload" if direction is SyncDirection.UP else "Download"
        self.output.info(f"{verb}: {len(plan)} file(s)")
        for record in plan:
            self.output.info(f"  {record.path}")

    def _cancelled(self, direction: SyncDirection) -> SyncResult:
        logger.debug("Sync cancelled before transfers started")
        return SyncResult(state=SyncState.CANCELLED, direction=direction)


def local_path_for(local_root: Path, relative_path: str) -> Path:
    """Map a sync-relative path to a path below the local root.

    Containment is checked on the normalized path, not on the link target,
    so a symlinked file inside the root maps to itself.

    Raises:
        ValueError: If the path would leave the local root
    """
    root = Path(os.path.abspath(local_root))
    target = Path(os.path.normpath(root / relative_path))
    if target == root or root not in target.parents:
        raise ValueError(f"Path escapes the sync root: {relative_path}")
    return target
