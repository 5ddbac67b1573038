"""Sequential execution of transfer plans."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..exceptions import BunCancelledError
from ..output import OutputFormatter
from .cancellation import CancellationToken
from .scanner import FileRecord

logger = logging.getLogger(__name__)

TransferFunction = Callable[[FileRecord], object]


@dataclass
class ExecutionReport:
    """Outcome of executing a transfer plan."""

    total: int = 0
    """Number of files in the plan"""

    succeeded: list[str] = field(default_factory=list)
    """Paths transferred successfully"""

    failed: dict[str, str] = field(default_factory=dict)
    """Paths whose transfer failed, mapped to the error message"""

    cancelled: bool = False
    """True if the run stopped because cancellation was requested"""

    @property
    def attempted(self) -> int:
        """Number of files a transfer was attempted for."""
        return len(self.succeeded) + len(self.failed)


class TransferExecutor:
    """Runs a transfer plan one file at a time.

    A failing file is reported and skipped; it never aborts the rest of the
    plan. Cancellation is checked before every file and after every file.
    """

    def __init__(
        self,
        output: Optional[OutputFormatter] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        """Initialize the executor.

        Args:
            output: Output formatter for user-facing progress
            cancel_token: Token observed between files
        """
        self.output = output or OutputFormatter()
        self.cancel_token = cancel_token or CancellationToken()

    def execute(
        self, plan: Sequence[FileRecord], transfer_one: TransferFunction
    ) -> ExecutionReport:
        """Execute a transfer plan.

        Args:
            plan: Records to transfer, in order
            transfer_one: Single-file transfer operation; raising any
                exception marks that file as failed

        Returns:
            ExecutionReport describing what happened
        """
        total = len(plan)
        report = ExecutionReport(total=total)

        if total == 0:
            self.output.info("Nothing to sync.")
            return report

        for index, record in enumerate(plan, start=1):
            if self.cancel_token.is_cancelled:
                report.cancelled = True
                return report

            self.output.info(f"[{index}/{total}] {record.path}")

            try:
                transfer_one(record)
            except BunCancelledError:
                logger.debug("Transfer of %s cancelled", record.path)
                report.cancelled = True
                return report
            except Exception as e:
                logger.debug("Transfer of %s failed", record.path, exc_info=True)
                self.output.error(f"Failed to sync {record.path}: {e}")
                report.failed[record.path] = str(e)
            else:
                report.succeeded.append(record.path)

            if self.cancel_token.is_cancelled:
                report.cancelled = True
                return report

        if report.failed:
            self.output.warning(
                f"Sync finished: {len(report.succeeded)} of {total} file(s) "
                f"transferred, {len(report.failed)} failed."
            )
        else:
            self.output.success(f"Sync complete: {total} file(s) transferred.")
        return report
