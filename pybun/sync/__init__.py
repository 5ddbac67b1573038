"""Sync engine for pybun - one-way upload/download synchronization."""

from .cancellation import CancellationToken, install_signal_handlers
from .comparator import SetComparator
from .engine import SyncEngine, SyncResult, SyncState, local_path_for
from .executor import ExecutionReport, TransferExecutor
from .modes import SyncDirection
from .operations import SyncOperations
from .progress import ProgressReporter
from .scanner import DirectoryScanner, FileRecord, scan_remote

__all__ = [
    "SyncEngine",
    "SyncResult",
    "SyncState",
    "SyncDirection",
    "SyncOperations",
    "SetComparator",
    "TransferExecutor",
    "ExecutionReport",
    "ProgressReporter",
    "CancellationToken",
    "install_signal_handlers",
    "DirectoryScanner",
    "FileRecord",
    "scan_remote",
    "local_path_for",
]
