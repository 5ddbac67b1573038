"""Cooperative cancellation of sync runs."""

from __future__ import annotations

import logging
import signal
import threading
from typing import Any, Callable

from ..exceptions import BunCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """A shutdown flag that can only go from not-requested to requested.

    The token is set from a signal handler or another thread and polled by
    the transfer loop between files and by downloads between chunks.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation. Calling this more than once has no effect."""
        if not self._event.is_set():
            logger.debug("Cancellation requested")
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        """True once cancellation has been requested."""
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise BunCancelledError if cancellation has been requested."""
        if self._event.is_set():
            raise BunCancelledError("Operation cancelled")


def install_signal_handlers(
    token: CancellationToken,
    signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
    on_cancel: Callable[[], None] | None = None,
) -> Callable[[], None]:
    """Cancel the token when the process receives a termination signal.

    The first signal requests a clean stop. A second signal falls back to
    the previous handler, so an impatient Ctrl+C still interrupts at once.

    Args:
        token: Token to cancel
        signals: Signals to handle
        on_cancel: Optional callback run after the first signal

    Returns:
        Function restoring the previous handlers
    """
    previous: dict[signal.Signals, Any] = {}

    def restore() -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    def handler(signum: int, frame: Any) -> None:
        if token.is_cancelled:
            restore()
            signal.raise_signal(signum)
            return
        token.cancel()
        if on_cancel is not None:
            on_cancel()

    for signum in signals:
        previous[signum] = signal.getsignal(signum)
        signal.signal(signum, handler)

    return restore
