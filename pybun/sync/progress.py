"""Throttled single-line transfer progress display."""

from __future__ import annotations

import time
from typing import Callable, Optional, TextIO

import click

from ..utils import format_size

# Minimum time between two redraws of the progress line (seconds)
DEFAULT_REFRESH_INTERVAL: float = 0.333

BAR_WIDTH: int = 20

# Lines are padded to this width so a shorter line erases a longer one
LINE_WIDTH: int = 79


class ProgressReporter:
    """Renders byte-progress callbacks as a rate display on one line.

    The reporter keeps its stopwatch and last byte count for the whole sync
    run rather than per file. It is not thread-safe: use one reporter per
    concurrent transfer.

    Example output::

         42% [########            ] 4.20 MiB / 10.00 MiB 1.05 MiB/s
    """

    def __init__(
        self,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        stream: Optional[TextIO] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the reporter.

        Args:
            refresh_interval: Minimum seconds between two redraws
            stream: Output stream (defaults to stderr)
            clock: Monotonic clock returning seconds
        """
        self.refresh_interval = refresh_interval
        self._stream = stream
        self._clock = clock
        self._stopwatch_start: Optional[float] = None
        self._last_transferred = 0
        self._line_open = False

    @property
    def running(self) -> bool:
        """True while the stopwatch runs, i.e. a file is in progress."""
        return self._stopwatch_start is not None

    def report(
        self, bytes_transferred: int, expected_bytes: int, percent_complete: float
    ) -> None:
        """Handle one progress callback from the I/O layer.

        Args:
            bytes_transferred: Bytes of the current file moved so far
            expected_bytes: Total size of the current file
            percent_complete: Fraction in [0, 1]
        """
        now = self._clock()
        complete = percent_complete >= 1.0

        if self._stopwatch_start is None:
            # No earlier sample to compute a rate from
            self._stopwatch_start = now
            if complete:
                self._reset()
            return

        elapsed = now - self._stopwatch_start
        if elapsed < self.refresh_interval and not complete:
            return

        refresh_ms = self.refresh_interval * 1000
        elapsed_ms = elapsed * 1000
        delta = max(bytes_transferred - self._last_transferred, 0)
        rate = delta / max(refresh_ms, elapsed_ms) * 1000

        self._last_transferred = bytes_transferred
        self._stopwatch_start = now

        self._render(
            self.format_line(bytes_transferred, expected_bytes, percent_complete, rate),
            final=complete,
        )

        if complete:
            self._reset()

    def finish(self) -> None:
        """End the current file, complete or not.

        Terminates a partially drawn progress line so that following
        output starts on a new line, and stops the stopwatch. Does nothing
        after a file that reported 100%.
        """
        if self._line_open:
            click.echo("", file=self._stream, err=self._stream is None)
        self._reset()

    def callback_for(self, expected_bytes: int) -> Callable[[int, int], None]:
        """Adapt the reporter to a ``(bytes_done, total_bytes)`` callback.

        Args:
            expected_bytes: Size to use when the I/O layer reports no total

        Returns:
            Callback suitable for BunClient.get_file / put_file
        """

        def callback(bytes_done: int, total_bytes: int) -> None:
            total = total_bytes or expected_bytes
            percent = min(bytes_done / total, 1.0) if total else 1.0
            self.report(bytes_done, total, percent)

        return callback

    @staticmethod
    def format_line(
        bytes_transferred: int,
        expected_bytes: int,
        percent_complete: float,
        rate: float,
    ) -> str:
        """Build the padded progress line (without carriage return)."""
        fraction = min(max(percent_complete, 0.0), 1.0)
        filled = int(fraction * BAR_WIDTH)
        bar = "#" * filled + " " * (BAR_WIDTH - filled)
        line = (
            f"{fraction:>4.0%} [{bar}] "
            f"{format_size(bytes_transferred)} / {format_size(expected_bytes)} "
            f"{format_size(rate)}/s"
        )
        return line.ljust(LINE_WIDTH)

    def _render(self, line: str, final: bool) -> None:
        click.echo(
            "\r" + line,
            file=self._stream,
            nl=final,
            err=self._stream is None,
        )
        self._line_open = not final

    def _reset(self) -> None:
        self._line_open = False
        self._last_transferred = 0
        self._stopwatch_start = None
