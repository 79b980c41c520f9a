"""
Progress reporting
==================

The engine never touches presentation directly; it reports through a
``ProgressSink`` that the operator surface binds to a console line, a log
or nothing at all.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO


class ProgressSink:
    """No-op sink, also the base class of the real ones."""

    def report_progress(self, task: str, value: Optional[int] = None, total: Optional[int] = None) -> None:
        """Report the current task; ``value``/``total`` are omitted for indeterminate work."""

    def report_error(self, error: BaseException) -> None:
        pass

    def done(self, message: str = "") -> None:
        pass


NullProgressSink = ProgressSink


class LoggingProgressSink(ProgressSink):
    """Writes progress to the log, throttled to every ``step`` items."""

    def __init__(self, step: int = 100, logger: Optional[logging.Logger] = None):
        self.step = max(1, step)
        self.logger = logger or logging.getLogger(__name__)
        self._last_task: Optional[str] = None

    def report_progress(self, task: str, value: Optional[int] = None, total: Optional[int] = None) -> None:
        if task != self._last_task:
            self._last_task = task
            self.logger.info(task if value is None else f"{task} [{value}/{total}]")
            return
        if value is not None and (value % self.step == 0 or value == total):
            self.logger.info(f"{task} [{value}/{total}]")

    def report_error(self, error: BaseException) -> None:
        self.logger.error(f"Task failed: {error}")

    def done(self, message: str = "") -> None:
        self._last_task = None
        if message:
            self.logger.info(message)


class ConsoleProgressSink(ProgressSink):
    """Single updating console line, like a terminal progress bar."""

    def __init__(self, stream: Optional[TextIO] = None, width: int = 50):
        self.stream = stream or sys.stdout
        self.width = width

    def report_progress(self, task: str, value: Optional[int] = None, total: Optional[int] = None) -> None:
        if value is None or not total:
            line = f"\r{task[:self.width].ljust(self.width)}"
        else:
            percent = int((value / total) * 100)
            line = f"\rProgress: [{value}/{total}] {percent}% - {task[:self.width].ljust(self.width)}"
        self.stream.write(line)
        self.stream.flush()

    def report_error(self, error: BaseException) -> None:
        self.stream.write(f"\n[ERROR] {error}\n")
        self.stream.flush()

    def done(self, message: str = "") -> None:
        self.stream.write("\n")
        if message:
            self.stream.write(f"{message}\n")
        self.stream.flush()
