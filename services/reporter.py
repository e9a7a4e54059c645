"""
Console Reporter Module

Pushes status lines to the application log and draws tqdm progress bars
for long-running batches (detail fetches, downloads, deletions). In a
terminal the current status, such as the rate-limit countdown, is shown
on a tqdm status line that is rewritten in place.
"""

import sys

from tqdm import tqdm

from utils.logger import get_logger

logger = get_logger(__name__)


class ConsoleReporter:
    """Reporter that logs status changes and renders progress with tqdm."""

    def __init__(self, show_progress: bool = True):
        self.show_progress = show_progress
        self.last_status = None
        self.status_line = None

    def status(self, text: str) -> None:
        # Status lines repeat while pages stream in; keep them out of INFO
        if text == self.last_status:
            return
        logger.debug(text)
        self.last_status = text
        if self.show_progress:
            if self.status_line is None:
                self.status_line = tqdm(total=0, bar_format="{desc}", leave=False)
            self.status_line.set_description_str(text)

    def succeed(self, text: str) -> None:
        self.clear_status()
        logger.info(text)

    def fail(self, text: str) -> None:
        self.clear_status()
        logger.error(text)

    def clear_status(self) -> None:
        """Remove the status line from the terminal."""
        if self.status_line is not None:
            self.status_line.close()
            self.status_line = None
        self.last_status = None

    def progress(self, total: int, desc: str) -> tqdm:
        return tqdm(total=total, desc=desc, unit="item", disable=not self.show_progress, leave=False)


class SilentReporter(ConsoleReporter):
    """Reporter without status line or progress bars, used when output is not a terminal."""

    def __init__(self):
        super().__init__(show_progress=False)


def make_reporter(stream=None) -> ConsoleReporter:
    """
    Pick the reporter for the output stream tqdm draws on.

    Args:
        stream: Output stream, defaults to sys.stderr.

    Returns:
        ConsoleReporter: A drawing reporter for a terminal, a SilentReporter otherwise.
    """
    stream = stream if stream is not None else sys.stderr
    isatty = getattr(stream, "isatty", None)
    if isatty is not None and isatty():
        return ConsoleReporter()
    return SilentReporter()
