# This module contains a custom formatter for logging messages with different log levels.
import logging
from typing import Optional

class CustomFormatter(logging.Formatter):
    """
    A custom formatter for logging messages with different log levels.

    Attributes:
        grey (str): ANSI escape sequence for grey color.
        yellow (str): ANSI escape sequence for yellow color.
        red (str): ANSI escape sequence for red color.
        bold_red (str): ANSI escape sequence for bold red color.
        reset (str): ANSI escape sequence to reset color.
        format (str): The log message format.
        FORMATS (dict): A dictionary mapping log levels to their respective log message formats.

    Usage:
        logger = get_logger(__name__)
        logger.info("Fetched 12 Tweets.")
    """
    grey = "\x1b[37;20m"
    yellow = "\x1b[33;20m"
    red = "\x1b[31;20m"
    bold_red = "\x1b[31;1m"
    dark_grey = "\x1b[30;1m"
    reset = "\x1b[0m"
    format = '[%(levelname)s] %(asctime)s - %(message)s'

    FORMATS = {
        logging.DEBUG: dark_grey + format + reset,
        logging.INFO: grey + format + reset,
        logging.WARNING: yellow + format + reset,
        logging.ERROR: red + format + reset,
        logging.CRITICAL: bold_red + format + reset
    }

    def format(self, record):
        """
        Formats the log record based on its log level.

        Args:
            record (logging.LogRecord): The log record to be formatted.

        Returns:
            str: The formatted log message.
        """
        log_fmt = self.FORMATS.get(record.levelno)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


ROOT_LOGGER_NAME = "tccrawler"

_root = logging.getLogger(ROOT_LOGGER_NAME)


def _ensure_console_handler() -> None:
    """Attach the coloured console handler to the application logger once."""
    if any(getattr(h, "_crawler_console", False) for h in _root.handlers):
        return
    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG)
    ch.setFormatter(CustomFormatter())
    ch._crawler_console = True
    _root.addHandler(ch)
    _root.setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger that writes through the application's console handler.

    Args:
        name: Usually the calling module's __name__.

    Returns:
        logging.Logger: A child of the application logger.
    """
    _ensure_console_handler()
    return _root.getChild(name)


def setup_file_logging(log_file: Optional[str], level: int = logging.INFO) -> None:
    """
    Set the application log level and optionally mirror records to a file.

    Args:
        log_file: Path of the log file, or None for console only.
        level: Logging level for the application logger.
    """
    _ensure_console_handler()
    _root.setLevel(level)
    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter('[%(levelname)s] %(asctime)s - %(name)s - %(message)s'))
        _root.addHandler(fh)
