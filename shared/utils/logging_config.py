"""
Logging setup shared by the client library, the view layer and scripts.

``setup_logging`` is called once by entrypoints. Library modules only call
``get_logger(__name__)``.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None, log_to_console: bool = True) -> None:
    """
    Configure the root logger with console and/or file handlers.

    Args:
        log_level: Level name (DEBUG, INFO, ...)
        log_file: Optional path of a log file, parent folders are created
        log_to_console: Whether to attach a stderr handler
    """
    global _configured
    if _configured:
        return

    level = getattr(logging, str(log_level).upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a named logger."""
    return logging.getLogger(name)
