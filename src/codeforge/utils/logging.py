"""Logging for the ``codeforge`` command.

Records go to two places: a rotating ``codeforge.log`` kept in a ``logs``
directory next to the settings file, and short ``codeforge: LEVEL: message``
lines on stderr. ``run`` prints program output on stdout, so stdout is never a
log destination.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import TextIO

__all__ = ["LOG_FILENAME", "log_dir_for", "reset_logging", "setup_logging"]

LOG_FILENAME = "codeforge.log"
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_CLI_FORMAT = "codeforge: %(levelname)s: %(message)s"
_LIBRARY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore")
_INSTALLED_MARK = "_codeforge_installed"


class _TerminalFilter(logging.Filter):
    """Passes CodeForge records at ``threshold`` and library records only when they are errors."""

    def __init__(self, threshold: int) -> None:
        super().__init__()
        self.threshold = threshold

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "codeforge" or record.name.startswith("codeforge."):
            return record.levelno >= self.threshold
        return record.levelno >= logging.ERROR


def log_dir_for(settings_path: Path | str) -> Path:
    """Directory holding ``codeforge.log`` for a given settings file.

    ``CODEFORGE_LOG_DIR`` wins when set, so several settings profiles can share
    one log directory.
    """

    override = os.environ.get("CODEFORGE_LOG_DIR")
    if override:
        return Path(override).expanduser()
    return Path(settings_path).expanduser().parent / "logs"


def setup_logging(
    settings_path: Path | str,
    *,
    debug: bool = False,
    stream: TextIO | None = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """Install the file and terminal handlers, replacing ones from an earlier call.

    Returns the path of the active log file.
    """

    level = logging.DEBUG if debug else logging.INFO
    log_dir = log_dir_for(settings_path)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME

    reset_logging()

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(fmt=_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    terminal_handler = logging.StreamHandler(stream or sys.stderr)
    terminal_handler.addFilter(_TerminalFilter(logging.DEBUG if debug else logging.WARNING))
    terminal_handler.setFormatter(logging.Formatter(fmt=_CLI_FORMAT))

    root = logging.getLogger()
    for handler in (file_handler, terminal_handler):
        setattr(handler, _INSTALLED_MARK, True)
        root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(True)
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_path


def reset_logging() -> None:
    """Detach and close every handler :func:`setup_logging` installed."""

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _INSTALLED_MARK, False):
            root.removeHandler(handler)
            handler.close()
