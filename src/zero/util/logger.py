"""
Logging for Zero.

Every module logger is a child of the ``zero`` logger, which owns two
handlers: one printing through prompt_toolkit so log lines do not break the
operator console prompt, and one writing a rotating session file under
``logs/``. Handlers are attached once, the first time any logger is requested.
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

ROOT_LOGGER_NAME = "zero"
LOGS_DIR: Path = (Path(__file__).parents[3] / "logs").resolve()

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
FILE_STAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
RESET = "\033[0m"

# Libraries whose chatter below ERROR is dropped
QUIET_LIBRARIES = ("discord", "websockets", "aiohttp", "aiosqlite", "asyncio")


class LevelColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        return f"{color}{text}{RESET}" if color else text


class ConsoleSafeHandler(logging.Handler):
    """Emit records with ``print_formatted_text`` so they render above the active prompt."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


def session_log_path(now: datetime | None = None) -> Path:
    """Log file of this process.

    A console restart re-executes the process within a few seconds; the file
    written to in the last minute is reused so one session stays in one file.
    """
    now = now or datetime.now()
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    recent = [
        path for path in LOGS_DIR.glob("zero-*.log")
        if now.timestamp() - path.stat().st_mtime < 60
    ]
    if recent:
        return max(recent, key=lambda path: path.stat().st_mtime)
    return LOGS_DIR / f"zero-{now.strftime(FILE_STAMP_FORMAT)}.log"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root
    root.setLevel(logging.DEBUG)
    root.propagate = False

    console = ConsoleSafeHandler(level=logging.INFO)
    if sys.stderr.isatty():
        console.setFormatter(LevelColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    else:
        console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(console)

    log_file = RotatingFileHandler(
        session_log_path(), maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
    )
    log_file.setLevel(logging.DEBUG)
    log_file.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(log_file)

    for library in QUIET_LIBRARIES:
        logging.getLogger(library).setLevel(logging.ERROR)
    return root


def get_logger(name: str) -> logging.Logger:
    """Return the ``zero.<name>`` logger, setting up the shared handlers on first use."""
    _configure_root()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def handle_exception(exception_type, exception_instance, exception_traceback) -> None:
    """``sys.excepthook`` that logs uncaught exceptions; Ctrl+C keeps its default behavior."""
    if issubclass(exception_type, KeyboardInterrupt):
        sys.__excepthook__(exception_type, exception_instance, exception_traceback)
        return
    get_logger("main").critical(
        "Uncaught exception", exc_info=(exception_type, exception_instance, exception_traceback)
    )
