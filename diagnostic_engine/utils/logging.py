"""
Logging for the engine, the auto-save worker and the HTTP surface.

Console lines look like::

    [2024-03-09T14:30:00.123Z] INFO     [diagnostic_engine.core.workflow.session] saved visit 3f2c... {operator=doc-001}

Callers may attach ``visit_id`` / ``operator_id`` through ``extra=``; they
are appended as a ``{key=value}`` suffix so a visit can be followed through
the log.
"""
import logging
import sys
from typing import Iterable, Optional

from .datetime_utils import format_iso, utc_now

CONTEXT_FIELDS = ("visit_id", "operator_id")

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ("uvicorn.access", "httpx", "reportlab")

_HANDLER_TAG = "_diagnostic_engine"


class StructuredFormatter(logging.Formatter):
    """Single-line ``[time] LEVEL [logger] message {context}`` output."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def _context(self, record: logging.LogRecord) -> str:
        pairs = [
            f"{name.replace('_id', '')}={getattr(record, name)}"
            for name in CONTEXT_FIELDS
            if getattr(record, name, None)
        ]
        return " {" + ", ".join(pairs) + "}" if pairs else ""

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"[{format_iso(utc_now())}] {record.levelname:8} [{record.name}] "
            f"{record.getMessage()}{self._context(record)}"
        )
        if self.use_color and record.levelno in self.LEVEL_COLORS:
            line = f"{self.LEVEL_COLORS[record.levelno]}{line}{self.RESET}"
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Install the engine's console (and optional file) handler on the root logger.

    Handlers installed by a previous call are replaced; handlers owned by
    anything else (pytest's capture, uvicorn) are left alone.

    Args:
        level: Root level name; unknown names fall back to INFO
        log_file: Optional path for a plain-text copy of the log
        quiet: Logger names raised to WARNING
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root_logger.removeHandler(handler)
            handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    handlers[0].setFormatter(StructuredFormatter(use_color=sys.stdout.isatty()))
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(StructuredFormatter(use_color=False))
        handlers.append(file_handler)

    for handler in handlers:
        setattr(handler, _HANDLER_TAG, True)
        root_logger.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; call as ``get_logger(__name__)``."""
    return logging.getLogger(name)
