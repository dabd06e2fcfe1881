"""
Utilities Package - Logging and Exception Handling
"""
from .logging import get_logger, setup_logging
from .exceptions import (
    DiagnosticEngineError,
    StorageError,
    ReportGenerationError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "DiagnosticEngineError",
    "StorageError",
    "ReportGenerationError",
]
