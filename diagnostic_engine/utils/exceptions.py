"""
Custom Exception Hierarchy

Incomplete input and unknown visit ids are not errors in this engine;
only the storage and export collaborators raise.
"""
from typing import Optional, Dict, Any


class DiagnosticEngineError(Exception):
    """Base exception for all diagnostic engine errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class StorageError(DiagnosticEngineError):
    """The durable visit store could not be read or written."""

    def __init__(
        self,
        message: str,
        path: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="STORAGE_ERROR",
            details={"path": path, **(details or {})}
        )
        self.path = path


class ReportGenerationError(DiagnosticEngineError):
    """Errors during PDF / CSV export."""

    def __init__(
        self,
        message: str,
        report_type: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="REPORT_ERROR",
            details={"report_type": report_type, **(details or {})}
        )
        self.report_type = report_type
