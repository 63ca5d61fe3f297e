"""Custom exceptions for notebridge.

Provides a structured exception hierarchy with error codes and
machine-readable error information for the server boundary.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001

    # Corpus / storage errors (4xxx)
    CORPUS_DIR_MISSING = 4001
    CORPUS_READ_FAILED = 4002

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    INVALID_LIMIT = 7002


class NotebridgeError(Exception):
    """Base exception for all notebridge errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NoteNotFoundError(NotebridgeError):
    """Raised when a note id is absent from the corpus."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note with ID '{note_id}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id}
        )
        self.note_id = note_id


class CorpusLoadError(NotebridgeError):
    """Raised when the notes directory cannot be read."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.CORPUS_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if path:
            # Don't expose full paths in error messages
            details["path_hint"] = path.split("/")[-1] if "/" in path else path
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.path = path
        self.original_error = original_error


class ValidationError(NotebridgeError):
    """Raised for invalid tool arguments."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]  # Truncate for safety

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


def validate_limit(limit: int, field: str = "limit") -> int:
    """Reject negative result limits at the server boundary."""
    if limit < 0:
        raise ValidationError(
            f"{field} must be >= 0",
            field=field,
            value=limit,
            code=ErrorCode.INVALID_LIMIT,
        )
    return limit
