"""
Error handling for the camera store.

Every failure in this service degrades to a safe default return value plus a
log record and, where a person is waiting on the result, a user-facing
notice. This module provides the structured error types used for that
logging, the classifier that maps library exceptions onto them, and the
notice type surfaced to the admin console.
"""

from __future__ import annotations

import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError


class ErrorCategory(Enum):
    """
    Categorization of errors by where they happened.

    BACKEND: Listing table queries or connection failures
    STORAGE: Object storage upload/remove failures
    VALIDATION: Client input rejected before any network call
    FILE_READ: Local reads of uploaded file contents
    UNKNOWN: Anything else
    """

    BACKEND = "backend"
    STORAGE = "storage"
    VALIDATION = "validation"
    FILE_READ = "file_read"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """
    Severity levels for errors and notices.

    LOW: Informational, nothing was lost
    MEDIUM: A single item failed, the operation continued
    HIGH: The whole operation failed and returned its fallback value
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class ErrorContext:
    """
    Context information for debugging a failed operation.
    """

    operation: str
    listing_id: Optional[str] = None
    filename: Optional[str] = None
    bucket: Optional[str] = None
    url: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    additional_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "listing_id": self.listing_id,
            "filename": self.filename,
            "bucket": self.bucket,
            "url": self.url,
            "timestamp": self.timestamp,
            "additional_data": self.additional_data,
        }


@dataclass
class StructuredError:
    """
    Structured error representation with categorization and context.
    """

    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    context: ErrorContext
    original_exception: Optional[BaseException] = None
    stack_trace: Optional[List[str]] = None

    def __post_init__(self):
        if self.original_exception and not self.stack_trace:
            self.stack_trace = traceback.format_exception(
                type(self.original_exception),
                self.original_exception,
                self.original_exception.__traceback__,
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "context": self.context.to_dict(),
        }


class BackendError(Exception):
    """Raised when the listings table cannot be read or written."""

    def __init__(self, error: StructuredError):
        super().__init__(error.message)
        self.error = error


class StorageError(Exception):
    """Raised by bucket storage implementations."""


class ErrorClassifier:
    """
    Utility class for classifying exceptions into structured errors.
    """

    @staticmethod
    def classify_exception(
        exception: BaseException,
        context: ErrorContext,
        severity: ErrorSeverity = ErrorSeverity.HIGH,
    ) -> StructuredError:
        """
        Map an exception raised by one of the libraries we talk to onto a category.

        Args:
            exception: The exception to classify
            context: Context information about the failed operation
            severity: Severity to record; per-item failures pass MEDIUM

        Returns:
            StructuredError with the matching category
        """
        if isinstance(exception, SQLAlchemyError):
            category = ErrorCategory.BACKEND
            label = "Database error"
        elif isinstance(exception, (StorageError, httpx.HTTPError)):
            category = ErrorCategory.STORAGE
            label = "Storage error"
        elif isinstance(exception, (ValueError, ValidationError)):
            category = ErrorCategory.VALIDATION
            label = "Validation error"
        elif isinstance(exception, OSError):
            category = ErrorCategory.FILE_READ
            label = "File error"
        else:
            category = ErrorCategory.UNKNOWN
            label = "Unknown error"

        return StructuredError(
            message=f"{label} during {context.operation}: {exception}",
            category=category,
            severity=severity,
            context=context,
            original_exception=exception,
        )


def log_structured_error(error: StructuredError) -> None:
    """Send a structured error to the diagnostic log."""

    bound = logger.bind(**error.context.to_dict())
    message = f"[{error.category.value.upper()}] {error.message}"
    if error.severity == ErrorSeverity.HIGH:
        bound.error(message)
    elif error.severity == ErrorSeverity.MEDIUM:
        bound.warning(message)
    else:
        bound.info(message)

    if error.stack_trace and error.category == ErrorCategory.UNKNOWN:
        bound.debug("Stack trace for {}: {}", error.message, "".join(error.stack_trace))


def record_failure(
    exception: BaseException,
    operation: str,
    severity: ErrorSeverity = ErrorSeverity.HIGH,
    **context: Any,
) -> StructuredError:
    """Classify and log an exception, returning the structured form."""

    error = ErrorClassifier.classify_exception(
        exception, ErrorContext(operation=operation, **context), severity
    )
    log_structured_error(error)
    return error


@dataclass
class Notice:
    """
    User-facing notification shown by the admin console.
    """

    title: str
    description: str
    variant: str = "default"

    @classmethod
    def warning(cls, title: str, description: str) -> "Notice":
        return cls(title=title, description=description, variant="destructive")

    @property
    def is_warning(self) -> bool:
        return self.variant == "destructive"

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "description": self.description, "variant": self.variant}
