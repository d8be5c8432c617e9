"""
Custom exception classes for the student profile application.

Provides structured error handling with user-friendly messages and proper
error categorization for taxonomy lookups, rating edits, student lookups
and persistence failures.
"""

from __future__ import annotations

from typing import Any


class StudentProfileError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self._get_default_user_message()

    def _get_default_user_message(self) -> str:
        """Provide a user-friendly version of the error message."""
        return "An unexpected error occurred. Please try again."

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class ValidationError(StudentProfileError):
    """Raised when input validation fails."""

    def __init__(
        self, field: str, message: str, value: Any = None, details: dict[str, Any] | None = None
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=f"Validation failed for field '{field}': {message}",
            details=details or {"field": field, "value": value},
            user_message=f"Invalid {field.replace('_', ' ')}: {message}",
        )

    def _get_default_user_message(self) -> str:
        return f"Please check your input for {self.field.replace('_', ' ')} and try again."


class MultipleValidationError(StudentProfileError):
    """Raised when multiple validation errors occur."""

    def __init__(self, errors: list[ValidationError]):
        self.validation_errors = errors
        messages = [f"{e.field}: {e.message}" for e in errors]
        super().__init__(
            message=f"Multiple validation errors: {'; '.join(messages)}",
            details={
                "errors": [
                    {"field": e.field, "message": e.message, "value": e.value} for e in errors
                ]
            },
            user_message="Please correct the following errors and try again.",
        )


class UnknownKeyError(StudentProfileError):
    """Raised when a key outside the fixed competency taxonomy is supplied."""

    def __init__(self, key: Any, kind: str = "taxonomy key"):
        self.key = key
        self.kind = kind
        super().__init__(
            message=f"Unknown {kind}: {key!r}",
            details={"key": key, "kind": kind},
        )

    def _get_default_user_message(self) -> str:
        return f"'{self.key}' is not a recognised {self.kind}."


class RatingError(StudentProfileError):
    """Raised when rating operations fail."""

    def __init__(
        self,
        message: str,
        rating_value: Any = None,
        details: dict[str, Any] | None = None,
    ):
        self.rating_value = rating_value
        super().__init__(
            message=message,
            details=details or {"rating_value": rating_value},
        )

    def _get_default_user_message(self) -> str:
        return "Rating error occurred. Please check your rating and try again."


class InvalidRatingError(RatingError):
    """Raised when an indicator value outside 0..5 is provided."""

    def __init__(self, rating_value: Any):
        super().__init__(
            message=f"Invalid rating value: {rating_value!r}. Must be an integer between 0 and 5",
            rating_value=rating_value,
        )

    def _get_default_user_message(self) -> str:
        return "Please select a rating between 1 and 5, or 0 to clear it."


class StudentNotFoundError(StudentProfileError):
    """Raised when a student id is not present in the collection."""

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(
            message=f"Student with ID {student_id} not found",
            details={"student_id": student_id},
        )

    def _get_default_user_message(self) -> str:
        return "The selected student could not be found. Please select a different student."


class AssessmentNotFoundError(StudentProfileError):
    """Raised when an assessment id is not present in a student's collection."""

    def __init__(self, assessment_id: str, student_id: str | None = None):
        self.assessment_id = assessment_id
        self.student_id = student_id
        super().__init__(
            message=f"Assessment with ID {assessment_id} not found",
            details={"assessment_id": assessment_id, "student_id": student_id},
        )

    def _get_default_user_message(self) -> str:
        return "The selected assessment could not be found. Please refresh and try again."


class StoreError(StudentProfileError):
    """Raised when the persistence store fails."""

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            message=f"Store error during {operation}: {message}",
            details=details or {"operation": operation},
        )

    def _get_default_user_message(self) -> str:
        return "A storage error occurred. Please try again in a moment."


class StoreWriteError(StoreError):
    """Raised when saving the student collection fails.

    The in-memory collection keeps the change; it is written out again on the
    next successful save.
    """

    def __init__(
        self,
        message: str,
        operation: str = "save",
        constraint: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.constraint = constraint
        super().__init__(
            message=message,
            operation=operation,
            details=details or {"operation": operation, "constraint": constraint},
        )

    def _get_default_user_message(self) -> str:
        return "Unable to save your changes. They are kept for now; please try saving again."


class ConfigurationError(StudentProfileError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            details=details or {"config_key": config_key},
            user_message="Configuration error. Please check your settings.",
        )


def handle_database_error(e: Exception, operation: str = "save") -> StoreWriteError:
    """
    Convert generic database exceptions raised while writing into a StoreWriteError.

    Args:
        e: The original exception
        operation: Description of the operation that failed

    Returns:
        StoreWriteError tagged with the violated constraint, if recognisable

    Example:
        >>> try:
        ...     session.commit()
        >>> except Exception as e:
        ...     raise handle_database_error(e, "commit students")
    """
    error_msg = str(e).lower()

    if "unique constraint" in error_msg or "duplicate" in error_msg:
        return StoreWriteError(str(e), operation, constraint="unique")
    elif "not null constraint" in error_msg:
        return StoreWriteError(str(e), operation, constraint="not_null")
    elif "connection" in error_msg or "timeout" in error_msg or "locked" in error_msg:
        return StoreWriteError(str(e), operation, constraint="connection")
    else:
        return StoreWriteError(str(e), operation)


def create_user_friendly_error_message(error: Exception) -> str:
    """
    Create a user-friendly error message from any exception.

    Example:
        >>> error = ValidationError("name", "cannot be empty")
        >>> create_user_friendly_error_message(error)
        'Invalid name: cannot be empty'
    """
    if isinstance(error, StudentProfileError):
        return error.user_message

    error_type = type(error).__name__
    messages = {
        "ValueError": "Invalid input provided. Please check your data and try again.",
        "KeyError": "Required information is missing. Please check your input.",
        "TypeError": "Incorrect data type provided. Please check your input format.",
    }
    return messages.get(
        error_type, "An unexpected error occurred. Please try again or contact support."
    )


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create structured error details for logging.

    Args:
        error: The exception to log
        context: Additional context information

    Returns:
        Dictionary with structured error details
    """
    details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    if isinstance(error, StudentProfileError):
        details.update({"user_message": error.user_message, "error_details": error.details})

    return details
