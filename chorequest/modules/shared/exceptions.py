"""
Domain exceptions for ChoreQuest.

Purpose
-------
Define the structured, domain-specific exception hierarchy for the recurring
quest engine. These are raised by pure helpers (timezone windows, recurrence
patterns) and by services for data problems in family configuration. The
engine converts them into per-template error sentences on its result objects.

Design Notes
------------
- All domain exceptions inherit from `ChoreQuestDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.exc import DBAPIError

from chorequest.core.exceptions import (
    ChoreQuestInfrastructureException,
    ErrorSeverity,
)


class ChoreQuestDomainException(Exception):
    """
    Base exception for all ChoreQuest domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise ChoreQuestDomainException(
        ...     "Template cannot be generated",
        ...     {"template_id": "t1"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ValidationError(ChoreQuestDomainException):
    """
    Raised when a value fails domain validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class InvalidTimezoneError(ValidationError):
    """Raised for a timezone string that is not a known IANA zone."""

    def __init__(self, timezone_name: Any) -> None:
        self.timezone_name = timezone_name
        super().__init__("timezone", f"Invalid timezone: {timezone_name}")


class UnknownRecurrencePatternError(ValidationError):
    """Raised when a template names a recurrence pattern with no strategy."""

    def __init__(self, pattern: Any) -> None:
        self.pattern = pattern
        super().__init__(
            "recurrence_pattern", f"Unknown recurrence pattern: {pattern}"
        )


class MissingQuestActorError(ChoreQuestDomainException):
    """
    Raised when no user can be recorded as the creator of generated quests.

    A family needs a Guild Master, or the deployment must configure
    ``recurring_quests.system_actor_id``.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, family_id: str) -> None:
        self.family_id = family_id
        super().__init__(
            f"No Guild Master or system actor available for family {family_id}",
            details={"family_id": family_id},
            error_code="MISSING_QUEST_ACTOR",
        )


def describe_error(exc: BaseException) -> str:
    """
    Human-readable reason for an error, suitable for result error lists.

    Structured exceptions contribute their bare message and driver errors
    their driver message (without the SQL statement); anything else
    contributes ``str(exc)``.
    """
    if isinstance(exc, (ChoreQuestDomainException, ChoreQuestInfrastructureException)):
        return exc.message
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig) or type(exc.orig).__name__
    return str(exc) or type(exc).__name__
