"""
Common Exception Classes

This module defines the exception hierarchy used across QuizPulse together
with the structured ErrorInfo model used when errors are logged or handed
to callers.

Only validation errors (missing assessment or student) are meant to reach
the submitting caller. Scoring problems are absorbed by the scoring engine,
event delivery problems by the publisher, and malformed events by the live
monitor.
"""

import traceback
from enum import Enum
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator


class ErrorSeverity(Enum):
    """Severity levels for errors"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCode(Enum):
    """Standard error codes for QuizPulse"""
    UNKNOWN_ERROR = "unknown_error"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND_ERROR = "not_found_error"

    # Assessment errors
    ASSESSMENT_NOT_FOUND = "assessment_not_found"
    STUDENT_NOT_FOUND = "student_not_found"
    INVALID_QUESTION_BANK = "invalid_question_bank"
    SCORING_ERROR = "scoring_error"

    # Event errors
    INVALID_EVENT = "invalid_event"
    PUBLISH_ERROR = "publish_error"
    MONITOR_ERROR = "monitor_error"


class ErrorInfo(BaseModel):
    """Structured information about an error"""
    code: ErrorCode
    message: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Optional[Dict[str, Any]] = None
    exception_type: Optional[str] = None
    stack_trace: Optional[List[str]] = None

    class Config:
        use_enum_values = True

    @validator('stack_trace', pre=True)
    def validate_stack_trace(cls, v):
        """Split a stack trace string into lines"""
        if isinstance(v, str):
            return v.splitlines()
        return v


class QuizPulseError(Exception):
    """Base exception class for all QuizPulse errors"""

    code = ErrorCode.UNKNOWN_ERROR
    severity = ErrorSeverity.ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        self.cause = cause

    def to_error_info(self, include_stack_trace: bool = False) -> ErrorInfo:
        """Convert the exception to an ErrorInfo object"""
        details = dict(self.details)
        if self.cause is not None:
            details["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause)
            }

        stack_trace = None
        if include_stack_trace:
            stack_trace = traceback.format_exception(type(self), self, self.__traceback__)

        return ErrorInfo(
            code=self.code,
            message=self.message,
            severity=self.severity,
            details=details or None,
            exception_type=type(self).__name__,
            stack_trace="".join(stack_trace) if stack_trace else None
        )


class NotFoundError(QuizPulseError):
    """Raised when an assessment, student or attempt does not exist."""

    code = ErrorCode.NOT_FOUND_ERROR
    severity = ErrorSeverity.WARNING

    def __init__(self, resource_type: str, resource_id: Any):
        """
        Initialize the not found error.

        Args:
            resource_type: Type of resource that wasn't found
            resource_id: ID of the resource that wasn't found
        """
        code = {
            "Assessment": ErrorCode.ASSESSMENT_NOT_FOUND,
            "Student": ErrorCode.STUDENT_NOT_FOUND,
        }.get(resource_type, ErrorCode.NOT_FOUND_ERROR)
        super().__init__(
            f"{resource_type} with ID {resource_id} not found",
            code=code,
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ValidationError(QuizPulseError):
    """Raised for invalid input supplied by a caller."""

    code = ErrorCode.VALIDATION_ERROR
    severity = ErrorSeverity.WARNING

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(f"Validation error: {message}", details={"errors": errors or {}})
        self.errors = errors or {}


class QuestionBankError(QuizPulseError):
    """Raised when a stored question bank cannot be parsed."""

    code = ErrorCode.INVALID_QUESTION_BANK


class EventValidationError(QuizPulseError):
    """Raised when a raw payload does not deserialize into a lifecycle event."""

    code = ErrorCode.INVALID_EVENT
    severity = ErrorSeverity.WARNING


class PublishError(QuizPulseError):
    """Raised by transports and sinks when an event cannot be delivered."""

    code = ErrorCode.PUBLISH_ERROR


class MonitorError(QuizPulseError):
    """Raised for live monitor misuse, such as opening a monitor twice."""

    code = ErrorCode.MONITOR_ERROR
