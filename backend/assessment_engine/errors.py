"""
Service Errors

Exception hierarchy raised by the assessment engine. The engine is a library,
so it does not render HTTP responses itself; each error carries a status code
and error code the host application's request handlers can map directly.

Error categories:
- NotFoundError: question/attempt/test missing. The caller cannot proceed.
- InvalidAttemptStateError / EmptyAttemptError: invariant violations that are
  rejected rather than producing a nonsensical result.
- LLMError: judgment/generation call failures. These never leave the engine;
  the generation gateways convert them into fallback values.

Usage:
    from assessment_engine.errors import NotFoundError

    raise NotFoundError(f"Question {question_id} not found")
"""

from typing import Optional


class ServiceError(Exception):
    """
    Base exception for service errors.

    Provides consistent error handling with:
    - HTTP status code
    - Error code for categorization
    - Optional details for debugging

    Example:
        raise ServiceError("Database connection failed", status_code=503)
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details


class LLMError(ServiceError):
    """
    LLM provider error.

    Raised when LLM API calls fail or return an unusable payload.
    """

    status_code = 502
    error_code = "llm_error"


class ValidationError(ServiceError):
    """
    Data validation error.

    Raised when input data fails validation.
    """

    status_code = 422
    error_code = "validation_error"


class NotFoundError(ServiceError):
    """
    Resource not found error.

    Raised when a requested question, test or attempt doesn't exist.
    """

    status_code = 404
    error_code = "not_found"


class InvalidAttemptStateError(ServiceError):
    """
    Attempt lifecycle violation.

    Raised when an operation is not allowed in the attempt's current state,
    e.g. submitting to or finishing an abandoned attempt.
    """

    status_code = 409
    error_code = "invalid_attempt_state"


class EmptyAttemptError(ValidationError):
    """Raised when finishing an attempt that has no question records."""

    error_code = "empty_attempt"
