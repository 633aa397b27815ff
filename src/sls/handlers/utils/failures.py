"""
Failure taxonomy shared by the toolkit.

Every error raised on purpose by the toolkit derives from ``BaseServiceError``.
The error class is the failure kind: callers classify with ``isinstance`` or the
``is_*`` helpers, and ``wrap`` adds operation context while keeping the class so
classification survives as errors cross layers.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, List, Optional


class ErrorSeverity(str, Enum):
    """Error severity levels for classification."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ErrorCategory(str, Enum):
    """Error categories, one per failure kind."""
    NOT_FOUND = "NOT_FOUND"
    SYSTEM = "SYSTEM"
    VALIDATION = "VALIDATION"
    INVALID_PARAM = "INVALID_PARAM"
    INVALID_STATE = "INVALID_STATE"
    CONFLICT = "CONFLICT"
    TIMEOUT = "TIMEOUT"
    PANIC = "PANIC"
    MULTIPLE = "MULTIPLE"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"


class BaseServiceError(Exception):
    """Base exception class for toolkit failures."""

    def __init__(
        self,
        message: str,
        error_code: str = "SYSTEM_ERROR",
        severity: ErrorSeverity = ErrorSeverity.HIGH,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        status_code: Optional[int] = None,
        rest_message: Optional[str] = None,
        fields: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.category = category
        self.status_code = status_code
        self.rest_message = rest_message
        self.fields = fields or {}
        self.error_id = str(uuid.uuid4())

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "error_id": self.error_id,
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "status_code": self.status_code,
            "fields": self.fields or None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class NotFoundError(BaseServiceError):
    """Raised when an entity (parameter, feature) does not exist."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.NOT_FOUND,
            **kwargs,
        )


class SystemFailureError(BaseServiceError):
    """Raised for unexpected backend, transport or serialization faults."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="SYSTEM_ERROR",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.SYSTEM,
            **kwargs,
        )


class ValidationError(BaseServiceError):
    """Raised when input does not satisfy a domain rule."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.VALIDATION,
            **kwargs,
        )


class InvalidParamError(BaseServiceError):
    """Raised when a caller supplied argument is malformed or missing."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="INVALID_PARAM",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.INVALID_PARAM,
            **kwargs,
        )


class InvalidStateError(BaseServiceError):
    """Raised when a component is used before it is fully initialized."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="INVALID_STATE",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.INVALID_STATE,
            **kwargs,
        )


class ConflictError(BaseServiceError):
    """Raised when a write would replace a differing value it may not replace."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="CONFLICT",
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.CONFLICT,
            **kwargs,
        )


class InvocationTimeoutError(BaseServiceError):
    """Raised when a handler does not finish inside its time budget."""

    def __init__(self, message: str = "invocation timeout", **kwargs: Any):
        super().__init__(
            message=message,
            error_code="TIMEOUT",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.TIMEOUT,
            **kwargs,
        )


class PanicError(BaseServiceError):
    """Raised in place of an unexpected exception recovered from handler code."""

    def __init__(
        self,
        recovered: Any,
        stack: Optional[List[str]] = None,
        message: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message=message or f"invocation panic: {recovered}",
            error_code="PANIC",
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.PANIC,
            **kwargs,
        )
        self.recovered = recovered
        self.stack = stack or []


class NotAuthorizedError(BaseServiceError):
    """Raised when the caller is not allowed to perform the request."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="NOT_AUTHORIZED",
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.NOT_AUTHORIZED,
            **kwargs,
        )


class NotAuthenticatedError(BaseServiceError):
    """Raised when the caller identity could not be established."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="NOT_AUTHENTICATED",
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.NOT_AUTHENTICATED,
            **kwargs,
        )


class MultiError(BaseServiceError):
    """
    Aggregate of failures from a batch operation.

    ``partial`` holds whatever results the batch obtained before or between the
    failures, so callers can still use them.
    """

    def __init__(
        self,
        errors: Optional[List[Exception]] = None,
        partial: Any = None,
        message: Optional[str] = None,
    ):
        self.errors: List[Exception] = list(errors or [])
        super().__init__(
            message=message or self._describe(self.errors),
            error_code="MULTIPLE_ERRORS",
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.MULTIPLE,
        )
        self.partial = partial

    @staticmethod
    def _describe(errors: List[Exception]) -> str:
        if not errors:
            return "no errors"
        details = "; ".join(str(e) for e in errors)
        return f"{len(errors)} error(s) occurred: {details}"

    def append(self, error: Exception) -> "MultiError":
        self.errors.append(error)
        self.message = self._describe(self.errors)
        self.args = (self.message,)
        return self

    def __len__(self) -> int:
        return len(self.errors)

    def error_or_none(self) -> Optional["MultiError"]:
        """Return self when at least one error was collected."""
        return self if self.errors else None


def wrap(error: Exception, message: str) -> BaseServiceError:
    """
    Add operation context to an error without changing its kind.

    Toolkit errors keep their class and attributes; anything else becomes a
    ``SystemFailureError``. The original error is kept as ``__cause__``.
    """
    if isinstance(error, BaseServiceError):
        wrapped = error.__class__.__new__(error.__class__)
        wrapped.__dict__.update(error.__dict__)
        wrapped.message = f"{message}: {error.message}"
        wrapped.args = (wrapped.message,)
    else:
        wrapped = SystemFailureError(f"{message}: {error}")
    wrapped.__cause__ = error
    return wrapped


def _has_kind(error: Optional[BaseException], kind: type) -> bool:
    seen = set()
    while error is not None and id(error) not in seen:
        if isinstance(error, kind):
            return True
        seen.add(id(error))
        error = error.__cause__
    return False


def is_not_found(error: Optional[BaseException]) -> bool:
    return _has_kind(error, NotFoundError)


def is_system(error: Optional[BaseException]) -> bool:
    return _has_kind(error, SystemFailureError)


def is_conflict(error: Optional[BaseException]) -> bool:
    return _has_kind(error, ConflictError)


def is_timeout(error: Optional[BaseException]) -> bool:
    return _has_kind(error, InvocationTimeoutError)


def is_panic(error: Optional[BaseException]) -> bool:
    return _has_kind(error, PanicError)


def is_not_authorized(error: Optional[BaseException]) -> bool:
    return _has_kind(error, NotAuthorizedError)


def is_not_authenticated(error: Optional[BaseException]) -> bool:
    return _has_kind(error, NotAuthenticatedError)


def get_http_status_code(error: BaseException) -> int:
    """Map a failure to the HTTP status used by API Gateway responses."""
    if is_panic(error):
        return HTTPStatus.BAD_GATEWAY.value
    if is_timeout(error):
        return HTTPStatus.GATEWAY_TIMEOUT.value
    if isinstance(error, BaseServiceError) and error.status_code:
        return error.status_code
    if is_not_found(error):
        return HTTPStatus.NOT_FOUND.value
    if is_not_authorized(error):
        return HTTPStatus.UNAUTHORIZED.value
    if is_not_authenticated(error):
        return HTTPStatus.FORBIDDEN.value
    return HTTPStatus.INTERNAL_SERVER_ERROR.value
