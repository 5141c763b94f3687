"""Decision Surface Error Handling Module

This module defines the error handling system for the data orchestration
core, providing structured error classes with context information.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext provides additional information
- Fetch Taxonomy: Every failed backend call surfaces as one FetchError kind
- Proper Exception Chaining: Original exceptions are preserved
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]

# Default keys to mask in safe_dict for PII protection
SAFE_DICT_MASK_KEYS: tuple[str, ...] = ("user_id",)


class ErrorCode(str, Enum):
    """Error codes for the decision surface core.

    This enum serves as the single source of truth for all error codes
    used throughout the application.
    """

    # Network and API Errors
    NETWORK_UNAVAILABLE = "NETWORK_UNAVAILABLE"
    API_TIMEOUT = "API_TIMEOUT"
    API_SERVER_ERROR = "API_SERVER_ERROR"
    API_DECODE_ERROR = "API_DECODE_ERROR"
    OPERATION_CANCELLED = "OPERATION_CANCELLED"

    # Cache Errors
    CACHE_ERROR = "CACHE_ERROR"
    CACHE_READ_FAILED = "CACHE_READ_FAILED"
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"
    CACHE_CORRUPTED = "CACHE_CORRUPTED"
    CACHE_SERIALIZATION_ERROR = "CACHE_SERIALIZATION_ERROR"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNKNOWN_SOURCE = "UNKNOWN_SOURCE"
    UNKNOWN_SCREEN = "UNKNOWN_SCREEN"

    # Configuration Errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    MISSING_CONFIG = "MISSING_CONFIG"

    # Application Errors
    APPLICATION_ERROR = "APPLICATION_ERROR"
    ORCHESTRATOR_CLOSED = "ORCHESTRATOR_CLOSED"
    CLI_UNEXPECTED_ERROR = "CLI_UNEXPECTED_ERROR"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum, Decimal to primitive types.

    Args:
        value: Input dictionary or None

    Returns:
        Dictionary with primitive values only, or None

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, Decimal):
            coerced[key] = float(val)
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum, Decimal are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContextModel:
    """Context information for errors.

    Only primitive types (str, int, float, bool) are allowed in
    additional_data to ensure safe serialization and prevent sensitive
    data leakage into logs.

    Attributes:
        operation: Optional operation name that caused the error
        source_id: Optional data source the error belongs to
        user_id: Optional user ID (masked in logs)
        additional_data: Optional dict with primitive values only
    """

    operation: str | None = None
    source_id: str | None = None
    user_id: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Post-initialization validation and coercion."""
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def safe_dict(self, *, mask_keys: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Export context as dict with PII masking.

        Args:
            mask_keys: Fields to exclude from output. Defaults to SAFE_DICT_MASK_KEYS.

        Returns:
            Dictionary with masked sensitive fields and guaranteed additional_data key.

        Example:
            >>> context = ErrorContextModel(user_id="12345", operation="load")
            >>> context.safe_dict()
            {'operation': 'load', 'additional_data': {}}
        """
        if mask_keys is None:
            mask_keys = SAFE_DICT_MASK_KEYS

        data: dict[str, Any] = {}
        if self.operation is not None and "operation" not in mask_keys:
            data["operation"] = self.operation
        if self.source_id is not None and "source_id" not in mask_keys:
            data["source_id"] = self.source_id
        if self.user_id is not None and "user_id" not in mask_keys:
            data["user_id"] = self.user_id

        if self.additional_data is not None and "additional_data" not in mask_keys:
            data["additional_data"] = self.additional_data
        else:
            data["additional_data"] = {}

        return data


ErrorContext = ErrorContextModel


class DecisionSurfaceError(Exception):
    """Base exception class for all decision surface errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize DecisionSurfaceError.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error

        formatted_message = f"{code.value}: {message}"
        super().__init__(formatted_message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging with PII masking.

        Returns:
            Dictionary representation of the error with code, message,
            masked context, and original_error (if present)
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class DomainError(DecisionSurfaceError):
    """Domain-specific errors.

    These errors occur when domain constraints are not met.

    Examples:
    - Unknown source identifiers
    - Invalid date ranges
    """


class InfrastructureError(DecisionSurfaceError):
    """Infrastructure-related errors.

    These errors occur when interacting with external systems
    like the backend service or the durable cache.
    """


class ApplicationError(DecisionSurfaceError):
    """Application-level errors.

    These errors occur at the application layer, typically
    related to configuration, command handling, or lifecycle misuse.
    """


class FetchErrorKind(str, Enum):
    """Kinds of backend fetch failure."""

    NETWORK_UNAVAILABLE = "network_unavailable"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    DECODE_ERROR = "decode_error"
    CANCELLED = "cancelled"


class FetchError(InfrastructureError):
    """Base class for a failed backend call.

    Every failure crossing the remote boundary is normalized to one of
    the subclasses below before it reaches a SourceController.
    """

    kind: FetchErrorKind = FetchErrorKind.NETWORK_UNAVAILABLE
    default_code: ErrorCode = ErrorCode.NETWORK_UNAVAILABLE

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        code: ErrorCode | None = None,
    ) -> None:
        super().__init__(
            code or self.default_code,
            message,
            context,
            original_error,
        )

    @property
    def is_user_visible(self) -> bool:
        """Whether this failure may ever be shown to the user."""
        return self.kind is not FetchErrorKind.CANCELLED

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FetchError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.code == other.code
            and self.message == other.message
        )

    def __hash__(self) -> int:
        return hash((type(self), self.code, self.message))


class NetworkUnavailableError(FetchError):
    """The backend could not be reached."""

    kind = FetchErrorKind.NETWORK_UNAVAILABLE
    default_code = ErrorCode.NETWORK_UNAVAILABLE


class FetchTimeoutError(FetchError):
    """The backend did not answer in time."""

    kind = FetchErrorKind.TIMEOUT
    default_code = ErrorCode.API_TIMEOUT


class ServerError(FetchError):
    """The backend answered with an error status."""

    kind = FetchErrorKind.SERVER_ERROR
    default_code = ErrorCode.API_SERVER_ERROR

    def __init__(
        self,
        status: int,
        message: str | None = None,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.status = status
        super().__init__(
            message or f"Backend responded with status {status}",
            context,
            original_error,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServerError):
            return NotImplemented
        return self.status == other.status and self.message == other.message

    def __hash__(self) -> int:
        return hash((type(self), self.status, self.message))

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status"] = self.status
        return data


class DecodeError(FetchError):
    """The backend payload could not be decoded."""

    kind = FetchErrorKind.DECODE_ERROR
    default_code = ErrorCode.API_DECODE_ERROR


class FetchCancelledError(FetchError):
    """The shared backend call was aborted before it produced a result.

    Internal signal only; never stored in a SourceState.
    """

    kind = FetchErrorKind.CANCELLED
    default_code = ErrorCode.OPERATION_CANCELLED


def create_unknown_source_error(source_id: str, operation: str | None = None) -> DomainError:
    """Create an unknown source error with context."""
    return DomainError(
        ErrorCode.UNKNOWN_SOURCE,
        f"Unknown data source: {source_id}",
        ErrorContext(operation=operation, source_id=source_id),
    )


def create_config_error(
    message: str,
    config_key: str | None = None,
    operation: str | None = None,
    original_error: Exception | None = None,
) -> ApplicationError:
    """Create a configuration error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"config_key": config_key} if config_key else None
    )
    context = ErrorContext(
        operation=operation,
        additional_data=additional_data,
    )
    return ApplicationError(
        ErrorCode.CONFIGURATION_ERROR,
        message,
        context,
        original_error,
    )
