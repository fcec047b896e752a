"""Domain-specific exceptions for the page loader.

Nothing here depends on httpx or the cache backend. ``LoadError`` is the
only exception callers of ``PageConfigLoader.load`` need to handle.
"""

from __future__ import annotations

from typing import Any

from page_loader.domain.enums import LoadErrorKind


class PageLoaderError(Exception):
    """Base exception for all page loader errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code for programmatic handling
            details: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class DomainError(PageLoaderError):
    """Base class for domain-layer errors."""

    pass


class ConfigValidationError(DomainError):
    """Raised when a fetched page configuration fails structural validation."""

    def __init__(
        self, resource_id: str, reason: str, field: str | None = None, **kwargs: Any
    ) -> None:
        """
        Initialize config validation error.

        Args:
            resource_id: Resource whose payload is invalid
            reason: What is wrong with the payload
            field: Offending field, if known
            **kwargs: Additional error details
        """
        message = f"Invalid page configuration '{resource_id}': {reason}"
        details = {
            "resource_id": resource_id,
            "reason": reason,
            **kwargs.pop("details", {}),
        }
        if field:
            details["field"] = field
        super().__init__(message, error_code="INVALID_CONFIG", details=details)
        self.resource_id = resource_id
        self.reason = reason


class InvalidResourceIdError(DomainError):
    """Raised when a resource identifier cannot be used as a cache key or URL segment."""

    def __init__(self, resource_id: str, reason: str, **kwargs: Any) -> None:
        """
        Initialize invalid resource id error.

        Args:
            resource_id: The rejected identifier
            reason: Why it was rejected
            **kwargs: Additional error details
        """
        message = f"Invalid resource id {resource_id!r}: {reason}"
        details = {"resource_id": resource_id, "reason": reason, **kwargs.pop("details", {})}
        super().__init__(message, error_code="INVALID_RESOURCE_ID", details=details)
        self.resource_id = resource_id


class LoadError(DomainError):
    """Classified failure of a page configuration load.

    Attributes:
        kind: Taxonomy bucket the failure belongs to
        resource_id: Resource that failed to load
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        kind: LoadErrorKind,
        resource_id: str,
        message: str | None = None,
        cause: BaseException | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize load error.

        Args:
            kind: Classified error kind
            resource_id: Resource that failed
            message: Optional message, derived from kind when omitted
            cause: Wrapped underlying failure
            **kwargs: Additional error details
        """
        if message is None:
            message = f"Failed to load page configuration '{resource_id}' ({kind.value})"
        details = {
            "kind": kind.value,
            "resource_id": resource_id,
            **kwargs.pop("details", {}),
        }
        if cause is not None:
            details["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(message, error_code=kind.value, details=details)
        self.kind = kind
        self.resource_id = resource_id
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class LoadCancelledError(DomainError):
    """Raised to a single caller whose cancellation token fired while waiting."""

    def __init__(self, resource_id: str, **kwargs: Any) -> None:
        """
        Initialize load cancelled error.

        Args:
            resource_id: Resource the caller stopped waiting for
            **kwargs: Additional error details
        """
        message = f"Load of '{resource_id}' was cancelled by the caller"
        details = {"resource_id": resource_id, **kwargs.pop("details", {})}
        super().__init__(message, error_code="LOAD_CANCELLED", details=details)
        self.resource_id = resource_id


class ApplicationError(PageLoaderError):
    """Base class for application-layer errors."""

    pass


class FetchTimeoutError(ApplicationError):
    """Raised when an operation exceeds its time budget."""

    def __init__(self, operation: str, timeout_seconds: float, **kwargs: Any) -> None:
        """
        Initialize timeout error.

        Args:
            operation: Operation that timed out
            timeout_seconds: Timeout duration in seconds
            **kwargs: Additional error details
        """
        message = f"Operation '{operation}' timed out after {timeout_seconds} seconds"
        details = {
            "operation": operation,
            "timeout_seconds": timeout_seconds,
            **kwargs.pop("details", {}),
        }
        super().__init__(message, error_code="TIMEOUT", details=details)


class InfrastructureError(PageLoaderError):
    """Base class for infrastructure-layer errors."""

    pass


class CacheStoreError(InfrastructureError):
    """Raised when the cache store cannot read or write an entry."""

    def __init__(
        self, operation: str, reason: str, resource_id: str | None = None, **kwargs: Any
    ) -> None:
        """
        Initialize cache store error.

        Args:
            operation: Store operation that failed (get, put, snapshot, ...)
            reason: Failure reason
            resource_id: Affected resource, if the failure is key-specific
            **kwargs: Additional error details
        """
        message = f"Cache store {operation} failed"
        if resource_id:
            message += f" for '{resource_id}'"
        message += f": {reason}"
        details = {
            "operation": operation,
            "reason": reason,
            **kwargs.pop("details", {}),
        }
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message, error_code="CACHE_ERROR", details=details)
        self.resource_id = resource_id


class PayloadDecodeError(InfrastructureError):
    """Raised when a 200 response body is not a JSON object."""

    def __init__(self, resource_id: str, reason: str, **kwargs: Any) -> None:
        """
        Initialize payload decode error.

        Args:
            resource_id: Resource whose body could not be decoded
            reason: Decoder failure description
            **kwargs: Additional error details
        """
        message = f"Response body for '{resource_id}' is not a JSON object: {reason}"
        details = {"resource_id": resource_id, "reason": reason, **kwargs.pop("details", {})}
        super().__init__(message, error_code="PAYLOAD_DECODE_ERROR", details=details)
        self.resource_id = resource_id
