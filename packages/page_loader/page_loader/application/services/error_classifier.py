"""Normalization of heterogeneous failures into the LoadError taxonomy."""

from __future__ import annotations

import httpx
from pydantic import ValidationError as PydanticValidationError

from page_loader.domain.entities import FetchOutcome
from page_loader.domain.enums import FetchStatus, LoadErrorKind
from page_loader.domain.exceptions import (
    CacheStoreError,
    ConfigValidationError,
    FetchTimeoutError,
    InvalidResourceIdError,
    LoadError,
    PayloadDecodeError,
)
from page_loader.infrastructure.logging import get_logger

logger = get_logger(__name__)

_OUTCOME_KINDS = {
    FetchStatus.NOT_FOUND: LoadErrorKind.NOT_FOUND,
    FetchStatus.FORBIDDEN: LoadErrorKind.FORBIDDEN,
    FetchStatus.TRANSPORT_FAILURE: LoadErrorKind.NETWORK_ERROR,
}

_OUTCOME_MESSAGES = {
    LoadErrorKind.NOT_FOUND: "Page configuration not found: {resource_id}",
    LoadErrorKind.FORBIDDEN: "Insufficient permissions for page: {resource_id}",
    LoadErrorKind.NETWORK_ERROR: "Network error loading page configuration: {resource_id}",
}

_INVALID_CONFIG_ERRORS: tuple[type[BaseException], ...] = (
    ConfigValidationError,
    PayloadDecodeError,
    InvalidResourceIdError,
    PydanticValidationError,
)

_NETWORK_ERRORS: tuple[type[BaseException], ...] = (
    FetchTimeoutError,
    httpx.TransportError,
    httpx.HTTPStatusError,
    TimeoutError,
    OSError,
)


class ErrorClassifier:
    """Maps storage, transport, validation and permission failures to LoadError.

    The classifier only labels failures; it never retries.
    """

    def classify(self, resource_id: str, failure: BaseException | FetchOutcome) -> LoadError:
        """Classify a failure for ``resource_id``.

        Args:
            resource_id: Resource the failure belongs to
            failure: Raised exception or unsuccessful fetch outcome

        Returns:
            LoadError carrying the kind, resource id and original cause
        """
        if isinstance(failure, FetchOutcome):
            return self._classify_outcome(resource_id, failure)

        if isinstance(failure, LoadError):
            return failure

        kind = self.kind_of(failure)
        message = None
        if isinstance(failure, ConfigValidationError | InvalidResourceIdError | CacheStoreError):
            message = failure.message

        error = LoadError(kind, resource_id, message=message, cause=failure)
        logger.debug(
            "Classified load failure",
            extra={
                "resource_id": resource_id,
                "kind": kind.value,
                "error_type": type(failure).__name__,
            },
        )
        return error

    def kind_of(self, failure: BaseException) -> LoadErrorKind:
        """Get the taxonomy bucket for an exception."""
        if isinstance(failure, LoadError):
            return failure.kind
        if isinstance(failure, CacheStoreError):
            return LoadErrorKind.CACHE_ERROR
        if isinstance(failure, _INVALID_CONFIG_ERRORS):
            return LoadErrorKind.INVALID_CONFIG
        if isinstance(failure, _NETWORK_ERRORS):
            return LoadErrorKind.NETWORK_ERROR
        return LoadErrorKind.UNKNOWN

    def _classify_outcome(self, resource_id: str, outcome: FetchOutcome) -> LoadError:
        kind = _OUTCOME_KINDS.get(outcome.status)
        if kind is None:
            return LoadError(
                LoadErrorKind.UNKNOWN,
                resource_id,
                message=f"Unexpected fetch outcome {outcome.status.value} for page: {resource_id}",
            )

        details = {}
        if outcome.status_code is not None:
            details["status_code"] = outcome.status_code

        return LoadError(
            kind,
            resource_id,
            message=_OUTCOME_MESSAGES[kind].format(resource_id=resource_id),
            cause=outcome.cause,
            details=details,
        )
