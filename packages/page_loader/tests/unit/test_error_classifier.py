"""Unit tests for the error classifier."""

from __future__ import annotations

import httpx
import pytest
from page_loader.application.services import ErrorClassifier
from page_loader.config import LoaderConfig
from page_loader.domain.entities import FetchOutcome
from page_loader.domain.enums import LoadErrorKind
from page_loader.domain.exceptions import (
    CacheStoreError,
    ConfigValidationError,
    FetchTimeoutError,
    InvalidResourceIdError,
    LoadError,
    PayloadDecodeError,
)
from pydantic import ValidationError


@pytest.fixture
def classifier() -> ErrorClassifier:
    """Create a classifier."""
    return ErrorClassifier()


def pydantic_error() -> ValidationError:
    try:
        LoaderConfig(cache={"capacity": -1})
    except ValidationError as e:
        return e
    raise AssertionError("expected a validation error")


class TestExceptionClassification:
    """Test classification of raised exceptions."""

    @pytest.mark.parametrize(
        ("failure", "kind"),
        [
            (CacheStoreError("get", "backend offline"), LoadErrorKind.CACHE_ERROR),
            (ConfigValidationError("p", "missing version"), LoadErrorKind.INVALID_CONFIG),
            (PayloadDecodeError("p", "got list"), LoadErrorKind.INVALID_CONFIG),
            (InvalidResourceIdError("a/b", "bad"), LoadErrorKind.INVALID_CONFIG),
            (FetchTimeoutError("GET", 1.0), LoadErrorKind.NETWORK_ERROR),
            (httpx.ConnectError("refused"), LoadErrorKind.NETWORK_ERROR),
            (httpx.ReadTimeout("slow"), LoadErrorKind.NETWORK_ERROR),
            (TimeoutError(), LoadErrorKind.NETWORK_ERROR),
            (ConnectionResetError(), LoadErrorKind.NETWORK_ERROR),
            (RuntimeError("boom"), LoadErrorKind.UNKNOWN),
            (KeyError("x"), LoadErrorKind.UNKNOWN),
        ],
    )
    def test_kinds(
        self, classifier: ErrorClassifier, failure: BaseException, kind: LoadErrorKind
    ) -> None:
        """Test each failure family lands in its bucket with the cause kept."""
        error = classifier.classify("dashboard-page", failure)

        assert error.kind == kind
        assert error.resource_id == "dashboard-page"
        assert error.cause is failure

    def test_pydantic_validation_error(self, classifier: ErrorClassifier) -> None:
        """Test pydantic validation errors are invalid configurations."""
        assert classifier.kind_of(pydantic_error()) == LoadErrorKind.INVALID_CONFIG

    def test_http_status_error(self, classifier: ErrorClassifier) -> None:
        """Test HTTP status errors are network errors."""
        request = httpx.Request("GET", "https://api.example.com/ui/pages/x")
        error = httpx.HTTPStatusError(
            "bad gateway", request=request, response=httpx.Response(502, request=request)
        )

        assert classifier.kind_of(error) == LoadErrorKind.NETWORK_ERROR

    def test_load_error_passes_through(self, classifier: ErrorClassifier) -> None:
        """Test an already classified error is returned unchanged."""
        original = LoadError(LoadErrorKind.FORBIDDEN, "dashboard-page")

        assert classifier.classify("dashboard-page", original) is original

    def test_domain_message_kept(self, classifier: ErrorClassifier) -> None:
        """Test validation messages survive classification."""
        failure = ConfigValidationError("dashboard-page", "missing layout", field="layout")

        error = classifier.classify("dashboard-page", failure)

        assert "missing layout" in error.message


class TestOutcomeClassification:
    """Test classification of unsuccessful fetch outcomes."""

    def test_not_found(self, classifier: ErrorClassifier) -> None:
        """Test NOT_FOUND outcome."""
        error = classifier.classify("dashboard-page", FetchOutcome.not_found())

        assert error.kind == LoadErrorKind.NOT_FOUND
        assert error.message == "Page configuration not found: dashboard-page"
        assert error.details["status_code"] == 404

    def test_forbidden(self, classifier: ErrorClassifier) -> None:
        """Test FORBIDDEN outcome."""
        error = classifier.classify("dashboard-page", FetchOutcome.forbidden())

        assert error.kind == LoadErrorKind.FORBIDDEN
        assert error.message == "Insufficient permissions for page: dashboard-page"

    def test_transport_failure(self, classifier: ErrorClassifier) -> None:
        """Test transport failures keep their cause."""
        cause = httpx.ConnectError("refused")

        error = classifier.classify("dashboard-page", FetchOutcome.transport_failure(cause))

        assert error.kind == LoadErrorKind.NETWORK_ERROR
        assert error.cause is cause
        assert error.__cause__ is cause

    def test_unexpected_outcome(self, classifier: ErrorClassifier) -> None:
        """Test outcomes that are not failures classify as UNKNOWN."""
        error = classifier.classify("dashboard-page", FetchOutcome.not_modified())

        assert error.kind == LoadErrorKind.UNKNOWN
