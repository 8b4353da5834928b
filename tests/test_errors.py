"""
Tests for the errors module.
"""

import pytest

from signature_reconciler.errors import (
    AgreementNotFoundError,
    BadRequestError,
    ClientError,
    ConfigError,
    DraftNotFoundError,
    FunctionInvocationError,
    NoAgentsSelectedError,
    NotFoundError,
    PartialSuccessResult,
    ProviderError,
    ProviderNotConnectedError,
    ProviderUnavailableError,
    ReconcilerError,
    RequestError,
    StoreError,
    TokenRefreshError,
    UnauthorizedError,
    UniqueConstraintError,
    http_status_for,
    wrap_store_error,
)


class TestErrorHierarchy:
    """Test error class hierarchy."""

    def test_base_error_with_context(self):
        """Test that base error captures context."""
        error = ReconcilerError(
            "Something went wrong",
            context={"key": "value", "count": 42},
        )

        assert error.message == "Something went wrong"
        assert error.context == {"key": "value", "count": 42}
        assert "key" in str(error)

    def test_base_error_without_context(self):
        """Test error without context."""
        error = ReconcilerError("Simple error")

        assert error.message == "Simple error"
        assert error.context == {}
        assert str(error) == "Simple error"

    def test_error_inheritance(self):
        """Test that errors inherit correctly."""
        assert isinstance(BadRequestError("x"), RequestError)
        assert isinstance(NoAgentsSelectedError("x"), RequestError)
        assert isinstance(UnauthorizedError("x"), RequestError)
        assert isinstance(AgreementNotFoundError("x"), NotFoundError)
        assert isinstance(DraftNotFoundError("x"), NotFoundError)
        assert isinstance(ProviderNotConnectedError("x"), ConfigError)
        assert isinstance(TokenRefreshError("x"), ConfigError)

    def test_client_error_inheritance(self):
        """Test client error hierarchy."""
        assert isinstance(ProviderUnavailableError("x"), ProviderError)
        assert isinstance(ProviderError("x"), ClientError)
        assert isinstance(UniqueConstraintError("x"), StoreError)
        assert isinstance(FunctionInvocationError("x"), ClientError)
        assert isinstance(StoreError("x"), ReconcilerError)


class TestHttpStatus:
    """Test the exception -> HTTP status mapping."""

    @pytest.mark.parametrize(
        "error,status",
        [
            (BadRequestError("Missing agreementId"), 400),
            (NoAgentsSelectedError("No agents selected"), 400),
            (UnauthorizedError("Unauthorized"), 401),
            (AgreementNotFoundError("Agreement not found"), 404),
            (DraftNotFoundError("No DealDraft found"), 404),
            (ProviderNotConnectedError("DocuSign not connected"), 500),
            (TokenRefreshError("Token refresh failed"), 500),
            (StoreError("boom"), 500),
            (RuntimeError("unexpected"), 500),
        ],
    )
    def test_status_codes(self, error, status):
        assert http_status_for(error) == status


class TestErrorWrapping:
    """Test error wrapping utilities."""

    def test_wrap_unique_violation(self):
        """Test wrapping a duplicate key error."""
        original = Exception('duplicate key value violates unique constraint "deal_current_legal_agreement_unique"')
        wrapped = wrap_store_error(original)

        assert isinstance(wrapped, UniqueConstraintError)
        assert wrapped.context["error_type"] == "Exception"

    def test_wrap_generic(self):
        """Test wrapping generic store errors."""
        original = Exception("connection reset by peer")
        wrapped = wrap_store_error(original, context={"entity": "Deal"})

        assert type(wrapped) is StoreError
        assert wrapped.context["entity"] == "Deal"
        assert wrapped.context["original_error"] == "connection reset by peer"


class TestPartialSuccessResult:
    """Test partial success handling."""

    def test_empty_result(self):
        """Test empty partial success result."""
        result = PartialSuccessResult()

        assert result.success_count == 0
        assert result.failure_count == 0
        assert result.total_count == 0
        assert result.all_succeeded is True  # Vacuously true
        assert result.partial_success is False

    def test_all_success(self):
        """Test all items succeeding."""
        result = PartialSuccessResult()
        result.add_success(item_id="room")
        result.add_success(item_id="invite", data={"invite_id": "inv_1"})

        assert result.success_count == 2
        assert result.failure_count == 0
        assert result.all_succeeded is True
        assert result.partial_success is False
        assert result.succeeded[1].data == {"invite_id": "inv_1"}

    def test_partial_success(self):
        """Test partial success scenario."""
        result = PartialSuccessResult()
        result.add_success(item_id="delete_draft")
        result.add_failure(FunctionInvocationError("HTTP 502"), item_id="create_invites")

        assert result.success_count == 1
        assert result.failure_count == 1
        assert result.total_count == 2
        assert result.all_succeeded is False
        assert result.partial_success is True

    def test_to_dict(self):
        """Test dictionary serialization."""
        result = PartialSuccessResult()
        result.add_success(item_id="agr_1")
        result.add_failure(ProviderUnavailableError("HTTP 503"), item_id="agr_2")

        data = result.to_dict()

        assert data["success_count"] == 1
        assert data["failure_count"] == 1
        assert data["total_count"] == 2
        assert data["all_succeeded"] is False
        assert data["succeeded_ids"] == ["agr_1"]
        assert data["failed_ids"] == ["agr_2"]
        assert data["errors"] == [{"item_id": "agr_2", "error": "HTTP 503"}]
