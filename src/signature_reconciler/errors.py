"""
Custom exceptions and error handling for the signature reconciler.

Provides:
- Typed exception hierarchy for request, lookup, configuration and client failures
- Error context preservation for debugging
- Partial success handling for best-effort fan-out and batch sweeps
- HTTP status mapping for the API layer
"""

from dataclasses import dataclass, field
from typing import Any


class ReconcilerError(Exception):
    """Base exception for all signature reconciler errors."""

    status_code: int = 500

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


# =============================================================================
# Request Errors
# =============================================================================


class RequestError(ReconcilerError):
    """Base class for errors caused by the caller's request."""

    status_code = 400


class UnauthorizedError(RequestError):
    """No caller identity, or the caller may not perform this operation."""

    status_code = 401


class BadRequestError(RequestError):
    """Required input is missing or malformed."""

    status_code = 400


class NoAgentsSelectedError(RequestError):
    """The source DealDraft has an empty selected_agent_ids list."""

    status_code = 400


# =============================================================================
# Lookup Errors
# =============================================================================


class NotFoundError(ReconcilerError):
    """A referenced entity does not exist (yet)."""

    status_code = 404


class AgreementNotFoundError(NotFoundError):
    """No LegalAgreement with the requested id."""

    pass


class DraftNotFoundError(NotFoundError):
    """No DealDraft could be resolved for the agreement."""

    pass


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(ReconcilerError):
    """The service is misconfigured or its provider credentials are unusable."""

    status_code = 500


class ProviderNotConnectedError(ConfigError):
    """No DocuSign connection has been stored."""

    pass


class TokenRefreshError(ConfigError):
    """OAuth refresh-token grant failed."""

    pass


# =============================================================================
# Client Errors
# =============================================================================


class ClientError(ReconcilerError):
    """Base class for errors from external collaborators."""

    pass


class ProviderError(ClientError):
    """Error from the e-signature provider."""

    pass


class ProviderUnavailableError(ProviderError):
    """Provider returned non-2xx or the request timed out."""

    pass


class StoreError(ClientError):
    """Error from the entity store."""

    pass


class UniqueConstraintError(StoreError):
    """A create would violate a unique key (another writer got there first)."""

    pass


class FunctionInvocationError(ClientError):
    """A name-addressed backend function call failed."""

    pass


# =============================================================================
# Partial Success Handling
# =============================================================================


@dataclass
class ItemResult:
    """Result for a single item in a best-effort or batch operation."""

    item_id: str | None
    success: bool
    error: BaseException | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class PartialSuccessResult:
    """
    Result of an operation that may partially succeed.

    Used for fan-out side effects (room, invite, draft deletion, lock) and
    for the agreement sweep, where one failing item must not stop the rest.
    """

    succeeded: list[ItemResult] = field(default_factory=list)
    failed: list[ItemResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def total_count(self) -> int:
        return self.success_count + self.failure_count

    @property
    def all_succeeded(self) -> bool:
        return self.failure_count == 0

    @property
    def partial_success(self) -> bool:
        return self.success_count > 0 and self.failure_count > 0

    def add_success(
        self,
        item_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Record a successful item."""
        self.succeeded.append(
            ItemResult(item_id=item_id, success=True, data=data or {})
        )

    def add_failure(
        self,
        error: BaseException,
        item_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Record a failed item."""
        self.failed.append(
            ItemResult(item_id=item_id, success=False, error=error, data=data or {})
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'success_count': self.success_count,
            'failure_count': self.failure_count,
            'total_count': self.total_count,
            'all_succeeded': self.all_succeeded,
            'succeeded_ids': [r.item_id for r in self.succeeded if r.item_id],
            'failed_ids': [r.item_id for r in self.failed if r.item_id],
            'errors': [
                {'item_id': r.item_id, 'error': str(r.error)}
                for r in self.failed
                if r.error
            ],
        }


# =============================================================================
# Error Handling Utilities
# =============================================================================


def http_status_for(exc: BaseException) -> int:
    """Map an exception to the HTTP status code the API should return."""
    if isinstance(exc, ReconcilerError):
        return exc.status_code
    return 500


def wrap_store_error(exc: Exception, context: dict[str, Any] | None = None) -> StoreError:
    """
    Wrap a storage-driver exception in our typed error hierarchy.

    Args:
        exc: The original exception
        context: Additional context for debugging

    Returns:
        Typed StoreError subclass
    """
    error_str = str(exc).lower()
    ctx = context or {}
    ctx['original_error'] = str(exc)
    ctx['error_type'] = type(exc).__name__

    if 'unique' in error_str or 'duplicate key' in error_str:
        return UniqueConstraintError(
            f"Unique constraint violation: {exc}",
            context=ctx,
        )
    return StoreError(
        f"Entity store error: {exc}",
        context=ctx,
    )
