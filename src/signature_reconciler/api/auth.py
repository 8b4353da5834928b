"""Bearer token authentication for the reconciler API."""

from fastapi import Header, HTTPException

from .config import get_settings


def _check_bearer(authorization: str | None, key: str, detail: str) -> None:
    if not key or authorization != f"Bearer {key}":
        raise HTTPException(status_code=401, detail=detail)


async def verify_worker_token(authorization: str | None = Header(None)) -> None:
    """Validate the caller's bearer token for reconcile requests."""
    _check_bearer(authorization, get_settings().WORKER_API_KEY, "Invalid or missing bearer token")


async def verify_admin_token(authorization: str | None = Header(None)) -> None:
    """Validate the admin bearer token for batch operations."""
    _check_bearer(authorization, get_settings().ADMIN_API_KEY, "Admin token required")
