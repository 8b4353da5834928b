"""POST /reconcile: confirm a signer's completion and finalize the agreement."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from signature_reconciler.errors import ReconcilerError, http_status_for

from ..auth import verify_worker_token

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/reconcile")
async def reconcile(
    payload: dict[str, Any],
    request: Request,
    _auth: None = Depends(verify_worker_token),
):
    """Poll the provider for the role's signature, then apply and dispatch."""
    agreement_id = payload.get("agreement_id")
    role = payload.get("role")

    log = logger.bind(agreement_id=agreement_id, role=role)
    log.info("reconcile.received")

    try:
        outcome = await request.app.state.reconciler.engine.reconcile(agreement_id, role)
    except ReconcilerError as e:
        status_code = http_status_for(e)
        if status_code >= 500:
            log.error("reconcile.failed", error=str(e), error_type=type(e).__name__)
        else:
            log.warning("reconcile.rejected", error=e.message, status_code=status_code)
        return JSONResponse(status_code=status_code, content={"error": e.message})
    except Exception as e:
        log.error("reconcile.failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=500, content={"error": str(e)})

    log.info(
        "reconcile.complete",
        status=outcome.status.value,
        side_effect_failures=outcome.side_effects.failure_count,
    )
    return outcome.to_dict()
