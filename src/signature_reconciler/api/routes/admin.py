"""POST /admin/reconcile-all: sweep every open agreement once."""

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from signature_reconciler.errors import ReconcilerError, http_status_for

from ..auth import verify_admin_token

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin")


@router.post("/reconcile-all")
async def reconcile_all(
    request: Request,
    limit: int | None = Query(None, ge=1),
    _auth: None = Depends(verify_admin_token),
):
    """Reconcile all agreements that have an envelope and are not fully signed."""
    logger.info("admin.reconcile_all.received", limit=limit)
    try:
        result = await request.app.state.reconciler.sweeper.reconcile_all(limit=limit)
    except ReconcilerError as e:
        logger.error("admin.reconcile_all.failed", error=str(e))
        return JSONResponse(status_code=http_status_for(e), content={"error": e.message})
    except Exception as e:
        logger.error("admin.reconcile_all.failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=500, content={"error": str(e)})

    logger.info("admin.reconcile_all.complete", **result.to_dict())
    return result.to_dict()
