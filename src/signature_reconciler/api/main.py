"""FastAPI application for the signature reconciler service."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from signature_reconciler.clients.docusign_client import DocuSignClient
from signature_reconciler.clients.function_client import FunctionClient
from signature_reconciler.logging import configure_logging
from signature_reconciler.reconciliation.service import ReconcilerService
from signature_reconciler.store.base import EntityStore
from signature_reconciler.store.memory import InMemoryEntityStore
from signature_reconciler.store.postgres import PostgresEntityStore

from .config import get_settings
from .routes.admin import router as admin_router
from .routes.health import router as health_router
from .routes.reconcile import router as reconcile_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize persistent clients at startup, clean up at shutdown."""
    settings = get_settings()
    configure_logging(json_output=settings.LOG_JSON)

    logger.info("lifespan.startup", postgres=bool(settings.DATABASE_URL))

    # Entity store
    store: EntityStore
    if settings.DATABASE_URL:
        pg = PostgresEntityStore(settings.DATABASE_URL)
        await pg.connect()
        await pg.setup_schema()
        store = pg
    else:
        logger.warning("lifespan.in_memory_store")
        store = InMemoryEntityStore()

    provider = DocuSignClient(
        integration_key=settings.DOCUSIGN_INTEGRATION_KEY or None,
        client_secret=settings.DOCUSIGN_CLIENT_SECRET or None,
    )
    functions = FunctionClient(
        base_url=settings.FUNCTIONS_BASE_URL or None,
        api_key=settings.FUNCTIONS_API_KEY or None,
    )

    # Store on app.state for request handlers
    app.state.store = store
    app.state.provider = provider
    app.state.functions = functions
    app.state.reconciler = ReconcilerService.build(store, provider, functions)

    logger.info("lifespan.ready")
    yield

    # Shutdown
    logger.info("lifespan.shutdown")
    await provider.close()
    await functions.close()
    await store.close()


app = FastAPI(
    title="signature-reconciler",
    description="Confirms DocuSign signatures and materializes Deals exactly once",
    lifespan=lifespan,
)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    """Render HTTP errors with the same {"error": ...} body as handled failures."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


app.include_router(health_router)
app.include_router(reconcile_router)
app.include_router(admin_router)
