"""Stockroom FastAPI application and composition root.

Builds the document store and inventory provider from settings, wires them
into the reconciler, the stock lookup client and the sibling managers, and
exposes them over HTTP. Requests under a domain's URL prefix run inside that
domain's context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from accounts.address.address import ADDRESSES
from accounts.api import address_router, payment_method_router
from accounts.defaults.manager import DefaultInvariantManager
from accounts.domain import accounts
from accounts.payment.method import PAYMENT_METHODS
from inventory.api import store_router
from inventory.domain import inventory
from inventory.sync.lease import SyncInProgress, SyncLease
from inventory.sync.reconciler import InventoryReconciler, PreconditionError
from shared.documents import open_document_store
from shared.documents.port import DocumentStore, DocumentStoreError, WriteConflict
from shared.logging import log_context
from shared.provider import build_provider
from shared.provider.port import InventoryProvider, ProviderError
from shared.settings import Settings
from storefront.api import stock_router
from storefront.lookup.client import StockLookupClient

logger = structlog.get_logger(__name__)

inventory.init()
accounts.init()

# ---------------------------------------------------------------------------
# Route-to-domain mapping
# ---------------------------------------------------------------------------
_ROUTE_DOMAIN_MAP = {
    "/stores": inventory,
    "/users": accounts,
}


def _resolve_domain(path: str):
    """Return the domain for the given request path, or None."""
    for prefix, domain in _ROUTE_DOMAIN_MAP.items():
        if path.startswith(prefix):
            return domain
    return None


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
def _error(status_code: int, detail) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return _error(400, exc.messages)

    @app.exception_handler(ObjectNotFoundError)
    async def not_found(request: Request, exc: ObjectNotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(WriteConflict)
    async def write_conflict(request: Request, exc: WriteConflict):
        return _error(409, str(exc))

    @app.exception_handler(DocumentStoreError)
    async def store_unavailable(request: Request, exc: DocumentStoreError):
        logger.error("Document store error", path=request.url.path, error=str(exc))
        return _error(503, str(exc))

    @app.exception_handler(SyncInProgress)
    async def sync_in_progress(request: Request, exc: SyncInProgress):
        return _error(409, str(exc))

    @app.exception_handler(PreconditionError)
    async def precondition_failed(request: Request, exc: PreconditionError):
        return _error(422, str(exc))

    @app.exception_handler(ProviderError)
    async def provider_failed(request: Request, exc: ProviderError):
        logger.warning("Inventory provider error", path=request.url.path, error=str(exc))
        return _error(502, str(exc))


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app(
    settings: Settings | None = None,
    store: DocumentStore | None = None,
    provider: InventoryProvider | None = None,
) -> FastAPI:
    """Build the API with its components; adapters not given come from settings."""
    settings = settings or Settings.from_env()
    store = store or open_document_store(settings.document_store_url, settings.document_store_max_batch)
    provider = provider or build_provider(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await provider.aclose()
        await store.close()

    app = FastAPI(
        title="Stockroom API",
        description="Inventory consistency core: stock lookups, store sync, account defaults",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.provider = provider
    app.state.reconciler = InventoryReconciler(
        store,
        provider,
        lease=SyncLease(store, ttl=settings.sync_lease_ttl),
        batch_size=settings.sync_batch_size,
    )
    app.state.stock_lookup = StockLookupClient(
        provider,
        lookup_timeout=settings.lookup_timeout,
        fallback_location=settings.fallback_location,
    )
    app.state.addresses = DefaultInvariantManager(store, ADDRESSES)
    app.state.payment_methods = DefaultInvariantManager(store, PAYMENT_METHODS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the correct Protean domain context for each request."""
        with log_context(request_id=uuid4().hex, path=request.url.path):
            domain = _resolve_domain(request.url.path)
            if domain is not None:
                with domain.domain_context():
                    return await call_next(request)
            # No domain match: health check, docs, stock lookups
            return await call_next(request)

    _register_error_handlers(app)

    app.include_router(stock_router)
    app.include_router(store_router)
    app.include_router(address_router)
    app.include_router(payment_method_router)

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "environment": settings.environment,
                "provider": settings.inventory_provider,
                "domains": {
                    "inventory": {"name": inventory.name},
                    "accounts": {"name": accounts.name},
                },
            }
        )

    logger.info(
        "Application configured",
        environment=settings.environment,
        provider=settings.inventory_provider,
        document_store=type(store).__name__,
    )
    return app


app = create_app()
