"""FastAPI application factory for the billing service.

Every collaborator is built here and attached to ``app.state``; routes
reach them through dependencies, so two applications (or two tests) never
share a store, renderer or domain.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.domain import Domain

from billing.api.errors import register_error_handlers
from billing.api.routes import invoice_router, quote_router
from billing.config import BillingSettings
from billing.document.cache import DocumentCacheService
from billing.invoice.service import InvoiceLifecycle
from billing.invoice.statistics import StatisticsAggregator
from billing.quote.service import QuoteLifecycle
from billing.rendering import DocumentRenderer, build_renderer
from billing.storage import BlobStore, build_blob_store
from billing.utils.logging import bind_request_context, clear_request_context


def create_app(
    domain: Domain,
    settings: BillingSettings | None = None,
    blob_store: BlobStore | None = None,
    renderer: DocumentRenderer | None = None,
) -> FastAPI:
    settings = settings or BillingSettings.from_env()

    app = FastAPI(
        title="Billing API",
        description="Invoice and quote lifecycles and document artifacts",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.domain = domain
    app.state.settings = settings
    app.state.lifecycle = InvoiceLifecycle(domain, settings=settings)
    app.state.quotes = QuoteLifecycle(domain, settings=settings)
    app.state.statistics = StatisticsAggregator(domain)
    app.state.document_cache = DocumentCacheService(
        domain,
        blob_store=blob_store or build_blob_store(settings),
        renderer=renderer or build_renderer(settings),
        settings=settings,
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the billing domain context for each request."""
        bind_request_context(method=request.method, path=request.url.path)
        try:
            with domain.domain_context():
                return await call_next(request)
        finally:
            clear_request_context()

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": domain.name})

    register_error_handlers(app)
    app.include_router(invoice_router)
    app.include_router(quote_router)
    return app
