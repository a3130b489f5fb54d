"""
Lawyer Directory Moderation API - Main Application.

FastAPI application with CORS enabled for frontend communication.

The lifespan builds one ReviewModerationStore and one LeadAggregator over a
shared CollectionClient, starts their subscriptions, and releases them on
shutdown.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from domain.errors import ModerationError
from repositories.client import create_supabase_client
from repositories.collection_client import CollectionClient, SupabaseCollectionClient
from services.lead_aggregator import LeadAggregator
from services.lead_intake_service import LeadIntakeService
from services.review_moderation_store import ReviewModerationStore

logger = logging.getLogger(__name__)


def create_app(collection_client: Optional[CollectionClient] = None) -> FastAPI:
    """
    Build the application.

    When `collection_client` is None the lifespan connects to Supabase using
    the environment settings; tests pass an in-memory client instead.
    """

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = collection_client
        if client is None:
            client = SupabaseCollectionClient(await create_supabase_client())

        store = ReviewModerationStore(client)
        aggregator = LeadAggregator(client)
        app.state.review_store = store
        app.state.lead_aggregator = aggregator
        app.state.intake_service = LeadIntakeService(client)

        await store.start()
        await aggregator.start()
        logger.info("Moderation API started")
        try:
            yield
        finally:
            await aggregator.close()
            await store.close()
            logger.info("Moderation API subscriptions released")

    app = FastAPI(
        title="Lawyer Directory Moderation API",
        description="Review moderation, lead intake and lead triage",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # TODO: Restrict origins to the directory frontend once its domain is fixed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ModerationError)
    async def moderation_error_handler(request: Request, exc: ModerationError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.url.path} failed: {exc.code}",
            extra={"code": exc.code, "status_code": exc.status_code, "path": request.url.path},
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health", tags=["Health"])
    def health_check(request: Request):
        """
        Health check endpoint.

        Reports "degraded" while either store serves a stale view.
        """
        store: ReviewModerationStore = request.app.state.review_store
        aggregator: LeadAggregator = request.app.state.lead_aggregator
        stale = store.stale or aggregator.stale
        return {
            "status": "degraded" if stale else "healthy",
            "version": __version__,
            "service": "lawyer-directory-moderation-api",
        }

    @app.get("/", tags=["Root"])
    def root():
        """
        Root endpoint with API information.
        """
        return {
            "message": "Lawyer Directory Moderation API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    from api.routers import leads, moderation, reviews

    app.include_router(reviews.router, prefix="/api/v1", tags=["Reviews"])
    app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])
    app.include_router(moderation.router, prefix="/api/v1", tags=["Moderation"])

    return app


app = create_app()
