"""
Main application entry point
"""

import uuid
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from listings.api.routes import router as api_router
from listings.core.config import Settings, get_settings
from listings.core.logging import bind_request_context, get_logger, setup_logging
from listings.db.repository import PropertyRepository
from listings.db.session import Database
from listings.search.revalidation import Revalidator
from listings.search.service import ListingSearchService
from listings.search.writes import ListingWriteService
from listings.utils.cache import build_cache

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    cache=None,
    create_tables: bool = False,
) -> FastAPI:
    """
    Build the application and its services.

    The database and cache are created here once per process and shared
    through ``app.state``; tests pass their own.
    """
    settings = settings or get_settings()
    settings.check_secrets()
    setup_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)

    database = database or Database(settings)
    if cache is None:
        cache = build_cache(settings)
    repository = PropertyRepository(database, timeout=settings.QUERY_TIMEOUT)
    revalidator = Revalidator(cache, repository)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Property listing search with cached, paginated results",
        version="1.0.0"
    )

    app.state.settings = settings
    app.state.database = database
    app.state.cache = cache
    app.state.revalidator = revalidator
    app.state.search_service = ListingSearchService(repository, cache, settings)
    app.state.write_service = ListingWriteService(repository, revalidator)

    cors_origins = settings.get_cors_origins()
    logger.info("Configuring CORS", allowed_origins=cors_origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS", "PATCH"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        bind_request_context(request_id=request_id, path=request.url.path)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.on_event("startup")
    async def startup_event():
        """Initialize services on startup"""
        logger.info("Starting application", environment=settings.ENVIRONMENT)
        await cache.connect()
        if create_tables:
            await database.create_all()

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Stopping application")
        await cache.disconnect()
        await database.dispose()

    @app.get("/")
    async def root():
        return {"message": settings.PROJECT_NAME}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app
