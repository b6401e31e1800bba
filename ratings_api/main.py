"""FastAPI application entry point.

Provider Ratings API - cached Trustpilot and Google ratings for money-transfer providers.
"""

import asyncio
from contextlib import asynccontextmanager, suppress
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ratings_api.models import rating_model_for
from ratings_api.routes import api_router
from ratings_api.routes.ratings import failure_response
from ratings_api.schemas import ErrorDetail, ErrorResponse
from ratings_api.services.rating_tables import load_rating_tables
from ratings_api.services.request_cache import run_cache_sweeper
from ratings_api.services.resolver import (
    build_resolvers,
    clear_resolvers,
    register_resolvers,
    registered_caches,
)
from ratings_api.settings import get_settings
from ratings_api.stores.postgres import init_db, close_db, ping_db
from ratings_api.stores.ratings import SqlRatingStore

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    settings = get_settings()

    # Initialize database. On failure resolvers still run and serve fallback ratings.
    try:
        await init_db()
        await ping_db()
        logger.info("Postgres connected")
    except Exception:
        logger.exception("Postgres init failed")

    # Rating tables + one resolver (with its own request cache) per platform
    tables = load_rating_tables(settings.rating_tables_file)
    register_resolvers(
        build_resolvers(
            tables,
            lambda platform: SqlRatingStore(rating_model_for(platform)),
            cache_ttl_seconds=settings.rating_cache_ttl_seconds,
        )
    )
    sweeper = asyncio.create_task(
        run_cache_sweeper(registered_caches(), settings.rating_cache_sweep_seconds)
    )

    yield

    # Shutdown
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    clear_resolvers()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Cached provider ratings for the money transfer comparison site",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Malformed bodies/params answer 400 in the ratings failure format
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return failure_response(400, "Invalid request", detail=jsonable_encoder(exc.errors()))

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        payload = ErrorResponse(
            error=ErrorDetail(
                code="INTERNAL_ERROR",
                message=str(exc) if settings.debug else "Internal server error",
            )
        )
        return JSONResponse(status_code=500, content=payload.model_dump())

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        """Health check endpoint."""
        return {"ok": True}

    # Include API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "ratings_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
