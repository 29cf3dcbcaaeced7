"""
Gym Booking API - Main Application Entry Point

Members book classes subject to membership tier, weekly allowance and
session capacity; pay-as-you-go users spend prepaid credits. Admins manage
attendance and read attendance statistics.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gymbook.api.middleware import RequestLoggingMiddleware
from gymbook.api.router import api_router
from gymbook.core.config import Settings, get_settings
from gymbook.core.exceptions import register_exception_handlers
from gymbook.core.logging import get_logger, setup_logging
from gymbook.core.metrics import metrics_endpoint
from gymbook.db.session import dispose_engine
from gymbook.services.cache_service import close_redis, get_cache_status, get_redis


def create_app(settings: Settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings)
        logger = get_logger(__name__)
        logger.info(
            "application_starting",
            app=settings.APP_NAME,
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
            tenant_timezone=settings.TENANT_TIMEZONE,
        )

        if await get_redis(settings):
            logger.info("redis_ready")
        else:
            logger.warning("redis_unavailable", message="Attendance stats served uncached")

        yield

        await close_redis()
        await dispose_engine()
        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Gym class booking API with capacity-safe admission and credit accounting",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "cache": await get_cache_status(settings),
        }

    @app.get("/metrics", tags=["Health"], include_in_schema=False)
    async def metrics():
        return metrics_endpoint()

    return app


app = create_app(get_settings())
