"""Mall Backend -- FastAPI Application Entry Point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mall.api.v1.router import api_v1_router
from mall.config import settings
from mall.core.exceptions import MallException
from mall.core.logging import configure_logging
from mall.db.session import async_session_factory, engine
from mall.models import Base
from mall.schemas import ErrorDetail, ErrorResponse
from mall.services.cache_service import get_cache_service

configure_logging(settings.LOG_LEVEL, json_logs=settings.ENVIRONMENT == "production")
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    logger.info("server_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    # Auto-create tables on startup (safe for fresh deployments)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_tables_ready")

        if settings.SEED_ON_STARTUP:
            from mall.db.seed import seed_categories

            async with async_session_factory() as session:
                await seed_categories(session)
    except Exception as e:
        logger.error("database_init_failed", error=str(e), exc_info=True)

    cache = get_cache_service()
    if await cache.health_check():
        logger.info("redis_cache_connected")
    else:
        logger.warning("redis_cache_unavailable", detail="serving without cache")

    yield

    logger.info("server_stopping")

    try:
        await cache.close()
    except Exception as e:
        logger.warning("cache_close_failed", error=str(e))

    await engine.dispose()


app = FastAPI(
    title="Mall API",
    description="E-commerce mall backend: product category hierarchy management",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MallException)
async def mall_exception_handler(request: Request, exc: MallException) -> JSONResponse:
    """Map domain errors to the standard error envelope."""
    logger.info(
        "request_rejected",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code,
    )
    body = ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message, field=exc.field))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Mall API",
        "version": "0.1.0",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
