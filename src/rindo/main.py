"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from rindo.accounts.router import router as accounts_router
from rindo.chain.gateway import close_chain_gateway, init_chain_gateway
from rindo.config import get_settings
from rindo.conversion.router import router as conversion_router
from rindo.database import close_db, init_db
from rindo.flashcards.router import router as flashcards_router
from rindo.health.router import router as health_router
from rindo.middleware import setup_middleware
from rindo.redis_client import close_redis, init_redis
from rindo.rewards.router import router as rewards_router
from rindo.vouchers.router import router as vouchers_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_url:
        await init_redis(settings.redis_url)
    init_chain_gateway(settings)
    logger.info("startup_complete", environment=settings.environment, chain_id=settings.chain_id)

    yield

    await close_chain_gateway()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Rindo API",
        description="EXP ledger, RINDO token conversion and voucher redemption for the Rindo learning platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(accounts_router)
    app.include_router(rewards_router)
    app.include_router(conversion_router)
    app.include_router(vouchers_router)
    app.include_router(flashcards_router)

    return app


app = create_app()
