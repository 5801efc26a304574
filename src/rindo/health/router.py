"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from rindo.chain.gateway import get_chain_gateway_optional
from rindo.config import get_settings
from rindo.database import get_session
from rindo.redis_client import get_redis_optional

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe.

    The database is required. Redis and the chain gateway are optional: when
    they are not configured they report ``skipped`` rather than degrading.
    """
    checks: dict[str, object] = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    redis = get_redis_optional()
    if redis is None:
        checks["redis"] = "skipped"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    checks["chain"] = "ok" if get_chain_gateway_optional() is not None else "skipped"

    all_ok = all(v in ("ok", "skipped") for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, object]:
    """API version, environment and target chain."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
        "chain_id": settings.chain_id,
    }
