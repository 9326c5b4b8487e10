"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import redis.asyncio as redis
from sqlalchemy import func, select

from config import settings, validate_security_settings
from database import async_session_maker
from models.user import User

router = APIRouter()


async def _ledger_snapshot() -> dict:
    """Account count, total balance held and accounts below zero."""
    async with async_session_maker() as session:
        result = await session.execute(
            select(
                func.count(User.id),
                func.coalesce(func.sum(User.balance), 0),
                func.count(User.id).filter(User.balance < 0),
            )
        )
        accounts, total_balance, negative = result.one()
    return {
        "accounts": int(accounts or 0),
        "total_balance": float(total_balance or 0),
        "negative_balances": int(negative or 0),
    }


@router.get("/health")
async def health_check():
    """
    Ledger health.
    Database reachability plus a balance snapshot, and Redis for rate limiting.
    """
    health_status = {
        "status": "healthy",
        "api": "up",
        "database": "unknown",
        "redis": "unknown",
        "ledger": None,
    }

    try:
        health_status["ledger"] = await _ledger_snapshot()
        health_status["database"] = "up"
        if health_status["ledger"]["negative_balances"]:
            health_status["status"] = "degraded"
    except Exception as e:
        health_status["database"] = f"down: {str(e)}"
        health_status["status"] = "degraded"

    # Redis only backs rate limiting; the ledger keeps working without it.
    try:
        r = redis.from_url(settings.REDIS_URL)
        await r.ping()
        await r.aclose()
        health_status["redis"] = "up"
    except Exception as e:
        health_status["redis"] = f"down: {str(e)}"
        if settings.RATE_LIMIT_ENABLED:
            health_status["status"] = "degraded"

    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Ready once the session signing secret is safe to serve with."""
    try:
        validate_security_settings()
    except ValueError as exc:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "reason": str(exc)},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    return {"alive": True}
