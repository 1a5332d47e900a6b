# buildapp/api/v1/endpoints/health.py
"""
Liveness and dependency checks for the trade service.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from buildapp.db import redis as redis_db
from buildapp.db.session import get_db
from buildapp.scheduler import get_scheduler_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


def _unhealthy(component: str, exc: Exception) -> HTTPException:
    logger.error(f"Health check failed for {component}: {exc}")
    return HTTPException(status_code=503, detail=f"{component} unavailable")


@router.get("")
def health_check():
    """The API process is up."""
    return {"status": "healthy", "service": "trade-service"}


@router.get("/db")
def database_health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise _unhealthy("database", e)
    return {"status": "healthy", "component": "database"}


@router.get("/redis")
def redis_health():
    """Redis carries every published trade event."""
    try:
        redis_db.redis_client.ping()
    except RedisError as e:
        raise _unhealthy("redis", e)
    return {"status": "healthy", "component": "redis"}


@router.get("/scheduler")
def scheduler_health():
    return get_scheduler_status()
