"""
Health check endpoint
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from printshop import __version__
from printshop.config import get_gateway_settings, settings
from printshop.database import get_db
from printshop.exceptions import ConfigurationError

router = APIRouter(tags=["health"])


def _gateway_status() -> str:
    try:
        gateway = get_gateway_settings()
    except ConfigurationError as e:
        return f"unconfigured: {e}"
    return f"configured ({gateway.ENV})"


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Service health

    The database decides overall status. Gateway configuration and
    event publishing are reported for operators but do not fail the check.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {e}"

    return {
        "service": settings.SERVICE_NAME,
        "status": "healthy" if db_status == "healthy" else "unhealthy",
        "database": db_status,
        "gateway": _gateway_status(),
        "events": "enabled" if settings.EVENTS_ENABLED else "disabled",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/")
def root():
    return {"service": settings.SERVICE_NAME, "version": __version__, "docs": "/docs"}
