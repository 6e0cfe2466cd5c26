"""
Health check endpoint.

Used by load balancers, monitoring systems, and humans
to verify the application is running and responsive.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from override_engine.models.base import get_db

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Return application health status including database connectivity
    and whether the expiry scheduler is sweeping.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception:
        db_status = "unhealthy"

    scheduler = getattr(request.app.state, "expiry_scheduler", None)
    if scheduler is None:
        scheduler_status = "disabled"
    else:
        scheduler_status = "running" if scheduler.running else "stopped"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "admin-override-engine",
        "database": db_status,
        "expiry_scheduler": scheduler_status,
    }
