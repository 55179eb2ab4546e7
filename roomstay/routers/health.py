"""
Health Check Endpoints

- /health/live - Liveness check (is process running)
- /health/ready - Readiness check (can the store be reached, how far
  ahead cells are materialized; a short window is reported, not fatal)
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from datetime import date, datetime, timezone
import time

from .. import __version__
from ..database import get_db
from ..config import settings
from ..models.room_date_cell import RoomDateCell

router = APIRouter(prefix="/health", tags=["Health"])


def get_db_health(db: Session) -> dict:
    """Check database connectivity and latency"""
    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000
        return {
            "status": "up",
            "latency_ms": round(latency_ms, 2),
            "type": db.bind.dialect.name,
        }
    except SQLAlchemyError as e:
        return {
            "status": "down",
            "error": str(e)[:100]
        }


def get_inventory_health(db: Session) -> dict:
    """How far ahead nightly cells are materialized"""
    try:
        last_date = db.query(func.max(RoomDateCell.date)).scalar()
    except SQLAlchemyError as e:
        return {"status": "unknown", "error": str(e)[:100]}
    days_ahead = (last_date - date.today()).days if last_date else 0
    return {
        "status": "ok" if days_ahead >= settings.materialize_window_days - 1 else "short",
        "materialized_until": last_date.isoformat() if last_date else None,
        "days_ahead": days_ahead,
    }


@router.get("/live")
async def liveness():
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/ready")
def readiness(db: Session = Depends(get_db)):
    database = get_db_health(db)
    ready = database["status"] == "up"
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "not_ready",
            "version": __version__,
            "environment": settings.environment,
            "database": database,
            "inventory": get_inventory_health(db) if ready else None,
        }
    )
