"""
Health check endpoint for service monitoring and readiness probes.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from meetnear.database import get_db

router = APIRouter(prefix="/healthz", tags=["health"])
logger = logging.getLogger(__name__)

@router.get("")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.error(f"Health check database query failed: {e}")
        database = "unavailable"
    return {"status": "ok" if database == "ok" else "degraded", "database": database}
