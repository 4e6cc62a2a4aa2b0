"""Health check endpoint."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from src.db.database import get_db

router = APIRouter()


@router.get("/health")
def health_check(request: Request, db: Session = Depends(get_db)) -> dict[str, str]:
    """Return application, database and scheduler status."""
    scheduler = getattr(request.app.state, "price_scheduler", None)
    scheduler_status = "running" if scheduler is not None and scheduler.running else "stopped"
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected", "scheduler": scheduler_status}
    except Exception:
        return {"status": "error", "database": "disconnected", "scheduler": scheduler_status}
