from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel import Session, text

from kitadoc.db import get_session

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health(session: Session = Depends(get_session)):
    db_status = "ok"
    try:
        session.exec(text("SELECT 1"))
    except Exception as exc:
        db_status = f"error: {type(exc).__name__}"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "service": "kitadoc-backend",
        "version": "0.1.0",
        "checks": {"database": db_status},
    }
