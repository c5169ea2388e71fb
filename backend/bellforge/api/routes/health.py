from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from bellforge.core.config import get_settings

router = APIRouter()

settings = get_settings()


@router.get("/health")
def health() -> dict:
    return {"status": "ok", "service": settings.project_name}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
