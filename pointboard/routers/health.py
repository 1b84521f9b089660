"""Liveness and readiness probes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..notifications import registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "pointboard"}


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.warning("Readiness check: database unavailable", exc_info=True)
        database = "unavailable"

    body = {
        "status": "ready" if database == "ok" else "not_ready",
        "service": "pointboard",
        "database": database,
        "proof_storage": settings.proof_files_dir.is_dir(),
        "connected_clients": registry.connected_count(),
    }
    return JSONResponse(body, status_code=200 if database == "ok" else 503)
