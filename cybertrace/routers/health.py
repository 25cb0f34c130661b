"""Health check."""

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cybertrace.database import get_db

logger = structlog.get_logger()

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)) -> JSONResponse:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("health_check_failed", component="database", error=str(e))
        return JSONResponse(
            status_code=503, content={"status": "unhealthy", "database": "unhealthy"}
        )
    return JSONResponse(content={"status": "healthy", "database": "healthy"})
