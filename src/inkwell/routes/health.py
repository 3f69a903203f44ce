"""
Liveness endpoint: `GET /api/health` pings MongoDB and reports the result.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from inkwell.database import db_manager
from inkwell.managers.logging_manager import get_logger

logger = get_logger(prefix="[Health]")

router = APIRouter(prefix="/api", tags=["Health"])


@router.get("/health")
async def health():
    timestamp = datetime.now(timezone.utc).isoformat()
    if await db_manager.health_check():
        return {"status": "OK", "message": "InkWell API and database are running", "timestamp": timestamp}

    logger.warning("Health check failed: database unreachable")
    return JSONResponse(
        status_code=500,
        content={"status": "FAIL", "message": "Database connection failed", "timestamp": timestamp},
    )
