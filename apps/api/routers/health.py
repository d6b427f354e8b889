"""
Health check endpoints.
"""

import shutil

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from config import settings

router = APIRouter()


def _media_tools() -> dict:
    return {
        "ffprobe": "found" if shutil.which(settings.FFPROBE_BINARY) else "missing",
        "ffmpeg": "found" if shutil.which(settings.FFMPEG_BINARY) else "missing",
    }


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns overall system health status.
    """
    tools = _media_tools()
    health_status = {
        "status": "healthy",
        "api": "up",
        "database": "unknown",
        "s3_bucket": "configured" if settings.S3_BUCKET else "missing",
        **tools,
    }
    if "missing" in tools.values():
        health_status["status"] = "degraded"
    
    # Check database connection
    try:
        from database import engine
        from sqlalchemy import text
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health_status["database"] = "up"
    except Exception as e:
        health_status["database"] = f"down: {str(e)}"
        health_status["status"] = "degraded"
    
    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness probe."""
    missing = []
    if not settings.S3_BUCKET:
        missing.append("S3_BUCKET")
    for tool, state in _media_tools().items():
        if state == "missing":
            missing.append(tool)

    if missing:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "missing": missing},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
