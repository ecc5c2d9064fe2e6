"""Health, readiness, and liveness probes."""

import os
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from deps import get_enhancement_service
from enhancement_service import EnhancementService

router = APIRouter(prefix="/health", tags=["health"])

_STARTED_AT = time.monotonic()
APP_VERSION = "1.0.0"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
async def health(service: EnhancementService = Depends(get_enhancement_service)):
    ai_available = await service.client.is_available()
    healthy = ai_available
    body = {
        "status": "healthy" if healthy else "degraded",
        "timestamp": _now(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "version": APP_VERSION,
        "environment": os.getenv("APP_ENV", "development"),
        "dependencies": {"ai_service": "available" if ai_available else "unavailable"},
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)


@router.get("/ready")
async def ready(service: EnhancementService = Depends(get_enhancement_service)):
    is_ready = bool(service.client.config.api_key)
    return JSONResponse(status_code=200 if is_ready else 503, content={"ready": is_ready, "timestamp": _now()})


@router.get("/live")
async def live():
    return {"alive": True, "timestamp": _now()}
