"""Health check endpoint.

Learn: Reports whether Redis answers and which transport is active.
A missing Redis makes the server "degraded", not down: writes still
succeed, only real-time notifications are lost.
"""

from fastapi import APIRouter, Request

from hyperrecord import __version__
from hyperrecord.config import settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    service = getattr(request.app.state, "pubsub", None)
    checks["transport"] = service.transport.name if service else settings.resource_transport

    try:
        from hyperrecord.realtime.redis import get_redis

        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    ok = checks["redis"] == "ok" and service is not None
    return {"status": "healthy" if ok else "degraded", **checks}
