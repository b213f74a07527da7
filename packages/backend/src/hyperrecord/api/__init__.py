"""API route aggregation.

All routers registered here get mounted in main.py.
"""

from fastapi import APIRouter

from hyperrecord.api.health import router as health_router
from hyperrecord.api.pubsub import router as pubsub_router
from hyperrecord.api.subscribers import router as subscribers_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(pubsub_router, tags=["pubsub"])
api_router.include_router(subscribers_router, tags=["subscribers"])
