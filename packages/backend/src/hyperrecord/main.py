"""FastAPI application factory.

Learn: Lifespan connects Redis and builds the PubSubService once; routes
reach it through app.state.pubsub. Without Redis the app still starts,
serving health and answering pub/sub calls with 503.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from hyperrecord import __version__
from hyperrecord.api import api_router
from hyperrecord.config import settings
from hyperrecord.logs import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    configure_logging(settings.log_level, settings.log_format)
    logger.info(
        "hyperrecord.starting",
        version=__version__,
        environment=settings.environment,
        transport=settings.resource_transport,
        port=settings.port,
    )

    from hyperrecord.pubsub.service import build_pubsub_service
    from hyperrecord.realtime.redis import close_redis, init_redis

    app.state.pubsub = None
    try:
        redis = await init_redis()
        logger.info("hyperrecord.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("hyperrecord.redis_unavailable", error=str(e))
        redis = None

    if redis is not None:
        try:
            app.state.pubsub = build_pubsub_service(settings, redis)
        except ValueError as e:
            # bad transport config, e.g. pusher selected without credentials
            logger.warning(
                "hyperrecord.pubsub_unavailable",
                transport=settings.resource_transport,
                error=str(e),
            )

    yield

    logger.info("hyperrecord.shutdown")
    if app.state.pubsub is not None:
        await app.state.pubsub.transport.close()
    await close_redis()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="HyperRecord",
        description="Real-time record change notifications",
        version=__version__,
        lifespan=lifespan,
    )

    # Starlette runs middleware in reverse order of registration:
    # RequestId → Session → handler
    from hyperrecord.middleware.context import RequestIdMiddleware, SessionMiddleware

    app.add_middleware(SessionMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)

    from hyperrecord.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: hyperrecord.main:app)
app = create_app()
