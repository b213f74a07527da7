"""FastAPI dependencies shared by the routers."""

from fastapi import HTTPException, Request

from hyperrecord.pubsub.service import PubSubService


def get_pubsub(request: Request) -> PubSubService:
    """The service built in the app lifespan (app.state.pubsub)."""
    service = getattr(request.app.state, "pubsub", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Subscription store unavailable")
    return service
