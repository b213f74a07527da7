"""Request context middleware — request id + viewer session.

Learn: Both values are bound to structlog's contextvars so they appear in
every log entry of the request. The session id is also bound to
hyperrecord.session, which is where PubSubService looks for the viewer
to subscribe.

Session id sources, first match wins:
1. X-Session-ID header
2. hyperrecord_session cookie

An id that cannot be used in a channel name is ignored and the request
runs without a session.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from hyperrecord.session import bind_session_id, is_valid_session_id, reset_session_id

logger = structlog.get_logger()

SESSION_HEADER = "X-Session-ID"
SESSION_COOKIE = "hyperrecord_session"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate and propagate a unique request ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class SessionMiddleware(BaseHTTPMiddleware):
    """Bind the caller's session id for the duration of the request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        session_id = request.headers.get(SESSION_HEADER) or request.cookies.get(
            SESSION_COOKIE
        )
        if session_id and not is_valid_session_id(session_id):
            logger.warning("session.invalid_id", length=len(session_id))
            session_id = None
        token = bind_session_id(session_id)
        if session_id:
            structlog.contextvars.bind_contextvars(session_id=session_id)
        try:
            return await call_next(request)
        finally:
            reset_session_id(token)
