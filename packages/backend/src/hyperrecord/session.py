"""Current viewer session — who should be subscribed by a read.

Learn: The session id is request-scoped state. SessionMiddleware binds it
to a context variable at the start of each request, and PubSubService
reads it through `current_session_id` unless a different provider is
injected (background jobs, tests).

Session ids end up inside channel names, so only the characters Pusher
accepts in a channel name are allowed. Anything else is treated as no
session at all.
"""

import re
from contextvars import ContextVar
from typing import Any, Optional

MAX_SESSION_ID_LENGTH = 128
SESSION_ID_RE = re.compile(r"\A[-a-zA-Z0-9_=@,.;]+\Z")

_current_session: ContextVar[Optional[str]] = ContextVar(
    "hyperrecord_session_id", default=None
)


def is_valid_session_id(session_id: Any) -> bool:
    if not session_id:
        return False
    session_id = str(session_id)
    return len(session_id) <= MAX_SESSION_ID_LENGTH and bool(SESSION_ID_RE.match(session_id))


def current_session_id() -> Optional[str]:
    return _current_session.get()


def bind_session_id(session_id: Optional[str]):
    """Set the current session id. Returns a token for reset_session_id().

    Invalid ids are bound as None.
    """
    return _current_session.set(session_id if is_valid_session_id(session_id) else None)


def reset_session_id(token) -> None:
    _current_session.reset(token)
