"""Subscription key and channel naming.

Learn: Key shapes must stay bit-compatible with existing deployments:

    record:   HRPS__{Kind}__{id}
    relation: HRPS__{Kind}__{id}__{relation_name}
    scope:    HRPS__{Kind}__scope__{scope_name}

Every session listens on its own channel, hyper-record-update-channel-{sid}.
Channel names follow Pusher's rules for every transport: at most 200
characters from [-a-zA-Z0-9_=@,.;].
"""

import re
from dataclasses import dataclass
from typing import Any

MAX_CHANNEL_LENGTH = 200
CHANNEL_NAME_RE = re.compile(r"\A[-a-zA-Z0-9_=@,.;]+\Z")


def kind_name(kind: Any) -> str:
    """Resolve a kind given as a class or a string to its name."""
    if isinstance(kind, type):
        return kind.__name__
    return str(kind)


@dataclass(frozen=True)
class KeySpace:
    """Builds store keys and transport channel names."""

    prefix: str = "HRPS"
    channel_prefix: str = "hyper-record-update-channel-"

    def record(self, kind: Any, record_id: Any) -> str:
        return f"{self.prefix}__{kind_name(kind)}__{record_id}"

    def relation(self, kind: Any, record_id: Any, relation_name: str) -> str:
        return f"{self.prefix}__{kind_name(kind)}__{record_id}__{relation_name}"

    def scope(self, kind: Any, scope_name: str) -> str:
        return f"{self.prefix}__{kind_name(kind)}__scope__{scope_name}"

    def channel(self, session_id: str) -> str:
        return f"{self.channel_prefix}{session_id}"

    def has_valid_channel(self, session_id: str) -> bool:
        channel = self.channel(session_id)
        return len(channel) <= MAX_CHANNEL_LENGTH and bool(CHANNEL_NAME_RE.match(channel))

    def pattern(self) -> str:
        """Glob matching every key in this key space."""
        return f"{self.prefix}__*"
