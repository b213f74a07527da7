"""HyperRecord — real-time record change notifications.

Tracks which client sessions are looking at which records, relations
and scopes, and pushes an update message to exactly those sessions when
the underlying data changes.
"""

__version__ = "0.1.0"
