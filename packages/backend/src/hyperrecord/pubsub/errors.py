"""Notification failures.

Learn: Store and transport client errors are wrapped so callers only need
to know about NotificationError. The service layer logs these and carries
on unless it runs in strict mode.
"""


class NotificationError(Exception):
    """Base for every failure while subscribing or publishing."""


class StoreUnavailableError(NotificationError):
    """The subscription store could not be reached or rejected a command."""


class TransportUnavailableError(NotificationError):
    """The push transport failed to deliver a batch."""


class UnknownTransportError(ValueError):
    pass
