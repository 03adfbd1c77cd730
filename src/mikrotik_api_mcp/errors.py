"""Exception hierarchy for RouterOS API failures.

Every failure surfaced by the client derives from :class:`RouterOSError` and
carries a human-readable message, taken from the router's own error text
where the protocol provides one.
"""

from __future__ import annotations


class RouterOSError(Exception):
    """Base class for all RouterOS API client errors."""


class APIConnectionError(RouterOSError, ConnectionError):
    """Connect timeout, refusal, unexpected close, or a socket-level error.

    The connection is unusable afterwards.
    """


class AuthError(RouterOSError):
    """Login was rejected or the legacy challenge was missing."""


class CommandError(RouterOSError):
    """A ``!trap`` reply: one command failed, the connection is still usable."""

    def __init__(self, message: str, category: str | None = None) -> None:
        super().__init__(f"RouterOS Error: {message}")
        self.message = message
        self.category = category


class FatalError(RouterOSError):
    """A ``!fatal`` reply that was not recovered by re-authentication."""

    def __init__(self, message: str) -> None:
        super().__init__(f"RouterOS Fatal Error: {message}")
        self.message = message


class RequestTimeout(RouterOSError, TimeoutError):
    """No terminal reply arrived before the per-command deadline."""


class ProtocolError(RouterOSError):
    """The byte stream from the router could not be decoded."""
