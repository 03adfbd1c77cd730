"""Client and MCP server for the MikroTik RouterOS binary API."""

from .client import RouterOSClient
from .errors import (
    RouterOSError,
    APIConnectionError,
    AuthError,
    CommandError,
    FatalError,
    RequestTimeout,
    ProtocolError,
)

__version__ = "0.1.0"
