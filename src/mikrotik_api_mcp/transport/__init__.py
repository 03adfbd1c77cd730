"""Transport layer: the TCP socket to the router's API service."""

from .tcp_connection import TCPConnection, ConnectionInfo
