"""TCP connection to the RouterOS API service.

The API listens on port 8728 (plain TCP). The socket is opened with
keep-alive enabled and Nagle's algorithm disabled, since every request is a
small sentence that should go out immediately.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass

from ..errors import APIConnectionError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8728
CONNECT_TIMEOUT = 30.0
RECV_BUFFER_SIZE = 4096


@dataclass
class ConnectionInfo:
    """Endpoints of an open API connection."""

    host: str
    port: int = DEFAULT_PORT
    local_address: str = ""


class TCPConnection:
    """Manages the TCP socket to a router.

    Usage::

        conn = TCPConnection("192.168.88.1")
        conn.open()
        conn.write(sentence_bytes)
        chunk = conn.read(timeout=5.0)
        conn.close()
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: float = CONNECT_TIMEOUT,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._sock: socket.socket | None = None
        self._info = ConnectionInfo(host=host, port=port)

    @property
    def connected(self) -> bool:
        return self._sock is not None

    @property
    def info(self) -> ConnectionInfo:
        return self._info

    def open(self) -> ConnectionInfo:
        """Connect to the router.

        Returns:
            ConnectionInfo for the established socket.

        Raises:
            APIConnectionError: On timeout, refusal, or any other socket error.
        """
        try:
            sock = socket.create_connection(
                (self._host, self._port), timeout=self._timeout
            )
        except socket.timeout as e:
            raise APIConnectionError(
                f"Connection timeout after {self._timeout}s "
                f"({self._host}:{self._port})"
            ) from e
        except OSError as e:
            raise APIConnectionError(
                f"Could not connect to {self._host}:{self._port}: {e}"
            ) from e

        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        self._sock = sock
        local_host, local_port = sock.getsockname()[:2]
        self._info = ConnectionInfo(
            host=self._host,
            port=self._port,
            local_address=f"{local_host}:{local_port}",
        )
        logger.info("Connected to %s:%d", self._host, self._port)
        return self._info

    def close(self) -> None:
        """Half-close the socket after pending writes, then release it."""
        if self._sock is None:
            return

        sock, self._sock = self._sock, None
        try:
            sock.shutdown(socket.SHUT_WR)
        except OSError as e:
            logger.warning("Error shutting down socket: %s", e)
        finally:
            sock.close()
            logger.info("Disconnected from %s:%d", self._host, self._port)

    def write(self, data: bytes) -> None:
        """Send ``data`` in full.

        Raises:
            APIConnectionError: If not connected or the send fails.
        """
        sock = self._require_socket()
        try:
            sock.settimeout(self._timeout)
            sock.sendall(data)
        except OSError as e:
            self._drop()
            raise APIConnectionError(f"Socket error: {e}") from e

    def read(self, timeout: float) -> bytes | None:
        """Wait up to ``timeout`` seconds for incoming bytes.

        Returns:
            The bytes received, or ``None`` if nothing arrived in time.

        Raises:
            APIConnectionError: If the peer closed the connection or the
                socket failed.
        """
        sock = self._require_socket()
        try:
            sock.settimeout(max(timeout, 0.001))
            data = sock.recv(RECV_BUFFER_SIZE)
        except socket.timeout:
            return None
        except OSError as e:
            self._drop()
            raise APIConnectionError(f"Socket error: {e}") from e

        if not data:
            self._drop()
            raise APIConnectionError("Socket closed")
        return data

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            raise APIConnectionError("Not connected to router")
        return self._sock

    def _drop(self) -> None:
        sock, self._sock = self._sock, None
        if sock is not None:
            sock.close()
            logger.info("Connection to %s:%d lost", self._host, self._port)
