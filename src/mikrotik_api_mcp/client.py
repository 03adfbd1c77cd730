"""RouterOS API session: login, command dispatch, and the reply state machine.

One :class:`RouterOSClient` owns one TCP connection and its reassembly
buffer. Replies carry no request identifier, so commands are admitted one at
a time: concurrent callers queue on an internal lock and each command runs
to a terminal reply (or error, or timeout) before the next one is written.

Reply handling per command::

    !re     append to the result; a monitor command sent with ``once``
            resolves on its first row
    !done   terminal; kept in the raw result if it carries attributes
    !trap   remembered, raised as CommandError when its !done arrives
    !fatal  FatalError, except "not logged in": log in again with the saved
            credentials and resubmit the command once
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping

from .errors import (
    APIConnectionError,
    AuthError,
    CommandError,
    FatalError,
    ProtocolError,
    RequestTimeout,
    RouterOSError,
)
from .protocol.commands import (
    LOGIN_COMMAND,
    ReplyTag,
    build_command,
    command_words,
    is_login_command,
    is_monitor_command,
    normalize_command,
    remap_monitor_params,
)
from .protocol.framing import Sentence, SentenceBuffer
from .protocol.parser import (
    extract_challenge,
    fatal_message,
    parse_response_to_dicts,
    trap_category,
    trap_message,
)
from .transport.tcp_connection import DEFAULT_PORT, TCPConnection
from .utils.challenge import legacy_login_response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
MONITOR_TIMEOUT = 5.0

INVALID_CREDENTIALS = re.compile(
    r"invalid user name or password|invalid username or password", re.IGNORECASE
)
NOT_LOGGED_IN = re.compile(r"not logged in", re.IGNORECASE)
SECRET_WORDS = ("=password=", "=response=")


class SessionState(Enum):
    """Where the session is in its request/reply cycle."""

    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"
    RETRYING = "retrying"
    TERMINAL = "terminal"


@dataclass
class Credentials:
    """Login saved for one automatic re-login."""

    username: str
    password: str = field(repr=False)


@dataclass
class PendingCommand:
    """The single in-flight command and the replies gathered for it."""

    command: str
    params: dict[str, Any]
    timeout: float
    collect_all: bool = False
    retry_on_not_logged_in: bool = True
    replies: list[Sentence] = field(default_factory=list)
    done: bool = False
    trap: Sentence | None = None
    deadline: float = 0.0

    @property
    def is_monitor(self) -> bool:
        return is_monitor_command(self.command)

    @property
    def is_login(self) -> bool:
        return is_login_command(self.command)

    @property
    def wants_single_snapshot(self) -> bool:
        return self.is_monitor and "once" in self.params


def _masked(words: list[str]) -> str:
    shown = []
    for word in words:
        for prefix in SECRET_WORDS:
            if word.startswith(prefix):
                word = prefix + "***"
        shown.append(word)
    return " ".join(shown)


class RouterOSClient:
    """Client for the RouterOS binary API.

    Usage::

        client = RouterOSClient("192.168.88.1")
        client.connect()
        client.login("admin", "secret")
        rows = client.run_query("/ppp/secret/print", {"name": "alice"})
        client.close()
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        monitor_timeout: float = MONITOR_TIMEOUT,
        connection: TCPConnection | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.monitor_timeout = monitor_timeout
        self._connection = connection or TCPConnection(host, port, timeout)
        self._buffer = SentenceBuffer()
        self._credentials: Credentials | None = None
        self._logged_in = False
        self._state = SessionState.IDLE
        # Commands that returned before their !done arrived.
        self._unterminated = 0
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._connection.connected

    @property
    def logged_in(self) -> bool:
        return self._logged_in

    @property
    def state(self) -> SessionState:
        return self._state

    # ─── CONNECTION ──────────────────────────────────────────────────

    def connect(self) -> None:
        """Open the TCP session.

        Raises:
            APIConnectionError: On connect timeout or refusal.
        """
        self._connection.open()
        self._buffer.clear()
        self._unterminated = 0
        self._logged_in = False
        self._state = SessionState.IDLE

    def close(self) -> None:
        """Release the connection."""
        self._connection.close()
        self._buffer.clear()
        self._logged_in = False
        self._state = SessionState.TERMINAL

    def __enter__(self) -> RouterOSClient:
        if not self.connected:
            self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ─── AUTHENTICATION ──────────────────────────────────────────────

    def login(self, username: str, password: str) -> None:
        """Authenticate, falling back to the legacy challenge-response.

        Raises:
            AuthError: If the credentials are rejected or no legacy
                challenge was received.
        """
        with self._lock:
            self._login(username, password)

    def _login(self, username: str, password: str) -> None:
        self._credentials = Credentials(username, password)
        self._logged_in = False

        try:
            self._execute(self._login_command({"name": username, "password": password}))
        except (APIConnectionError, ProtocolError):
            raise
        except RouterOSError as e:
            if INVALID_CREDENTIALS.search(str(e)):
                raise AuthError(str(e)) from e
            logger.info("Plain login failed (%s), trying legacy login", e)
        else:
            self._logged_in = True
            logger.info("Logged in as %s", username)
            return

        probe = self._execute(self._login_command({}, collect_all=True))
        challenge = extract_challenge(probe)
        if not challenge:
            raise AuthError("RouterOS legacy login failed: no challenge received")

        response = legacy_login_response(password, challenge)
        try:
            self._execute(self._login_command({"name": username, "response": response}))
        except CommandError as e:
            raise AuthError(str(e)) from e

        self._logged_in = True
        logger.info("Logged in as %s (legacy)", username)

    def _login_command(
        self, params: dict[str, Any], collect_all: bool = False
    ) -> PendingCommand:
        return PendingCommand(
            command=LOGIN_COMMAND,
            params=params,
            timeout=self.timeout,
            collect_all=collect_all,
            retry_on_not_logged_in=False,
        )

    # ─── COMMANDS ────────────────────────────────────────────────────

    def run_query(
        self,
        command: str,
        params: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> list[dict[str, str]]:
        """Run one command and return its ``!re`` rows as dicts.

        Args:
            command: Command path, e.g. ``/ip/address/print``. A missing
                leading ``/`` is added.
            params: Parameters; sent as ``?key=value`` for print/getall
                commands and ``=key=value`` otherwise.
            timeout: Seconds to wait for the reply. Defaults to
                ``monitor_timeout`` for monitor commands and ``timeout``
                for everything else.

        Returns:
            One dict per data row, possibly empty.
        """
        return parse_response_to_dicts(self.run_raw(command, params, timeout))

    def run_raw(
        self,
        command: str,
        params: Mapping[str, Any] | None = None,
        timeout: float | None = None,
        collect_all: bool = False,
    ) -> list[Sentence]:
        """Run one command and return the reply sentences undecoded.

        Unlike :meth:`run_query` this keeps a ``!done`` that carries
        attributes (such as the ``=ret=`` id returned by ``add``), or every
        ``!done`` when ``collect_all`` is set.
        """
        command = normalize_command(command)
        params = remap_monitor_params(command, params)
        if timeout is None:
            timeout = self.monitor_timeout if is_monitor_command(command) else self.timeout

        pending = PendingCommand(
            command=command,
            params=params,
            timeout=timeout,
            collect_all=collect_all,
        )
        with self._lock:
            return self._execute(pending)

    def _execute(self, pending: PendingCommand) -> list[Sentence]:
        """Write one command and drive its replies to a terminal state."""
        if not self._connection.connected:
            raise APIConnectionError("Not connected to router")

        words = command_words(pending.command, pending.params)
        logger.debug("Sending %s", _masked(words))

        self._state = SessionState.AWAITING_REPLY
        pending.deadline = time.monotonic() + pending.timeout
        try:
            self._connection.write(build_command(pending.command, pending.params))
            replies = self._await_reply(pending)
        except FatalError as e:
            if not self._should_relogin(pending, e):
                self._fail()
                raise
        except (APIConnectionError, ProtocolError):
            self._fail()
            raise
        except RouterOSError:
            self._state = SessionState.IDLE
            raise
        else:
            self._state = SessionState.IDLE
            return replies

        return self._relogin_and_resubmit(pending)

    def _await_reply(self, pending: PendingCommand) -> list[Sentence]:
        while True:
            remaining = pending.deadline - time.monotonic()
            if remaining <= 0:
                return self._expire(pending)

            chunk = self._connection.read(remaining)
            if chunk is None:
                continue

            resolved = False
            for sentence in self._buffer.feed(chunk):
                logger.debug("Received %s", sentence)
                if self._discard_stale(sentence):
                    continue
                if resolved:
                    logger.warning(
                        "Dropping reply received after %s completed: %r",
                        pending.command,
                        sentence,
                    )
                    continue
                resolved = self._handle(pending, sentence)
            if resolved:
                return pending.replies

    def _handle(self, pending: PendingCommand, sentence: Sentence) -> bool:
        """Apply one reply sentence; return True once the command is done."""
        tag = sentence.tag

        if tag == ReplyTag.RE:
            if pending.trap is None:
                pending.replies.append(sentence)
            if pending.wants_single_snapshot:
                self._unterminated += 1
                return True

        elif tag == ReplyTag.DONE:
            pending.done = True
            if pending.trap is not None:
                raise CommandError(
                    trap_message(pending.trap), trap_category(pending.trap)
                )
            if pending.collect_all or len(sentence) > 1:
                pending.replies.append(sentence)
            return True

        elif tag == ReplyTag.TRAP:
            # RouterOS always follows a !trap with !done; wait for it so the
            # connection is clean for the next command.
            pending.trap = sentence

        elif tag == ReplyTag.FATAL:
            raise FatalError(fatal_message(sentence))

        else:
            logger.warning("Ignoring unexpected sentence %r", sentence)

        return False

    def _discard_stale(self, sentence: Sentence) -> bool:
        """Drop replies that belong to a command which already returned."""
        if not self._unterminated or sentence.tag == ReplyTag.FATAL:
            return False
        if sentence.tag == ReplyTag.DONE:
            self._unterminated -= 1
        logger.debug("Discarding late reply %r", sentence)
        return True

    def _expire(self, pending: PendingCommand) -> list[Sentence]:
        # The socket stays open; whatever the router still sends for this
        # command is discarded when it arrives.
        self._unterminated += 1
        if pending.trap is not None:
            raise CommandError(trap_message(pending.trap), trap_category(pending.trap))
        raise RequestTimeout(
            f"Request timeout after {pending.timeout}s ({pending.command})"
        )

    def _should_relogin(self, pending: PendingCommand, error: FatalError) -> bool:
        return (
            pending.retry_on_not_logged_in
            and not pending.is_login
            and self._credentials is not None
            and NOT_LOGGED_IN.search(error.message) is not None
        )

    def _relogin_and_resubmit(self, pending: PendingCommand) -> list[Sentence]:
        self._state = SessionState.RETRYING
        self._logged_in = False
        credentials = self._credentials
        logger.info("Session not logged in, logging in again as %s", credentials.username)

        try:
            self._login(credentials.username, credentials.password)
        except (APIConnectionError, ProtocolError):
            raise
        except RouterOSError as e:
            self._fail()
            raise FatalError(f"not logged in, re-login failed: {e}") from e

        retry = replace(
            pending,
            retry_on_not_logged_in=False,
            replies=[],
            done=False,
            trap=None,
        )
        return self._execute(retry)

    def _fail(self) -> None:
        """Tear the session down after a connection-level failure."""
        self._connection.close()
        self._buffer.clear()
        self._unterminated = 0
        self._logged_in = False
        self._state = SessionState.TERMINAL
