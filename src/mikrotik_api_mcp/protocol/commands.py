"""Reply tags and command sentence builders.

Outgoing sentences start with a command path (``/ppp/secret/print``) and
carry one word per parameter. Whether a parameter is sent as a query word
(``?name=x``) or an attribute word (``=name=x``) is decided from the command
path alone: paths containing ``/print`` or ``/getall`` are treated as
queries, everything else (add, set, remove, login, ...) as actions. This is
a heuristic that matches common usage, not a rule of the protocol.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from .framing import build_sentence

LOGIN_COMMAND = "/login"
QUERY_MARKERS = ("/print", "/getall")
MONITOR_MARKER = "/monitor"
MONITOR_TRAFFIC_MARKER = "monitor-traffic"


class ReplyTag(str, Enum):
    """First word of a sentence sent by the router."""

    RE = "!re"
    DONE = "!done"
    TRAP = "!trap"
    FATAL = "!fatal"


def normalize_command(command: str) -> str:
    """Return ``command`` with a leading ``/``."""
    return command if command.startswith("/") else "/" + command


def is_query_command(command: str) -> bool:
    return any(marker in command for marker in QUERY_MARKERS)


def is_monitor_command(command: str) -> bool:
    """Monitor commands stream live snapshots and resolve early."""
    return MONITOR_MARKER in command


def is_login_command(command: str) -> bool:
    return command == LOGIN_COMMAND


def param_prefix(command: str) -> str:
    """Select ``?`` for query commands and ``=`` for everything else."""
    if is_login_command(command):
        return "="
    if is_query_command(command):
        return "?"
    return "="


def remap_monitor_params(
    command: str, params: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Rewrite parameters for ``monitor-traffic`` into a single snapshot.

    ``name`` or ``interface`` becomes ``interface``, ``once`` is always
    added, and ``proplist`` is renamed to ``.proplist``. Any other command
    gets its parameters back unchanged.
    """
    params = dict(params or {})
    if MONITOR_TRAFFIC_MARKER not in command:
        return params

    remapped: dict[str, Any] = {}
    interface = params.get("name") or params.get("interface")
    if interface:
        remapped["interface"] = interface
    remapped["once"] = ""
    proplist = params.get("proplist") or params.get(".proplist")
    if proplist:
        remapped[".proplist"] = proplist
    return remapped


def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def encode_params(prefix: str, params: Mapping[str, Any] | None) -> list[str]:
    """Render parameters as ``prefix + key + "=" + value`` words.

    Any ``?`` or ``=`` already leading the key is stripped first.
    """
    words = []
    for key, value in (params or {}).items():
        key = str(key).lstrip("?=")
        words.append(f"{prefix}{key}={format_value(value)}")
    return words


def command_words(command: str, params: Mapping[str, Any] | None = None) -> list[str]:
    """Build the word list for a command, selecting the parameter prefix."""
    command = normalize_command(command)
    return [command] + encode_params(param_prefix(command), params)


def build_command(command: str, params: Mapping[str, Any] | None = None) -> bytes:
    """Build the encoded sentence for a command and its parameters."""
    return build_sentence(command_words(command, params))

