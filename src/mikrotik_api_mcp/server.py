"""MCP server entry point for MikroTik RouterOS routers.

Exposes the RouterOS API client as tools, resources, and prompts via the
Model Context Protocol using the official Python MCP SDK with stdio
transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import RouterOSClient
from .config import Settings
from .protocol.commands import normalize_command

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "mikrotik-api",
    instructions="MCP server for MikroTik routers over the RouterOS binary API",
)

# Global connection state
_client: RouterOSClient | None = None


def _get_client() -> RouterOSClient:
    """Get the active router session, raising if not connected."""
    if _client is None or not _client.connected:
        raise RuntimeError(
            "Not connected to a router. Use the 'connect' tool first."
        )
    return _client


def _menu_command(path: str, action: str) -> str:
    """Join a menu path such as ``/ppp/secret`` with an action."""
    return normalize_command(path.rstrip("/")) + "/" + action


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    host: str | None = None,
    port: int | None = None,
    username: str | None = None,
    password: str | None = None,
) -> dict[str, Any]:
    """Connect and log in to a RouterOS router.

    Arguments that are not given fall back to the MIKROTIK_HOST,
    MIKROTIK_PORT, MIKROTIK_USERNAME and MIKROTIK_PASSWORD environment
    variables.
    """
    global _client
    if _client is not None and _client.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "host": _client.host,
        }

    settings = Settings.from_env()
    if username is None:
        username = settings.username
    if password is None:
        password = settings.password
    client = RouterOSClient(
        host or settings.host,
        port or settings.port,
        timeout=settings.timeout,
    )
    client.connect()
    try:
        client.login(username, password)
    except Exception:
        client.close()
        raise

    _client = client
    return {
        "connected": True,
        "host": client.host,
        "port": client.port,
        "username": username,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the API session."""
    global _client
    if _client is None:
        return {"disconnected": True}
    _client.close()
    _client = None
    return {"disconnected": True}


# ─── COMMAND TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def run_query(command: str, params: dict[str, str] | None = None) -> dict[str, Any]:
    """Run any RouterOS API command and return its data rows.

    Args:
        command: Command path, e.g. "/ip/address/print" or "/system/resource/print".
        params: Parameters. Print/getall commands send them as query filters,
            other commands as attributes.
    """
    rows = _get_client().run_query(command, params or {})
    return {"command": normalize_command(command), "rows": rows, "count": len(rows)}


@mcp.tool()
def print_items(path: str, filters: dict[str, str] | None = None) -> dict[str, Any]:
    """List the entries of a menu, optionally filtered.

    Args:
        path: Menu path, e.g. "/ppp/secret".
        filters: Exact-match filters, e.g. {"name": "alice"}.
    """
    rows = _get_client().run_query(_menu_command(path, "print"), filters or {})
    return {"path": path, "items": rows, "count": len(rows)}


@mcp.tool()
def add_item(path: str, properties: dict[str, str]) -> dict[str, Any]:
    """Add an entry to a menu and return its internal id.

    Args:
        path: Menu path, e.g. "/ppp/secret".
        properties: Entry properties, e.g. {"name": "alice", "password": "pw"}.
    """
    if not properties:
        return {"error": "At least one property is required"}

    replies = _get_client().run_raw(_menu_command(path, "add"), properties)
    item_id = next(
        (s.get("ret") for s in replies if s.get("ret") is not None), None
    )
    return {"path": path, "added": True, "id": item_id}


@mcp.tool()
def set_item(path: str, item_id: str, properties: dict[str, str]) -> dict[str, Any]:
    """Change properties of an existing entry.

    Args:
        path: Menu path, e.g. "/ppp/secret".
        item_id: Internal id of the entry (the ".id" field, e.g. "*1A").
        properties: Properties to change.
    """
    if not properties:
        return {"error": "At least one property is required"}

    params = {".id": item_id, **properties}
    _get_client().run_query(_menu_command(path, "set"), params)
    return {"path": path, "id": item_id, "updated": sorted(properties)}


@mcp.tool()
def remove_item(path: str, item_id: str) -> dict[str, Any]:
    """Remove an entry by its internal id.

    Args:
        path: Menu path, e.g. "/ppp/secret".
        item_id: Internal id of the entry (the ".id" field).
    """
    _get_client().run_query(_menu_command(path, "remove"), {".id": item_id})
    return {"path": path, "id": item_id, "removed": True}


@mcp.tool()
def monitor_traffic(interface: str, proplist: str | None = None) -> dict[str, Any]:
    """Take a single traffic snapshot of an interface.

    Args:
        interface: Interface name, e.g. "ether1".
        proplist: Optional comma-separated list of fields to return.
    """
    params = {"interface": interface}
    if proplist:
        params["proplist"] = proplist
    rows = _get_client().run_query("/interface/monitor-traffic", params)
    return {"interface": interface, "snapshot": rows[0] if rows else {}}


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("routeros://connection/status")
def connection_status() -> str:
    """Current session state."""
    if _client is None:
        return json.dumps({"connected": False})
    return json.dumps({
        "connected": _client.connected,
        "logged_in": _client.logged_in,
        "state": _client.state.value,
        "host": _client.host,
        "port": _client.port,
    })


# ─── PROMPTS ──────────────────────────────────────────────────────────

@mcp.prompt()
def crud_walkthrough(path: str = "/ppp/secret", name: str = "testUser") -> str:
    """Create, read, update and delete one test entry.

    Args:
        path: Menu path to exercise.
        name: Name for the test entry.
    """
    return f"""Exercise the {path} menu with a throwaway entry named {name!r}.

1. add_item to create it (for PPP secrets include password, profile "default"
   and service "pppoe").
2. print_items with filter name={name} and note its ".id".
3. set_item with that id to change the comment.
4. print_items again to confirm the change.
5. remove_item with the same id, then print_items to confirm it is gone.

Report each step's result, and stop at the first error."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
