"""Immich Bridge MCP Server: browse an Immich library from an MCP client.

Exposes bridge operations as MCP tools so any MCP-capable AI client can list
albums and tags, page through the timeline, and copy originals into the
user's file storage. Every tool acts for one host user.

Configuration via environment variables:
    IMMICH_BRIDGE_USER      Host user id whose Immich credentials are used (required)
    IMMICH_BRIDGE_CONFIG    Path to YAML settings file (default: config.yaml)

Usage:
    immich-bridge-mcp               # stdio transport
    python -m immich_bridge.mcp_server
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from immich_bridge.bridge import Bridge, BridgeResponse
from immich_bridge.config import Settings
from immich_bridge.credentials import CredentialStore
from immich_bridge.immich.timeline import TimelineFilters

mcp = FastMCP("immich-bridge", instructions=(
    "Immich Bridge. Use these tools to browse the configured user's Immich photo "
    "library (albums, tags, timeline) and to save original photos into their storage."
))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _user() -> str:
    return os.environ.get("IMMICH_BRIDGE_USER", "")


def _settings() -> Settings:
    path = Path(os.environ.get("IMMICH_BRIDGE_CONFIG", "config.yaml"))
    if path.exists():
        return Settings.from_yaml(path)
    return Settings()


def _bridge() -> Bridge:
    settings = _settings()
    return Bridge(settings, CredentialStore(settings.credentials_db_path))


def _call(run: Callable[[Bridge], BridgeResponse]) -> BridgeResponse:
    """Run one bridge operation and close its credential store afterwards."""
    bridge = _bridge()
    try:
        return run(bridge)
    finally:
        bridge.store.close()


def _require_user() -> str | None:
    """Return an error string if IMMICH_BRIDGE_USER is not set, else None."""
    if not _user():
        return (
            "IMMICH_BRIDGE_USER environment variable is not set. "
            "Set it to the host user id whose Immich account should be used."
        )
    return None


def _failure(response: BridgeResponse) -> str | None:
    if response.ok:
        return None
    message = (response.data or {}).get("error", f"HTTP {response.status}")
    return f"❌ {message}"


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@mcp.tool()
def list_albums() -> str:
    """List the user's Immich albums with their asset counts."""
    if err := _require_user():
        return err
    response = _call(lambda b: b.get_albums(_user()))
    if err := _failure(response):
        return err
    if not response.data:
        return "No albums found."
    lines = [
        f"  • {a['title']} ({a['assetCount']} asset{'s' if a['assetCount'] != 1 else ''}) — {a['id']}"
        for a in response.data
    ]
    return "📚 Albums:\n" + "\n".join(lines)


@mcp.tool()
def list_album_assets(album_id: str) -> str:
    """List the assets of one album.

    Args:
        album_id: Immich album id (see list_albums()).
    """
    if err := _require_user():
        return err
    response = _call(lambda b: b.get_assets(_user(), album_id))
    if err := _failure(response):
        return err
    if not response.data:
        return "Album is empty."
    return "🖼️ Assets:\n" + "\n".join(
        f"  • {a['fileName']} [{a['type']}] — {a['id']}" for a in response.data
    )


@mcp.tool()
def list_tags() -> str:
    """List the user's Immich tags."""
    if err := _require_user():
        return err
    response = _call(lambda b: b.get_tags(_user()))
    if err := _failure(response):
        return err
    if not response.data:
        return "No tags found."
    return "🏷️ Tags:\n" + "\n".join(f"  • {t['name']} — {t['id']}" for t in response.data)


@mcp.tool()
def timeline(page: int = 1, favorites_only: bool = False, year: int | None = None) -> str:
    """Get one page of the user's photo timeline, newest first.

    Args:
        page:           1-based page number. Each page covers six months.
        favorites_only: Only include favorite assets.
        year:           Ask Immich to restrict results to a year.

    Returns the timeline page as JSON (assets, hasMore, total, years).
    """
    if err := _require_user():
        return err
    filters = TimelineFilters(is_favorite=favorites_only, year=year)
    response = _call(lambda b: b.get_timeline(_user(), filters, page))
    if err := _failure(response):
        return err
    return json.dumps(response.data, indent=2)


@mcp.tool()
def save_asset(asset_id: str, target_path: str = "/", file_name: str = "") -> str:
    """Copy an asset's original into the user's storage.

    Args:
        asset_id:    Immich asset id.
        target_path: Existing folder, relative to the user's storage root.
        file_name:   File name to use; an existing file is never overwritten.
    """
    if err := _require_user():
        return err
    response = _call(lambda b: b.save_to_folder(_user(), asset_id, target_path, file_name))
    if err := _failure(response):
        return err
    return f"✅ Saved to {response.data['path']}"


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
