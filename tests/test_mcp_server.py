"""Tests for the Immich Bridge MCP server tools.

The bridge is patched out; no Immich server or credential database is used.
Set IMMICH_BRIDGE_USER via monkeypatch.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from immich_bridge.bridge import BridgeResponse
from immich_bridge.mcp_server import (
    _require_user,
    list_album_assets,
    list_albums,
    list_tags,
    save_asset,
    timeline,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def bridge_user(monkeypatch: pytest.MonkeyPatch) -> None:
    """Act as a fixed host user in every test."""
    monkeypatch.setenv("IMMICH_BRIDGE_USER", "alice")


@pytest.fixture
def bridge() -> MagicMock:
    mock = MagicMock()
    with patch("immich_bridge.mcp_server._bridge", return_value=mock):
        yield mock


# ---------------------------------------------------------------------------
# _require_user
# ---------------------------------------------------------------------------

class TestRequireUser:
    def test_returns_none_when_set(self) -> None:
        assert _require_user() is None

    def test_returns_error_when_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IMMICH_BRIDGE_USER", "")
        result = _require_user()
        assert result is not None
        assert "IMMICH_BRIDGE_USER" in result

    def test_tools_refuse_without_user(self, monkeypatch: pytest.MonkeyPatch, bridge) -> None:
        monkeypatch.delenv("IMMICH_BRIDGE_USER")
        assert "IMMICH_BRIDGE_USER" in list_albums()
        bridge.get_albums.assert_not_called()


# ---------------------------------------------------------------------------
# list_albums
# ---------------------------------------------------------------------------

class TestListAlbums:
    def test_lists_albums(self, bridge) -> None:
        bridge.get_albums.return_value = BridgeResponse.json(
            [
                {"id": "al1", "title": "Summer", "assetCount": 3},
                {"id": "al2", "title": "Pets", "assetCount": 1},
            ]
        )
        result = list_albums()
        bridge.get_albums.assert_called_once_with("alice")
        assert "Summer (3 assets)" in result
        assert "Pets (1 asset)" in result

    def test_empty(self, bridge) -> None:
        bridge.get_albums.return_value = BridgeResponse.json([])
        assert list_albums() == "No albums found."

    def test_store_closed_after_call(self, bridge) -> None:
        bridge.get_albums.return_value = BridgeResponse.json([])
        list_albums()
        bridge.store.close.assert_called_once()

    def test_not_configured(self, bridge) -> None:
        bridge.get_albums.return_value = BridgeResponse.error(
            "Immich not configured", 412, configured=False
        )
        assert list_albums() == "❌ Immich not configured"


# ---------------------------------------------------------------------------
# list_album_assets / list_tags
# ---------------------------------------------------------------------------

class TestListAlbumAssets:
    def test_lists_assets(self, bridge) -> None:
        bridge.get_assets.return_value = BridgeResponse.json(
            [{"id": "x", "fileName": "x.jpg", "type": "IMAGE"}]
        )
        result = list_album_assets("al1")
        bridge.get_assets.assert_called_once_with("alice", "al1")
        assert "x.jpg [IMAGE]" in result

    def test_upstream_failure(self, bridge) -> None:
        bridge.get_assets.return_value = BridgeResponse.error("Immich returned HTTP 500: boom", 502)
        assert list_album_assets("al1").startswith("❌ Immich returned HTTP 500")


class TestListTags:
    def test_lists_tags(self, bridge) -> None:
        bridge.get_tags.return_value = BridgeResponse.json([{"id": "t1", "name": "Trips"}])
        assert "Trips" in list_tags()

    def test_empty(self, bridge) -> None:
        bridge.get_tags.return_value = BridgeResponse.json([])
        assert list_tags() == "No tags found."


# ---------------------------------------------------------------------------
# timeline
# ---------------------------------------------------------------------------

class TestTimeline:
    def test_returns_json(self, bridge) -> None:
        page = {"assets": [], "page": 2, "hasMore": False, "total": 0, "years": [2024]}
        bridge.get_timeline.return_value = BridgeResponse.json(page)

        result = timeline(page=2, favorites_only=True, year=2024)

        assert json.loads(result) == page
        user, filters, page_no = bridge.get_timeline.call_args.args
        assert user == "alice"
        assert filters.is_favorite is True
        assert filters.year == 2024
        assert page_no == 2


# ---------------------------------------------------------------------------
# save_asset
# ---------------------------------------------------------------------------

class TestSaveAsset:
    def test_success(self, bridge) -> None:
        bridge.save_to_folder.return_value = BridgeResponse.json(
            {"success": True, "path": "Photos/beach_1.jpg"}
        )
        result = save_asset("a1", "Photos", "beach.jpg")
        bridge.save_to_folder.assert_called_once_with("alice", "a1", "Photos", "beach.jpg")
        assert result == "✅ Saved to Photos/beach_1.jpg"

    def test_missing_folder(self, bridge) -> None:
        bridge.save_to_folder.return_value = BridgeResponse.error(
            "Target folder does not exist", 400
        )
        assert save_asset("a1", "Nope") == "❌ Target folder does not exist"
