# Immich API endpoints
import logging
from typing import Any
from urllib.parse import quote, urlencode

from immich_bridge.immich.models import Album, Asset, Tag, TimeBucket, decode, decode_list
from immich_bridge.immich.transport import UpstreamTransport

logger = logging.getLogger(__name__)

BUCKET_SIZE = "MONTH"


def asset_path(asset_id: str, rendition: str) -> str:
    """Endpoint for one rendition of an asset, e.g. assets/<id>/thumbnail."""
    return f"assets/{quote(asset_id, safe='')}/{rendition}"


def with_query(endpoint: str, params: dict[str, Any] | None) -> str:
    """Append non-empty query parameters to an endpoint."""
    clean = {k: v for k, v in (params or {}).items() if v not in (None, "")}
    if not clean:
        return endpoint
    return f"{endpoint}?{urlencode(clean)}"


def _bucket_params(is_favorite: bool, extra: dict[str, Any] | None) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if is_favorite:
        params["isFavorite"] = "true"
    params.update(extra or {})
    return params


class ImmichClient:
    """Endpoint-level calls against one Immich server."""

    def __init__(self, transport: UpstreamTransport):
        self.transport = transport

    def list_albums(self) -> list[Album]:
        return decode_list(Album, self.transport.get_json("albums"))

    def get_album_raw(self, album_id: str) -> dict[str, Any]:
        raw = self.transport.get_json(f"albums/{quote(album_id, safe='')}")
        return raw if isinstance(raw, dict) else {}

    def get_album(self, album_id: str) -> Album:
        return decode(Album, self.get_album_raw(album_id))

    def list_assets_by_album(self, album_id: str) -> list[Asset]:
        """Assets of an album, read from the album's nested asset list."""
        return decode_list(Asset, self.get_album_raw(album_id).get("assets"))

    def list_tags(self) -> list[Tag]:
        return decode_list(Tag, self.transport.get_json("tags"))

    def search_metadata(
        self, page: int = 1, size: int = 100, is_favorite: bool | None = None
    ) -> tuple[list[Asset], int | None]:
        """
        Run a metadata search and return one page of assets.

        Args:
            page: 1-based page number
            size: Page size
            is_favorite: Restrict to favorites when True

        Returns:
            (assets, next_page) where next_page is None on the last page
        """
        body: dict[str, Any] = {"page": page, "size": size}
        if is_favorite is not None:
            body["isFavorite"] = is_favorite
        data = self.transport.post_json("search/metadata", body)

        section = data.get("assets") if isinstance(data, dict) else None
        if not isinstance(section, dict):
            return [], None
        assets = decode_list(Asset, section.get("items"))
        next_page = section.get("nextPage")
        try:
            return assets, int(next_page) if next_page is not None else None
        except (TypeError, ValueError):
            return assets, None

    def get_time_buckets(
        self, is_favorite: bool = False, extra_params: dict[str, Any] | None = None
    ) -> list[TimeBucket]:
        """Month buckets of the timeline, in upstream order (newest first)."""
        params = {"timeBucket": BUCKET_SIZE, **_bucket_params(is_favorite, extra_params)}
        raw = self.transport.get_json(with_query("asset/timeBuckets", params))
        return decode_list(TimeBucket, raw)

    def get_time_bucket(
        self,
        bucket_key: str,
        is_favorite: bool = False,
        extra_params: dict[str, Any] | None = None,
    ) -> list[Asset]:
        """Assets in one bucket. A bucket holding one asset may come back unwrapped."""
        params = {"timeBucket": bucket_key, **_bucket_params(is_favorite, extra_params)}
        raw = self.transport.get_json(with_query("asset/timeBucket", params))
        assets = decode_list(Asset, raw, allow_single=True)
        logger.debug(f"Bucket {bucket_key}: {len(assets)} asset(s)")
        return assets
