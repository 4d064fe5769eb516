"""
Rendition lookup that tolerates Immich API drift.

The query parameters for "larger than thumbnail" renditions have changed
across Immich versions. Rather than detecting the server version, the
resolver tries known parameter sets in order and keeps the first answer
that looks like an image.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from immich_bridge.errors import UpstreamConnectionError
from immich_bridge.immich.api import asset_path, with_query
from immich_bridge.immich.transport import BinaryPayload, UpstreamTransport

logger = logging.getLogger(__name__)


def is_image(payload: BinaryPayload) -> bool:
    return payload.is_image


@dataclass(frozen=True)
class Variant:
    """One way of asking for a rendition and how to tell it worked."""

    params: dict[str, str]
    accept: Callable[[BinaryPayload], bool] = field(default=is_image)

    def endpoint(self, asset_id: str) -> str:
        return with_query(asset_path(asset_id, "thumbnail"), self.params)


class VariantResolver:
    """Fetches thumbnail, preview and original renditions of an asset."""

    def __init__(self, transport: UpstreamTransport, preview_variants: list[Variant]):
        self.transport = transport
        self.preview_variants = preview_variants

    @classmethod
    def from_params(
        cls, transport: UpstreamTransport, params_list: list[dict[str, str]]
    ) -> "VariantResolver":
        return cls(transport, [Variant(params=dict(p)) for p in params_list])

    def resolve_thumbnail(
        self,
        asset_id: str,
        size: str | None = None,
        key: str | None = None,
        format: str | None = None,
    ) -> BinaryPayload:
        """
        Fetch a thumbnail, passing any hints as query parameters.

        If the hinted request fails for any reason, the plain thumbnail
        endpoint is used instead. Only a failure of the plain endpoint
        propagates.
        """
        plain = asset_path(asset_id, "thumbnail")
        hinted = with_query(plain, {"size": size, "key": key, "format": format})
        if hinted != plain:
            try:
                return self.transport.get_binary(hinted)
            except UpstreamConnectionError as e:
                logger.debug(f"Thumbnail variant {hinted} failed, using plain thumbnail: {e}")
        return self.transport.get_binary(plain)

    def resolve_preview(self, asset_id: str) -> BinaryPayload:
        """Return the first preview variant that answers with an image."""
        for variant in self.preview_variants:
            endpoint = variant.endpoint(asset_id)
            try:
                payload = self.transport.get_binary(endpoint)
            except UpstreamConnectionError as e:
                logger.debug(f"Preview variant {endpoint} failed: {e}")
                continue
            if variant.accept(payload):
                return payload
            logger.debug(f"Preview variant {endpoint} returned {payload.content_type}")
            payload.close()

        return self.resolve_thumbnail(asset_id)

    def resolve_original(self, asset_id: str) -> BinaryPayload:
        return self.transport.get_binary(asset_path(asset_id, "original"))
