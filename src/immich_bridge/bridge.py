"""
Host-facing boundary of the Immich bridge.

Every operation takes the requesting user's id explicitly, loads that user's
credentials fresh, performs the upstream calls and returns a BridgeResponse:
JSON data, a streamed binary, or an error payload with a status code.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

import requests

from immich_bridge.config import Settings
from immich_bridge.credentials import CredentialStore
from immich_bridge.errors import (
    ConfigurationMissingError,
    CredentialStoreError,
    FilesystemConflictError,
    InvalidRequestError,
    PersistError,
    UpstreamConnectionError,
    UpstreamShapeError,
)
from immich_bridge.immich.api import ImmichClient
from immich_bridge.immich.timeline import TimelineAggregator, TimelineFilters, TimelinePage
from immich_bridge.immich.transport import BinaryPayload, UpstreamTransport
from immich_bridge.immich.variants import VariantResolver
from immich_bridge.persist import AssetPersister

logger = logging.getLogger(__name__)

CACHE_SECONDS = 3600


@dataclass
class BridgeResponse:
    """Result of a bridge operation, ready to be rendered by the host."""

    status: int
    data: Any = None
    payload: BinaryPayload | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @classmethod
    def json(cls, data: Any, status: int = 200) -> "BridgeResponse":
        return cls(status=status, data=data)

    @classmethod
    def error(cls, message: str, status: int, **extra: Any) -> "BridgeResponse":
        return cls(status=status, data={"error": message, **extra})

    @classmethod
    def binary(cls, payload: BinaryPayload) -> "BridgeResponse":
        return cls(
            status=200,
            payload=payload,
            headers={
                "Content-Type": payload.content_type,
                "Cache-Control": f"max-age={CACHE_SECONDS}",
            },
        )


def _valid_base_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _previous_page(previous: Any) -> TimelinePage:
    if not isinstance(previous, dict):
        raise InvalidRequestError("Invalid previous timeline page")
    try:
        return TimelinePage.from_dict(previous)
    except (TypeError, ValueError) as e:
        raise InvalidRequestError(f"Invalid previous timeline page: {e}") from e


class Bridge:
    """Operations exposed to the host application."""

    def __init__(
        self,
        settings: Settings,
        store: CredentialStore,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self.settings = settings
        self.store = store
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self, user_id: str | None) -> BridgeResponse:
        if not user_id:
            return BridgeResponse.error("Not authenticated", 401)
        try:
            creds = self.store.get(user_id)
        except CredentialStoreError as e:
            logger.error(f"Failed to read Immich config: {e}")
            return BridgeResponse.error("Failed to read configuration", 500)
        if creds is None:
            return BridgeResponse.json({"configured": False, "baseUrl": None})
        return BridgeResponse.json({"configured": True, "baseUrl": creds.base_url})

    def set_config(self, user_id: str | None, base_url: str, api_key: str) -> BridgeResponse:
        """Save a user's Immich URL and API key.

        An empty API key keeps the key already stored for the user.
        """
        if not user_id:
            return BridgeResponse.error("Not authenticated", 401)
        base_url = (base_url or "").strip()
        api_key = (api_key or "").strip()
        if not base_url:
            return BridgeResponse.error("Base URL is required", 400)

        try:
            if not api_key:
                existing = self.store.get(user_id)
                if existing is None or not existing.api_key:
                    return BridgeResponse.error("API Key is required", 400)
                api_key = existing.api_key

            if not _valid_base_url(base_url):
                return BridgeResponse.error("Invalid URL format", 400)

            self.store.save(user_id, base_url, api_key)
        except CredentialStoreError as e:
            logger.error(f"Failed to save Immich config: {e}")
            return BridgeResponse.error("Failed to save configuration", 500)
        return BridgeResponse.json({"success": True})

    def delete_config(self, user_id: str | None) -> BridgeResponse:
        if not user_id:
            return BridgeResponse.error("Not authenticated", 401)
        try:
            self.store.delete(user_id)
        except CredentialStoreError as e:
            logger.error(f"Failed to delete Immich config: {e}")
            return BridgeResponse.error("Failed to delete configuration", 500)
        return BridgeResponse.json({"success": True})

    # ------------------------------------------------------------------
    # Upstream operations
    # ------------------------------------------------------------------

    def _call(
        self,
        user_id: str | None,
        action: str,
        run: Callable[[UpstreamTransport], BridgeResponse],
    ) -> BridgeResponse:
        """Run an upstream operation for a user and map failures to responses."""
        if not user_id:
            return BridgeResponse.error("Not authenticated", 401)

        transport: UpstreamTransport | None = None
        response: BridgeResponse | None = None
        try:
            creds = self.store.get(user_id)
            if creds is None:
                raise ConfigurationMissingError()
            transport = UpstreamTransport(creds, self.settings, session=self._session_factory())
            response = run(transport)
        except ConfigurationMissingError as e:
            response = BridgeResponse.error(str(e), 412, configured=False)
        except (UpstreamConnectionError, UpstreamShapeError) as e:
            logger.error(f"Failed to {action}: {e}")
            response = BridgeResponse.error(str(e), 502)
        except (FilesystemConflictError, InvalidRequestError) as e:
            logger.warning(f"Failed to {action}: {e}")
            response = BridgeResponse.error(str(e), 400)
        except (PersistError, CredentialStoreError, OSError) as e:
            logger.error(f"Failed to {action}: {e}")
            response = BridgeResponse.error(str(e), 500)
        except Exception:
            logger.exception(f"Unexpected error while trying to {action}")
            response = BridgeResponse.error(f"Failed to {action}", 500)
        finally:
            if transport is not None:
                # A streamed payload keeps the session open until it is consumed
                if response is not None and response.payload is not None:
                    response.payload.add_closer(transport.close)
                else:
                    transport.close()
        return response

    def _resolver(self, transport: UpstreamTransport) -> VariantResolver:
        return VariantResolver.from_params(transport, self.settings.preview_variants)

    def get_albums(self, user_id: str | None) -> BridgeResponse:
        def run(transport: UpstreamTransport) -> BridgeResponse:
            albums = ImmichClient(transport).list_albums()
            return BridgeResponse.json([a.to_dict() for a in albums])

        return self._call(user_id, "fetch albums", run)

    def get_album(self, user_id: str | None, album_id: str) -> BridgeResponse:
        def run(transport: UpstreamTransport) -> BridgeResponse:
            return BridgeResponse.json(ImmichClient(transport).get_album(album_id).to_dict())

        return self._call(user_id, "fetch album", run)

    def get_assets(self, user_id: str | None, album_id: str) -> BridgeResponse:
        def run(transport: UpstreamTransport) -> BridgeResponse:
            assets = ImmichClient(transport).list_assets_by_album(album_id)
            return BridgeResponse.json([a.to_dict() for a in assets])

        return self._call(user_id, "fetch assets", run)

    def get_tags(self, user_id: str | None) -> BridgeResponse:
        def run(transport: UpstreamTransport) -> BridgeResponse:
            return BridgeResponse.json([t.to_dict() for t in ImmichClient(transport).list_tags()])

        return self._call(user_id, "fetch tags", run)

    def search(
        self,
        user_id: str | None,
        page: int = 1,
        size: int = 100,
        is_favorite: bool | None = None,
    ) -> BridgeResponse:
        def run(transport: UpstreamTransport) -> BridgeResponse:
            assets, next_page = ImmichClient(transport).search_metadata(page, size, is_favorite)
            return BridgeResponse.json(
                {"assets": [a.to_dict() for a in assets], "nextPage": next_page}
            )

        return self._call(user_id, "search assets", run)

    def get_timeline(
        self,
        user_id: str | None,
        filters: TimelineFilters | None = None,
        page: int = 1,
        previous: dict[str, Any] | None = None,
    ) -> BridgeResponse:
        """One page of the flattened timeline.

        Passing the data of an earlier timeline response as ``previous`` extends
        it with ``page`` instead of starting over.
        """

        def run(transport: UpstreamTransport) -> BridgeResponse:
            aggregator = TimelineAggregator(
                ImmichClient(transport),
                max_buckets=self.settings.max_buckets_per_page,
                fallback_year_span=self.settings.fallback_year_span,
            )
            prior = _previous_page(previous) if previous else None
            return BridgeResponse.json(aggregator.aggregate(filters, page, prior).to_dict())

        return self._call(user_id, "get timeline assets", run)

    def get_thumbnail(
        self,
        user_id: str | None,
        asset_id: str,
        size: str | None = None,
        key: str | None = None,
        format: str | None = None,
    ) -> BridgeResponse:
        def run(transport: UpstreamTransport) -> BridgeResponse:
            payload = self._resolver(transport).resolve_thumbnail(asset_id, size, key, format)
            return BridgeResponse.binary(payload)

        return self._call(user_id, "fetch thumbnail", run)

    def get_preview(self, user_id: str | None, asset_id: str) -> BridgeResponse:
        def run(transport: UpstreamTransport) -> BridgeResponse:
            return BridgeResponse.binary(self._resolver(transport).resolve_preview(asset_id))

        return self._call(user_id, "fetch preview", run)

    def get_original(self, user_id: str | None, asset_id: str) -> BridgeResponse:
        def run(transport: UpstreamTransport) -> BridgeResponse:
            return BridgeResponse.binary(self._resolver(transport).resolve_original(asset_id))

        return self._call(user_id, "fetch original", run)

    def save_to_folder(
        self,
        user_id: str | None,
        asset_id: str,
        target_path: str = "/",
        file_name: str = "image.jpg",
    ) -> BridgeResponse:
        """Download an original and store it in the user's storage.

        The target folder is validated before anything is downloaded.
        """

        def run(transport: UpstreamTransport) -> BridgeResponse:
            persister = AssetPersister(self.settings.user_storage(user_id))
            target = persister.resolve_folder(target_path)
            with self._resolver(transport).resolve_original(asset_id) as payload:
                path = persister.save(target, file_name, asset_id, payload)
            return BridgeResponse.json({"success": True, "path": path})

        return self._call(user_id, "save to folder", run)
