# Immich HTTP transport
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

import requests

from immich_bridge.config import Settings
from immich_bridge.credentials import Credentials
from immich_bridge.errors import ConfigurationMissingError, UpstreamConnectionError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class BinaryPayload:
    """A streamed binary body and its content type.

    The chunks are consumed lazily; close() releases the HTTP connection
    when the body is not read to the end.
    """

    content_type: str
    chunks: Iterable[bytes]
    closers: list[Callable[[], None]] = field(default_factory=list, repr=False)

    @classmethod
    def from_bytes(cls, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE) -> "BinaryPayload":
        return cls(content_type=content_type, chunks=[data])

    @property
    def is_image(self) -> bool:
        return self.content_type.lower().startswith("image/")

    def __iter__(self) -> Iterator[bytes]:
        try:
            for chunk in self.chunks:
                if chunk:
                    yield chunk
        except requests.RequestException as e:
            raise UpstreamConnectionError(f"Download from Immich interrupted: {e}") from e
        finally:
            self.close()

    def read(self) -> bytes:
        """Read the whole body into memory. Only for small payloads."""
        return b"".join(self)

    def add_closer(self, closer: Callable[[], None]) -> None:
        self.closers.append(closer)

    def close(self) -> None:
        closers, self.closers = self.closers, []
        for closer in closers:
            closer()

    def __enter__(self) -> "BinaryPayload":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class UpstreamTransport:
    """Authenticated HTTP calls against one user's Immich server.

    A transport is built per host request from freshly loaded credentials and
    is not shared between requests.
    """

    def __init__(
        self,
        credentials: Credentials | None,
        settings: Settings,
        session: requests.Session | None = None,
    ):
        self.credentials = credentials
        self.settings = settings
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _require_credentials(self) -> Credentials:
        if self.credentials is None:
            raise ConfigurationMissingError()
        return self.credentials

    def build_url(self, endpoint: str) -> str:
        """Join the configured base URL and an endpoint with exactly one slash."""
        creds = self._require_credentials()
        return creds.base_url.rstrip("/") + "/" + endpoint.lstrip("/")

    def _json_headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._require_credentials().api_key,
            "Accept": "application/json",
        }

    def _scrub(self, message: str) -> str:
        api_key = self.credentials.api_key if self.credentials else ""
        return message.replace(api_key, "***") if api_key else message

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        url = self.build_url(endpoint)
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            message = self._scrub(str(e))
            logger.error(f"Immich API error on {endpoint}: {message}")
            raise UpstreamConnectionError(
                f"Failed to connect to Immich: {message}", endpoint=endpoint
            ) from e

        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            detail = self._scrub((resp.text or "")[:200].replace("\n", " ").strip())
            resp.close()
            logger.error(f"Immich API returned {resp.status_code} for {endpoint}: {detail}")
            raise UpstreamConnectionError(
                f"Immich returned HTTP {resp.status_code}: {detail or resp.reason}",
                status_code=resp.status_code,
                endpoint=endpoint,
            ) from e
        return resp

    @staticmethod
    def _decode(resp: requests.Response) -> Any:
        # Empty or malformed bodies decode to an empty object
        try:
            data = resp.json()
        except ValueError:
            return {}
        return {} if data is None else data

    def get_json(self, endpoint: str) -> Any:
        """GET an endpoint and decode its JSON body."""
        resp = self._request(
            "GET",
            endpoint,
            headers=self._json_headers(),
            timeout=self.settings.request_timeout,
        )
        return self._decode(resp)

    def post_json(self, endpoint: str, body: dict[str, Any]) -> Any:
        """POST a JSON body to an endpoint and decode its JSON answer."""
        headers = self._json_headers()
        headers["Content-Type"] = "application/json"
        resp = self._request(
            "POST",
            endpoint,
            headers=headers,
            json=body,
            timeout=self.settings.request_timeout,
        )
        return self._decode(resp)

    def get_binary(self, endpoint: str) -> BinaryPayload:
        """GET a binary endpoint as a stream."""
        resp = self._request(
            "GET",
            endpoint,
            headers={"x-api-key": self._require_credentials().api_key},
            timeout=self.settings.binary_timeout,
            stream=True,
        )
        content_type = resp.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
        return BinaryPayload(
            content_type=content_type,
            chunks=resp.iter_content(chunk_size=self.settings.chunk_size),
            closers=[resp.close],
        )

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "UpstreamTransport":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
