"""Shared pytest fixtures for immich_bridge tests."""

import json
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

from immich_bridge.config import Settings
from immich_bridge.credentials import CredentialStore, Credentials
from immich_bridge.immich.transport import UpstreamTransport

API_KEY = "secret-api-key-123"
BASE_URL = "https://photos.example.com/api"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def settings(temp_dir: Path) -> Settings:
    """Settings pointing storage and credential DB into temp_dir."""
    return Settings(
        storage_root=temp_dir / "storage",
        credentials_db_path=temp_dir / "credentials.sqlite3",
    )


@pytest.fixture
def credentials() -> Credentials:
    """Credentials for a fake Immich server."""
    return Credentials(base_url=BASE_URL + "/", api_key=API_KEY)


@pytest.fixture
def store(settings: Settings) -> Generator[CredentialStore, None, None]:
    """Empty SQLite credential store."""
    db = CredentialStore(settings.credentials_db_path)
    yield db
    db.close()


@pytest.fixture
def make_response() -> Callable[..., requests.Response]:
    """
    Factory for real requests.Response objects with a preloaded body.

    Pass json_data for JSON bodies, or content for raw bytes.
    """

    def _make(
        status: int = 200,
        json_data=None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        resp = requests.Response()
        resp.status_code = status
        resp.reason = "OK" if status < 400 else "Error"
        resp.url = BASE_URL
        if content is None:
            content = json.dumps(json_data).encode() if json_data is not None else b""
        resp._content = content
        resp._content_consumed = True
        if headers:
            resp.headers.update(headers)
        return resp

    return _make


@pytest.fixture
def session() -> Mock:
    """Mock requests.Session; set session.request.return_value or side_effect."""
    return Mock(spec=requests.Session)


@pytest.fixture
def transport(credentials: Credentials, settings: Settings, session: Mock) -> UpstreamTransport:
    """Transport bound to the mock session."""
    return UpstreamTransport(credentials, settings, session=session)


def requested_urls(session: Mock) -> list[str]:
    """URLs passed to session.request, in call order."""
    return [c.args[1] for c in session.request.call_args_list]


@pytest.fixture
def urls() -> Callable[[Mock], list[str]]:
    return requested_urls


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration between tests."""
    import logging

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level

    yield

    root_logger.handlers = original_handlers
    root_logger.level = original_level
