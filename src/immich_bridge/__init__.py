"""
immich_bridge - Browse and retrieve photos from an Immich server on behalf of
host application users.

The bridge authenticates each request with the user's stored API key, streams
thumbnails, previews and originals, flattens Immich's month buckets into a
paginated timeline, and can copy an original into the user's file storage.
"""

__version__ = "0.1.0"

from immich_bridge.bridge import Bridge, BridgeResponse
from immich_bridge.config import Settings
from immich_bridge.credentials import CredentialStore, Credentials

__all__ = [
    "__version__",
    "Bridge",
    "BridgeResponse",
    "Settings",
    "CredentialStore",
    "Credentials",
]
