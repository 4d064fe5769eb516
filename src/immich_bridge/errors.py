"""
Error taxonomy for the bridge.

Every failure that reaches the boundary is one of these types, so the
boundary can map it to a status code without inspecting messages.
"""


class BridgeError(Exception):
    """Base class for all bridge failures."""


class ConfigurationMissingError(BridgeError):
    """No Immich credentials are stored for the requesting user."""

    def __init__(self, message: str = "Immich not configured"):
        super().__init__(message)


class UpstreamConnectionError(BridgeError):
    """Network failure, timeout or non-2xx answer from the photo service."""

    def __init__(self, message: str, status_code: int | None = None, endpoint: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class UpstreamShapeError(BridgeError):
    """An upstream JSON value does not have the shape a decoder expects."""


class FilesystemConflictError(BridgeError):
    """Target folder is missing, is not a folder, or lies outside user storage."""


class PersistError(BridgeError):
    """Writing a file failed after the target folder was validated."""


class CredentialStoreError(BridgeError):
    """The credential store could not be read or written."""


class InvalidRequestError(BridgeError):
    """Input supplied by the host caller cannot be used."""
