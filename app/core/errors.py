from typing import Optional


class DebridError(Exception):
    """
    Base class for everything the debrid pipeline raises.
    Carries the best-available human readable message and, when the service
    provided one, its machine error code (e.g. MAGNET_MUST_BE_PREMIUM).
    """

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class AuthError(DebridError):
    """No API key available."""

    def __init__(self, message: str = "API Key not set"):
        super().__init__(message, code="AUTH_MISSING_APIKEY")


class RemoteMagnetError(DebridError):
    """The service rejected this specific magnet."""


class RemoteServiceError(DebridError):
    """Envelope-level non-success without per-magnet detail."""


class TransportError(DebridError):
    """Network failure, non-2xx HTTP status or an undecodable body."""
