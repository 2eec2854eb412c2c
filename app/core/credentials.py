from typing import Optional, Protocol
from app.core.config import settings


class CredentialProvider(Protocol):
    def get(self) -> Optional[str]:
        """Return the AllDebrid API key, or None when none is configured."""
        ...


class SettingsCredentialProvider:
    """Reads ALLDEBRID_API_KEY from the environment-backed settings."""

    def get(self) -> Optional[str]:
        return settings.ALLDEBRID_API_KEY or None


class StaticCredentialProvider:
    """Key passed in by a client for the lifetime of one request."""

    def __init__(self, api_key: Optional[str]):
        self._api_key = api_key

    def get(self) -> Optional[str]:
        return self._api_key or None
