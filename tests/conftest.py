"""Shared fixtures.

HTTP is mocked at the transport level with respx, so the AllDebrid client
under test runs its real httpx code path.
"""

import httpx
import pytest

from app.core.credentials import StaticCredentialProvider
from app.services.alldebrid import AllDebridService

V4 = "https://api.alldebrid.com/v4"
V41 = "https://api.alldebrid.com/v4.1"
API_KEY = "test-api-key"


@pytest.fixture()
def service() -> AllDebridService:
    """AllDebrid client with a static key and a fresh httpx client."""
    return AllDebridService(
        credentials=StaticCredentialProvider(API_KEY),
        client=httpx.AsyncClient(),
    )


@pytest.fixture()
def keyless_service() -> AllDebridService:
    return AllDebridService(
        credentials=StaticCredentialProvider(None),
        client=httpx.AsyncClient(),
    )
