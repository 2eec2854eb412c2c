from abc import ABC, abstractmethod
from typing import List
from app.services.models import MagnetRecord, RemoteFileNode, ResolvedFile

class DebridClient(ABC):
    """
    Abstract Base Class for Debrid Providers.
    The resolver only talks to this surface, so a provider has to expose
    both its modern file listing and the legacy status + unlock pair.
    """

    @abstractmethod
    async def upload(self, magnet_uri: str) -> MagnetRecord:
        """Submit a magnet. Raises AuthError, RemoteMagnetError or RemoteServiceError."""
        pass

    @abstractmethod
    async def fetch_status(self, magnet_id: int) -> MagnetRecord:
        """Refresh readiness for an uploaded magnet."""
        pass

    @abstractmethod
    async def fetch_files(self, magnet_id: int) -> List[RemoteFileNode]:
        """Modern file tree. Empty when nothing usable came back, never raises for remote trouble."""
        pass

    @abstractmethod
    async def fetch_legacy_links(self, magnet_id: int) -> List[str]:
        """Raw hoster links from the legacy status endpoint."""
        pass

    @abstractmethod
    async def unlock_file(self, link: str) -> ResolvedFile:
        """Unlock one hoster link into a direct stream URL with its file name."""
        pass
