import httpx
from urllib.parse import unquote
from loguru import logger
from pydantic import ValidationError
from typing import Any, Dict, List, Optional, Tuple
from app.core.config import settings
from app.core.credentials import CredentialProvider, SettingsCredentialProvider
from app.core.errors import AuthError, RemoteMagnetError, RemoteServiceError, TransportError
from app.services.base import DebridClient
from app.services.models import (
    MagnetRecord,
    QUEUED_STATUS_CODE,
    READY_STATUS_CODE,
    RemoteFileNode,
    ResolvedFile,
)
from app.utils.parser import parse_file_nodes


class AllDebridService(DebridClient):
    """
    Client for the AllDebrid API.
    Docs: https://docs.alldebrid.com/

    Two API generations are in play:
    - v4 (legacy): GET with `agent` + `apikey` in the query string.
    - v4.1: form-encoded POST with a Bearer header.
    Upload, legacy status and link unlock still live on v4.
    """
    def __init__(
        self,
        credentials: Optional[CredentialProvider] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.credentials = credentials or SettingsCredentialProvider()
        self.base_url = settings.ALLDEBRID_API_URL.rstrip("/")
        self.base_url_v41 = settings.ALLDEBRID_API_URL_V41.rstrip("/")
        self.agent = settings.ALLDEBRID_AGENT
        self.client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    async def __aenter__(self) -> "AllDebridService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    # --- Transport ---

    def _require_key(self) -> str:
        api_key = self.credentials.get()
        if not api_key:
            raise AuthError()
        return api_key

    def _params(self, api_key: str, **extra: Any) -> Dict[str, Any]:
        return {"agent": self.agent, "apikey": api_key, **extra}

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        # Error messages only carry the bare URL; the query string holds the key.
        try:
            resp = await self.client.request(method, url, params=params, data=data, headers=headers)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(f"{method} {url} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e.__class__.__name__}") from e
        except ValueError as e:
            raise TransportError(f"{method} {url} returned invalid JSON") from e

        if not isinstance(payload, dict):
            raise TransportError(f"{method} {url} returned an unexpected body")
        return payload

    @staticmethod
    def _error_details(payload: Dict[str, Any], default: str) -> Tuple[str, Optional[str]]:
        error = payload.get("error")
        if isinstance(error, dict):
            return error.get("message") or error.get("code") or default, error.get("code")
        if isinstance(error, str) and error:
            return error, None
        return default, None

    @staticmethod
    def _magnets(payload: Dict[str, Any]) -> Any:
        data = payload.get("data")
        return data.get("magnets") if isinstance(data, dict) else None

    @staticmethod
    def _as_int(value: Any) -> Optional[int]:
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    # --- Upload / Status ---

    async def upload(self, magnet_uri: str) -> MagnetRecord:
        api_key = self._require_key()
        payload = await self._request(
            "GET",
            f"{self.base_url}/magnet/upload",
            params=self._params(api_key, magnets=magnet_uri),
        )

        # The magnets array carries per-magnet status, check it before the envelope
        magnets = self._magnets(payload)
        magnet = magnets[0] if isinstance(magnets, list) and magnets else None

        if magnet is not None:
            if not isinstance(magnet, dict):
                raise RemoteServiceError("No magnet data in response")

            if magnet.get("error"):
                message, code = self._error_details(magnet, "Magnet error")
                logger.error(f"AllDebrid rejected magnet: {code} - {message}")
                raise RemoteMagnetError(message, code=code)

            magnet_id = self._as_int(magnet.get("id"))
            if magnet_id is None or magnet_id <= 0:
                raise RemoteMagnetError("Invalid magnet ID returned from AllDebrid", code="INVALID_MAGNET_ID")

            ready = bool(magnet.get("ready", False))
            status_code = self._as_int(magnet.get("statusCode"))
            if ready:
                status_code = READY_STATUS_CODE
            elif status_code is None:
                status_code = QUEUED_STATUS_CODE
            record = MagnetRecord(
                id=magnet_id,
                info_hash=str(magnet.get("hash") or ""),
                display_name=str(magnet.get("name") or magnet.get("filename") or "Unknown"),
                ready=ready,
                status_code=status_code,
            )
            logger.info(f"AllDebrid magnet {record.id} uploaded (ready={record.ready}): {record.display_name}")
            return record

        if payload.get("status") != "success":
            message, code = self._error_details(payload, "Failed to upload magnet")
            raise RemoteServiceError(message, code=code)

        raise RemoteServiceError("No magnet data in response")

    async def fetch_status(self, magnet_id: int) -> MagnetRecord:
        api_key = self._require_key()
        payload = await self._request(
            "POST",
            f"{self.base_url_v41}/magnet/status",
            data={"id": str(magnet_id)},
            headers=self._headers(api_key),
        )

        if payload.get("status") != "success":
            message, code = self._error_details(payload, "Failed to get status")
            raise RemoteServiceError(message, code=code)

        magnets = self._magnets(payload)
        magnet = magnets[0] if isinstance(magnets, list) and magnets else magnets
        if not isinstance(magnet, dict):
            raise RemoteServiceError("No magnet data in status response")

        raw_status = magnet.get("statusCode")
        status_code = self._as_int(raw_status)
        if raw_status is None:
            status_code = QUEUED_STATUS_CODE
        elif status_code is None:
            raise RemoteServiceError(f"Unreadable statusCode in status response: {raw_status!r}")
        return MagnetRecord(
            id=magnet_id,
            info_hash=str(magnet.get("hash") or ""),
            display_name=str(magnet.get("filename") or magnet.get("name") or "Unknown"),
            ready=status_code == READY_STATUS_CODE,
            status_code=status_code,
        )

    # --- Files (v4.1) ---

    async def fetch_files(self, magnet_id: int) -> List[RemoteFileNode]:
        api_key = self._require_key()
        try:
            payload = await self._request(
                "POST",
                f"{self.base_url_v41}/magnet/files",
                data={"id[]": str(magnet_id)},
                headers=self._headers(api_key),
            )
        except TransportError as e:
            logger.warning(f"v4.1 magnet/files failed for {magnet_id}: {e}")
            return []

        if payload.get("status") != "success":
            message, _ = self._error_details(payload, "unknown error")
            logger.warning(f"v4.1 magnet/files unsuccessful for {magnet_id}: {message}")
            return []

        magnets = self._magnets(payload)
        if isinstance(magnets, dict):
            magnets = list(magnets.values())
        if not isinstance(magnets, list) or not magnets:
            return []

        first = magnets[0]
        if not isinstance(first, dict) or first.get("error") or not first.get("files"):
            return []

        try:
            return parse_file_nodes(first["files"])
        except ValidationError as e:
            logger.warning(f"Malformed v4.1 file tree for {magnet_id}: {e}")
            return []

    # --- Legacy (v4) ---

    @staticmethod
    def _index_legacy_magnets(magnets: Any) -> Dict[str, Dict[str, Any]]:
        """
        The legacy status payload comes back as an array of records, an object
        keyed by id, or a single record. Normalize to {str(id): record}.
        """
        if isinstance(magnets, list):
            return {str(m.get("id")): m for m in magnets if isinstance(m, dict)}
        if isinstance(magnets, dict):
            if "id" in magnets and not isinstance(magnets["id"], dict):
                return {str(magnets["id"]): magnets}
            return {str(k): v for k, v in magnets.items() if isinstance(v, dict)}
        return {}

    async def fetch_legacy_links(self, magnet_id: int) -> List[str]:
        api_key = self._require_key()
        payload = await self._request(
            "GET",
            f"{self.base_url}/magnet/status",
            params=self._params(api_key, id=magnet_id),
        )

        records = self._index_legacy_magnets(self._magnets(payload))
        record = records.get(str(magnet_id))
        if not record:
            logger.warning(f"Legacy status has no record for magnet {magnet_id}")
            return []

        links = []
        for entry in record.get("links") or []:
            link = entry if isinstance(entry, str) else (entry.get("link") if isinstance(entry, dict) else None)
            if link:
                links.append(link)
        return links

    async def _unlock(self, link: str) -> Dict[str, Any]:
        api_key = self._require_key()
        payload = await self._request(
            "GET",
            f"{self.base_url}/link/unlock",
            params=self._params(api_key, link=link),
        )
        data = payload.get("data") or {}
        if payload.get("status") != "success" or not data.get("link"):
            message, code = self._error_details(payload, "Failed to unlock link")
            raise RemoteServiceError(message, code=code)
        return data

    async def unlock_file(self, link: str) -> ResolvedFile:
        data = await self._unlock(link)
        return ResolvedFile(
            path=unquote(data.get("filename") or "file"),
            stream_url=data["link"],
            size_bytes=data.get("filesize"),
        )

    async def unlock_link(self, link: str) -> str:
        """Unlocks a single hoster link and returns the direct URL."""
        data = await self._unlock(link)
        return data["link"]
