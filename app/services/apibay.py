import re
import httpx
from urllib.parse import quote
from loguru import logger
from typing import List
from app.core.config import settings
from app.services.models import SearchResult
from async_lru import alru_cache


def format_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value, i = float(size_bytes), 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    # 1.50 -> "1.5", 2.00 -> "2"
    return f"{round(value, 2):g} {units[i]}"


class ApibayService:
    """
    Magnet search against apibay.org (The Pirate Bay JSON API).
    """
    def __init__(self):
        self.base_url = settings.APIBAY_API_URL.rstrip("/")
        self.client = httpx.AsyncClient(timeout=10.0)
        # Per-instance cache: search results only, never resolved stream URLs
        self._fetch_cached = alru_cache(maxsize=256)(self._fetch)

    async def search(self, query: str) -> List[SearchResult]:
        """
        Public wrapper that normalizes the query before hitting the cache.
        Failures are logged here, outside the cache, so they are not memoized.
        """
        sanitized = re.sub(r"\s+", " ", query.replace("'", " ")).strip()
        if not sanitized:
            return []
        try:
            return await self._fetch_cached(sanitized)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Apibay Search Failed: {e}")
            return []

    async def _fetch(self, query: str) -> List[SearchResult]:
        logger.info(f"Apibay Search (Network): {query!r}")
        response = await self.client.get(f"{self.base_url}/q.php", params={"q": query, "cat": 0})
        response.raise_for_status()
        rows = response.json()

        if not isinstance(rows, list) or not rows:
            return []
        if rows[0].get("name") == "No results returned":
            return []

        results = []
        for row in rows:
            info_hash = row.get("info_hash") or ""
            name = row.get("name") or ""
            display_name = quote(name, safe="!*'()")
            results.append(SearchResult(
                title=name,
                seeds=int(row.get("seeders") or 0),
                leeches=int(row.get("leechers") or 0),
                size=format_size(int(row.get("size") or 0)),
                magnet=f"magnet:?xt=urn:btih:{info_hash}&dn={display_name}",
                info_hash=info_hash,
            ))
        logger.info(f"Apibay returned {len(results)} results")
        return results

apibay_service = ApibayService()
