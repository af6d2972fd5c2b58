"""Cache management operations.

`get` and `delete` treat a missing entry as an ordinary outcome (`None` /
`False`); every other failure propagates.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, Optional
from urllib.parse import quote

from .errors import NotFoundError
from .http import AsyncHttpClient, HttpClient

PURGE_PATH = "/v1/cache/purge"


def _cache_path(key: str) -> str:
    return f"/v1/cache/{quote(str(key), safe='')}"


def format_before(value: datetime | date | str) -> str:
    """ISO-8601 UTC timestamp for purge thresholds; naive values are taken as UTC."""
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime.combine(value, time.min)
    else:
        return str(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class CacheManager:
    def __init__(self, http: HttpClient) -> None:
        self._http = http

    def get(self, key: str) -> Optional[bytes]:
        """Cached screenshot bytes, or None when the key is unknown."""
        try:
            return self._http.get_binary(_cache_path(key)).body
        except NotFoundError:
            return None

    def delete(self, key: str) -> bool:
        """True if the entry was deleted, False if it did not exist."""
        try:
            self._http.delete(_cache_path(key))
        except NotFoundError:
            return False
        return True

    def purge(self, keys: Iterable[str]) -> Dict[str, Any]:
        return self._http.post(PURGE_PATH, body={"keys": list(keys)})

    def purge_url(self, pattern: str) -> Dict[str, Any]:
        """Purge entries whose source URL matches a glob pattern."""
        return self._http.post(PURGE_PATH, body={"url": pattern})

    def purge_before(self, value: datetime | date | str) -> Dict[str, Any]:
        return self._http.post(PURGE_PATH, body={"before": format_before(value)})

    def purge_pattern(self, pattern: str) -> Dict[str, Any]:
        """Purge entries by storage path pattern."""
        return self._http.post(PURGE_PATH, body={"pattern": pattern})


class AsyncCacheManager:
    def __init__(self, http: AsyncHttpClient) -> None:
        self._http = http

    async def get(self, key: str) -> Optional[bytes]:
        try:
            response = await self._http.get_binary(_cache_path(key))
        except NotFoundError:
            return None
        return response.body

    async def delete(self, key: str) -> bool:
        try:
            await self._http.delete(_cache_path(key))
        except NotFoundError:
            return False
        return True

    async def purge(self, keys: Iterable[str]) -> Dict[str, Any]:
        return await self._http.post(PURGE_PATH, body={"keys": list(keys)})

    async def purge_url(self, pattern: str) -> Dict[str, Any]:
        return await self._http.post(PURGE_PATH, body={"url": pattern})

    async def purge_before(self, value: datetime | date | str) -> Dict[str, Any]:
        return await self._http.post(PURGE_PATH, body={"before": format_before(value)})

    async def purge_pattern(self, pattern: str) -> Dict[str, Any]:
        return await self._http.post(PURGE_PATH, body={"pattern": pattern})
