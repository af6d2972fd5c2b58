"""API clients for the RenderScreenshot service.

`Client` is synchronous (requests); `AsyncClient` exposes the same operations
as coroutines (httpx). Both are safe to share between threads/tasks: all
per-call state lives in the transport call, and the connection handle is
created once on first use.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping

import requests

from .cache import AsyncCacheManager, CacheManager
from .config import Settings, settings
from .errors import AuthenticationError, ValidationError
from .http import AsyncHttpClient, HttpClient
from .options import TakeOptions
from .signing import ExpiresAt, sign_url

SCREENSHOT_PATH = "/v1/screenshot"
BATCH_PATH = "/v1/batch"

_JSON_ACCEPT = {"Accept": "application/json"}


@dataclass(frozen=True)
class Credentials:
    api_key: str
    signing_key: str | None = None
    public_key_id: str | None = None


def normalize_options(options: Any, *, flat: bool = False) -> Dict[str, Any]:
    """Request body for `options`; `flat` gives the un-nested form used for signing."""
    if isinstance(options, TakeOptions):
        return options.to_h() if flat else options.to_params()
    if isinstance(options, Mapping):
        return dict(options)
    if options is None:
        return {}
    raise ValidationError.invalid_request("Options must be a TakeOptions or a mapping")


def _batch_body(urls: Iterable[str], options: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"urls": list(urls)}
    if options is not None:
        body["options"] = normalize_options(options)
    return body


def _batch_advanced_body(requests_: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    formatted = []
    for item in requests_:
        # per-item options sit next to `url`, not under an `options` key
        formatted.append({"url": item.get("url"), **normalize_options(item.get("options"))})
    return {"requests": formatted}


def _unwrap(response: Any, key: str) -> Any:
    if isinstance(response, Mapping) and key in response:
        return response[key]
    return response


class _ClientBase:
    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        signing_key: str | None = None,
        public_key_id: str | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        settings_obj: Settings | None = None,
    ) -> None:
        s = settings_obj or settings()
        api_key = api_key if api_key is not None else s.api_key
        if not api_key:
            raise AuthenticationError.unauthorized()
        self.credentials = Credentials(
            api_key=api_key,
            signing_key=signing_key or s.signing_key,
            public_key_id=public_key_id or s.public_key_id,
        )
        self._transport_kwargs: Dict[str, Any] = {
            "base_url": base_url or s.base_url,
            "timeout": timeout if timeout is not None else s.timeout,
            "max_retries": max_retries if max_retries is not None else s.max_retries,
            "retry_delay": retry_delay if retry_delay is not None else s.retry_delay,
        }

    @property
    def base_url(self) -> str:
        return self.http.base_url

    def generate_url(
        self,
        options: TakeOptions | Mapping[str, Any],
        *,
        expires_at: ExpiresAt,
        signing_key: str | None = None,
        public_key_id: str | None = None,
    ) -> str:
        """Return a signed screenshot URL usable without the API key.

        Raises:
            ValidationError: when no signing key / public key id is available.
        """
        config = normalize_options(options, flat=True)
        return sign_url(
            self.base_url,
            config,
            expires_at=expires_at,
            secret=signing_key or self.credentials.signing_key,
            key_id=public_key_id or self.credentials.public_key_id,
        )


class Client(_ClientBase):
    def __init__(self, api_key: str | None = None, *, session: requests.Session | None = None, **kwargs: Any) -> None:
        super().__init__(api_key, **kwargs)
        self.http = HttpClient(self.credentials.api_key, session=session, **self._transport_kwargs)
        self._cache = CacheManager(self.http)

    def take(self, options: TakeOptions | Mapping[str, Any]) -> bytes:
        """Capture a screenshot and return the image/PDF bytes."""
        return self.http.post_binary(SCREENSHOT_PATH, body=normalize_options(options)).body

    def take_json(self, options: TakeOptions | Mapping[str, Any]) -> Dict[str, Any]:
        """Capture a screenshot and return the JSON metadata (CDN url, size, cache info)."""
        return self.http.post(SCREENSHOT_PATH, body=normalize_options(options), headers=_JSON_ACCEPT)

    def batch(self, urls: Iterable[str], *, options: TakeOptions | Mapping[str, Any] | None = None) -> Dict[str, Any]:
        return self.http.post(BATCH_PATH, body=_batch_body(urls, options))

    def batch_advanced(self, requests: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
        """Batch with per-URL options: ``[{"url": ..., "options": ...}, ...]``."""
        return self.http.post(BATCH_PATH, body=_batch_advanced_body(requests))

    def get_batch(self, batch_id: str) -> Dict[str, Any]:
        return self.http.get(f"{BATCH_PATH}/{batch_id}")

    def presets(self) -> List[Dict[str, Any]]:
        return _unwrap(self.http.get("/v1/presets"), "presets")

    def preset(self, preset_id: str) -> Dict[str, Any]:
        return self.http.get(f"/v1/presets/{preset_id}")

    def devices(self) -> List[Dict[str, Any]]:
        return _unwrap(self.http.get("/v1/devices"), "devices")

    def usage(self) -> Dict[str, Any]:
        return self.http.get("/v1/usage")

    @property
    def cache(self) -> CacheManager:
        return self._cache

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class AsyncClient(_ClientBase):
    """Asynchronous variant using httpx.AsyncClient."""

    def __init__(self, api_key: str | None = None, *, transport: Any = None, **kwargs: Any) -> None:
        super().__init__(api_key, **kwargs)
        self.http = AsyncHttpClient(self.credentials.api_key, transport=transport, **self._transport_kwargs)
        self._cache = AsyncCacheManager(self.http)

    async def take(self, options: TakeOptions | Mapping[str, Any]) -> bytes:
        response = await self.http.post_binary(SCREENSHOT_PATH, body=normalize_options(options))
        return response.body

    async def take_json(self, options: TakeOptions | Mapping[str, Any]) -> Dict[str, Any]:
        return await self.http.post(SCREENSHOT_PATH, body=normalize_options(options), headers=_JSON_ACCEPT)

    async def batch(
        self, urls: Iterable[str], *, options: TakeOptions | Mapping[str, Any] | None = None
    ) -> Dict[str, Any]:
        return await self.http.post(BATCH_PATH, body=_batch_body(urls, options))

    async def batch_advanced(self, requests: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
        return await self.http.post(BATCH_PATH, body=_batch_advanced_body(requests))

    async def get_batch(self, batch_id: str) -> Dict[str, Any]:
        return await self.http.get(f"{BATCH_PATH}/{batch_id}")

    async def presets(self) -> List[Dict[str, Any]]:
        return _unwrap(await self.http.get("/v1/presets"), "presets")

    async def preset(self, preset_id: str) -> Dict[str, Any]:
        return await self.http.get(f"/v1/presets/{preset_id}")

    async def devices(self) -> List[Dict[str, Any]]:
        return _unwrap(await self.http.get("/v1/devices"), "devices")

    async def usage(self) -> Dict[str, Any]:
        return await self.http.get("/v1/usage")

    @property
    def cache(self) -> AsyncCacheManager:
        return self._cache

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "AsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

