"""HTTP transport for the RenderScreenshot API.

`HttpClient` (requests) and `AsyncHttpClient` (httpx) execute one logical
operation, converting transport failures and non-2xx responses into
`renderscreenshot.errors` types and retrying the retryable ones.

Retry policy
- attempts = 1 + max_retries, and only for retryable error kinds
- delay = Retry-After seconds when the service sends one, otherwise
  retry_delay * 2**(attempt-1) plus up to 50% jitter, capped at 30s
- the per-attempt timeout bounds each physical request; the whole retry
  sequence has no overall deadline
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx
import requests
from requests.structures import CaseInsensitiveDict

from . import __version__
from .config import settings
from .errors import SDKError, TimeoutError, TransportError
from .signing import stringify

logger = logging.getLogger(__name__)

USER_AGENT = f"renderscreenshot-python/{__version__}"

CONNECT_TIMEOUT = 10.0
MAX_RETRY_DELAY = 30.0


@dataclass
class BinaryResponse:
    body: bytes
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        seconds = int(str(value).strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def decode_body(content: bytes, content_type: str) -> Any:
    """Decode a response body; JSON when the content type says so, else text."""
    if not content:
        return {}
    text = content.decode("utf-8", errors="replace")
    if "application/json" in (content_type or ""):
        try:
            return json.loads(text)
        except ValueError:
            return text
    return text


def backoff_delay(attempt: int, base_delay: float) -> float:
    calculated = base_delay * (2 ** (attempt - 1))
    jitter = random.random() * base_delay * 0.5
    return min(calculated + jitter, MAX_RETRY_DELAY)


class _BaseHttpClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int = 0,
        retry_delay: float = 1.0,
    ) -> None:
        defaults = settings()
        self.api_key = api_key
        self.base_url = (base_url or defaults.base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else defaults.timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._lock = threading.Lock()

    def _url(self, path: str) -> str:
        return self.base_url + ("" if path.startswith("/") else "/") + path

    def _headers(self, body: Any, extra: Mapping[str, str] | None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "User-Agent": USER_AGENT,
        }
        if body is not None:
            headers["Content-Type"] = "application/json"
        headers.update(extra or {})
        return headers

    @staticmethod
    def _encode_body(body: Any) -> str | bytes | None:
        if body is None or isinstance(body, (str, bytes)):
            return body
        return json.dumps(body)

    @staticmethod
    def _encode_params(params: Mapping[str, Any] | None) -> Dict[str, str] | None:
        if not params:
            return None
        return {str(k): stringify(v) for k, v in params.items() if v is not None}

    def _handle_response(self, status: int, headers: Mapping[str, str], content: bytes, binary: bool) -> Any:
        if not 200 <= status < 300:
            raise SDKError.from_response(
                status,
                decode_body(content, headers.get("Content-Type", "")),
                retry_after=parse_retry_after(headers.get("Retry-After")),
                request_id=headers.get("X-Request-Id"),
            )
        if binary:
            return BinaryResponse(body=content, headers=CaseInsensitiveDict(headers))
        return decode_body(content, headers.get("Content-Type", ""))

    def _retry_delay_for(self, error: SDKError, attempt: int, method: str, path: str) -> float | None:
        """Return how long to wait before the next attempt, or None to give up."""
        if not error.retryable or attempt > self.max_retries:
            return None
        if error.retry_after is not None:
            delay = float(error.retry_after)
        else:
            delay = backoff_delay(attempt, self.retry_delay)
        logger.debug(
            "retrying %s %s after %s (attempt %d of %d) in %.2fs",
            method,
            path,
            error.kind.value,
            attempt,
            self.max_retries + 1,
            delay,
        )
        return delay


class HttpClient(_BaseHttpClient):
    """Synchronous transport backed by a lazily created `requests.Session`."""

    def __init__(self, api_key: str, *, session: requests.Session | None = None, **kwargs: Any) -> None:
        super().__init__(api_key, **kwargs)
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> requests.Session:
        session = self._session
        if session is None:
            with self._lock:
                if self._session is None:
                    self._session = requests.Session()
                session = self._session
        return session

    def get(self, path: str, *, params: Mapping[str, Any] | None = None, headers: Mapping[str, str] | None = None) -> Any:
        return self.request("GET", path, params=params, headers=headers)

    def get_binary(
        self, path: str, *, params: Mapping[str, Any] | None = None, headers: Mapping[str, str] | None = None
    ) -> BinaryResponse:
        return self.request("GET", path, params=params, headers=headers, binary=True)

    def post(self, path: str, *, body: Any = None, headers: Mapping[str, str] | None = None) -> Any:
        return self.request("POST", path, body=body, headers=headers)

    def post_binary(self, path: str, *, body: Any = None, headers: Mapping[str, str] | None = None) -> BinaryResponse:
        return self.request("POST", path, body=body, headers=headers, binary=True)

    def delete(
        self, path: str, *, params: Mapping[str, Any] | None = None, headers: Mapping[str, str] | None = None
    ) -> Any:
        return self.request("DELETE", path, params=params, headers=headers)

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        binary: bool = False,
    ) -> Any:
        attempt = 1
        while True:
            try:
                resp = self._execute(method, path, params, body, headers)
                return self._handle_response(resp.status_code, resp.headers, resp.content, binary)
            except SDKError as error:
                delay = self._retry_delay_for(error, attempt, method, path)
                if delay is None:
                    raise
            time.sleep(delay)
            attempt += 1

    def _execute(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None,
        body: Any,
        headers: Mapping[str, str] | None,
    ) -> requests.Response:
        try:
            return self.session.request(
                method,
                self._url(path),
                params=self._encode_params(params),
                data=self._encode_body(body),
                headers=self._headers(body, headers),
                timeout=(CONNECT_TIMEOUT, self.timeout),
            )
        except requests.Timeout as e:
            raise TimeoutError.timeout() from e
        except requests.RequestException as e:
            raise TransportError.connection_failed(str(e)) from e

    def close(self) -> None:
        if self._session is not None and self._owns_session:
            self._session.close()
            self._session = None

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class AsyncHttpClient(_BaseHttpClient):
    """Asynchronous variant using httpx.AsyncClient."""

    def __init__(self, api_key: str, *, transport: httpx.AsyncBaseTransport | None = None, **kwargs: Any) -> None:
        super().__init__(api_key, **kwargs)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        client = self._client
        if client is None:
            with self._lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(
                        timeout=httpx.Timeout(self.timeout, connect=CONNECT_TIMEOUT),
                        transport=self._transport,
                    )
                client = self._client
        return client

    async def get(
        self, path: str, *, params: Mapping[str, Any] | None = None, headers: Mapping[str, str] | None = None
    ) -> Any:
        return await self.request("GET", path, params=params, headers=headers)

    async def get_binary(
        self, path: str, *, params: Mapping[str, Any] | None = None, headers: Mapping[str, str] | None = None
    ) -> BinaryResponse:
        return await self.request("GET", path, params=params, headers=headers, binary=True)

    async def post(self, path: str, *, body: Any = None, headers: Mapping[str, str] | None = None) -> Any:
        return await self.request("POST", path, body=body, headers=headers)

    async def post_binary(
        self, path: str, *, body: Any = None, headers: Mapping[str, str] | None = None
    ) -> BinaryResponse:
        return await self.request("POST", path, body=body, headers=headers, binary=True)

    async def delete(
        self, path: str, *, params: Mapping[str, Any] | None = None, headers: Mapping[str, str] | None = None
    ) -> Any:
        return await self.request("DELETE", path, params=params, headers=headers)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        binary: bool = False,
    ) -> Any:
        attempt = 1
        while True:
            try:
                resp = await self._execute(method, path, params, body, headers)
                return self._handle_response(resp.status_code, resp.headers, resp.content, binary)
            except SDKError as error:
                delay = self._retry_delay_for(error, attempt, method, path)
                if delay is None:
                    raise
            await asyncio.sleep(delay)
            attempt += 1

    async def _execute(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None,
        body: Any,
        headers: Mapping[str, str] | None,
    ):
        try:
            return await self.client.request(
                method,
                self._url(path),
                params=self._encode_params(params),
                content=self._encode_body(body),
                headers=self._headers(body, headers),
            )
        except httpx.TimeoutException as e:
            raise TimeoutError.timeout() from e
        except httpx.HTTPError as e:
            raise TransportError.connection_failed(str(e)) from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AsyncHttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
