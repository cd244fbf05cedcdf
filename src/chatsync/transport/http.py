"""
REST HTTP client for the chat edge API.

Every JSON response is wrapped as {"success": bool, "data": ..., "error": ...}.
Transport failures, non-2xx statuses and ``success: false`` all surface as
``FetchError``.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx

from chatsync.errors import FetchError

DEFAULT_BASE_URL = "http://localhost:8787"
USER_AGENT = "chatsync/0.1.0"


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/api",
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def _auth_headers(self, authenticated: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _unwrap(json_data: Any) -> Any:
        """Unwrap {"success": true, "data": <actual_data>}; raise on success: false."""
        if isinstance(json_data, dict) and "success" in json_data:
            if not json_data["success"]:
                message = json_data.get("error") or json_data.get("message") or "request failed"
                raise FetchError(str(message), code="api_error")
            if "data" in json_data:
                return json_data["data"]
        return json_data

    async def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise FetchError(f"{method} {path} timed out: {e}", code="timeout")
        except httpx.HTTPError as e:
            raise FetchError(f"{method} {path} failed: {e}", code="network_error")
        if resp.status_code >= 400:
            raise FetchError(
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                code="http_error",
                details={"status": resp.status_code},
            )
        try:
            body = resp.json()
        except ValueError:
            raise FetchError(f"{method} {path} returned a non-JSON body", code="decode_error")
        return self._unwrap(body)

    async def get(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        authenticated: bool = True,
        timeout: Optional[float] = None,
    ) -> Any:
        return await self._send(
            "GET", path, params=params, headers=self._auth_headers(authenticated),
            timeout=timeout if timeout is not None else self._timeout,
        )

    async def post(
        self,
        path: str,
        body: Optional[dict[str, Any]] = None,
        authenticated: bool = True,
        timeout: Optional[float] = None,
    ) -> Any:
        return await self._send(
            "POST", path, json=body, headers=self._auth_headers(authenticated),
            timeout=timeout if timeout is not None else self._timeout,
        )

    @asynccontextmanager
    async def stream(self, path: str, params: Optional[dict[str, Any]] = None) -> AsyncIterator[httpx.Response]:
        """Open a long-lived GET stream. No read timeout: an idle stream is still alive."""
        headers = self._auth_headers(True)
        headers["Accept"] = "text/event-stream"
        headers["Cache-Control"] = "no-cache"
        timeout = httpx.Timeout(self._timeout, read=None)
        async with self._client.stream("GET", path, params=params, headers=headers, timeout=timeout) as resp:
            yield resp

    async def close(self) -> None:
        await self._client.aclose()
