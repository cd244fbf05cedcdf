"""
Auth module — password login returning a bearer token.
"""

from typing import Any

from chatsync.errors import AuthError, FetchError
from chatsync.transport.http import HttpClient


class Auth:
    def __init__(self, http: HttpClient):
        self._http = http

    async def login(self, password: str) -> dict[str, Any]:
        """Exchange the access password for a token and install it on the client."""
        try:
            result = await self._http.post("/auth/login", {"password": password}, authenticated=False)
        except FetchError as e:
            raise AuthError(f"Login failed: {e}")
        token = result.get("token") if isinstance(result, dict) else None
        if not token:
            raise AuthError("Login response did not contain a token")
        self._http.set_token(token)
        return result

    async def verify(self) -> bool:
        """True if the current token is still accepted."""
        if not self._http.token:
            return False
        try:
            result = await self._http.get("/auth/verify")
        except FetchError:
            return False
        return isinstance(result, dict) and result.get("valid") is True

    async def logout(self) -> None:
        try:
            await self._http.post("/auth/logout")
        except FetchError as e:
            raise AuthError(f"Logout failed: {e}")
        finally:
            self._http.set_token(None)
