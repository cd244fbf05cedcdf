"""
Messages REST API — the fetch primitives the sync engine is built on.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from chatsync.errors import ChatSyncError, FetchError, SendError
from chatsync.models.message import ClearResult, Message, PollResult, SendResult
from chatsync.transport.http import HttpClient

logger = logging.getLogger(__name__)


def _parse_rows(data: Any) -> list[Message]:
    if not isinstance(data, list):
        raise FetchError(f"Expected a list of messages, got {type(data).__name__}", code="decode_error")
    return [_parse(Message, row) for row in data]


def _parse(model: type[BaseModel], data: Any) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise FetchError(
            f"Malformed {model.__name__} in response: {e.error_count()} error(s)",
            code="decode_error",
            details={"errors": e.errors()},
        )


class MessagesAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def fetch_latest(self, limit: int) -> list[Message]:
        """Up to ``limit`` newest messages, in whatever order the server returns them."""
        data = await self._http.get("/messages", params={"limit": limit, "offset": 0})
        return _parse_rows(data)

    async def fetch_older(self, before_id: int, limit: int) -> list[Message]:
        """Up to ``limit`` messages strictly older than ``before_id``."""
        data = await self._http.get("/messages", params={"before": before_id, "limit": limit})
        older = sorted((m for m in _parse_rows(data) if m.id < before_id), key=lambda m: m.sort_key)
        return older[-limit:] if limit else []

    async def probe(self, timeout: Optional[float] = None) -> None:
        """Cheapest authenticated read; raises FetchError on failure."""
        await self._http.get("/messages", params={"limit": 1}, timeout=timeout)

    async def poll(self, device_id: str, last_message_id: int, wait: int = 1,
                   timeout: Optional[float] = None) -> PollResult:
        """Ask whether messages newer than ``last_message_id`` exist. The server holds the request up to ``wait`` seconds."""
        data = await self._http.get(
            "/poll",
            params={"deviceId": device_id, "lastMessageId": last_message_id, "timeout": wait},
            timeout=(timeout or 5.0) + wait,
        )
        return _parse(PollResult, data)

    async def send_text(self, content: str, device_id: str) -> SendResult:
        try:
            data = await self._http.post("/messages", {"content": content, "deviceId": device_id})
            return _parse(SendResult, data)
        except FetchError as e:
            raise SendError(f"Failed to send message: {e}", details={"cause": e.code})

    async def sync_device(self, device_id: str, device_name: str) -> bool:
        """Register this device. Failure never blocks the session."""
        try:
            await self._http.post("/sync", {"deviceId": device_id, "deviceName": device_name})
            return True
        except FetchError as e:
            logger.warning(f"Device sync failed: {e}")
            return False

    async def clear_all(self, confirm_code: str) -> ClearResult:
        """Delete every message and file server-side."""
        try:
            data = await self._http.post("/clear-all", {"confirmCode": confirm_code})
        except FetchError as e:
            raise ChatSyncError("clear_failed", f"Failed to clear data: {e}")
        return _parse(ClearResult, data)
