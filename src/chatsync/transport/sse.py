"""
Server-sent events push channel — GET /api/events?deviceId=...&token=...

Events:
  connection  stream accepted
  message     {"newMessages": <count>}
  heartbeat   keep-alive, ignored
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional

from chatsync.errors import TransportError
from chatsync.transport.channel import PushHandlers
from chatsync.transport.http import HttpClient

logger = logging.getLogger(__name__)


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[tuple[str, str]]:
    """Group raw stream lines into (event, data) pairs."""
    event = "message"
    data: list[str] = []
    async for line in lines:
        if not line:
            if data:
                yield event, "\n".join(data)
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
    if data:
        yield event, "\n".join(data)


def new_message_count(data: str) -> int:
    try:
        payload = json.loads(data)
    except ValueError:
        return 0
    if isinstance(payload, dict):
        try:
            return int(payload.get("newMessages") or 0)
        except (TypeError, ValueError):
            return 0
    return 0


class SSEPushChannel:
    def __init__(self, http: HttpClient, device_id: str, handlers: PushHandlers):
        self._http = http
        self._device_id = device_id
        self._handlers = handlers
        self._open = False
        self._closed = False
        self._task: Optional[asyncio.Task[None]] = asyncio.get_running_loop().create_task(self._run())

    @classmethod
    def factory(cls, http: HttpClient):
        def open_channel(device_id: str, handlers: PushHandlers) -> "SSEPushChannel":
            return cls(http, device_id, handlers)
        return open_channel

    @property
    def is_open(self) -> bool:
        return self._open and not self._closed

    async def _run(self) -> None:
        params = {"deviceId": self._device_id, "token": self._http.token or ""}
        try:
            async with self._http.stream("/events", params=params) as resp:
                if resp.status_code != 200:
                    raise TransportError(f"Event stream rejected with HTTP {resp.status_code}")
                async for event, data in iter_sse(resp.aiter_lines()):
                    if self._closed:
                        return
                    self._dispatch(event, data)
            raise TransportError("Event stream closed by server")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._open = False
            if not self._closed:
                logger.debug(f"SSE channel failed: {e}")
                self._handlers.on_error(e)

    def _dispatch(self, event: str, data: str) -> None:
        if event == "connection":
            self._open = True
            self._handlers.on_open()
        elif event == "message":
            count = new_message_count(data)
            if count > 0:
                self._handlers.on_data(count)
        elif event == "heartbeat":
            logger.debug("SSE heartbeat")

    def close(self) -> None:
        self._closed = True
        self._open = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
