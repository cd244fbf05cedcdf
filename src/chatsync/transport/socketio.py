"""
Socket.IO push channel — alternative to server-sent events for deployments
that front the API with a Socket.IO gateway.

Connection: {baseUrl}/socket.io/ with auth={token, device_id}.
The gateway emits `new_messages` with {"count": n}. Reconnection is left to the
TransportManager, so the client's own reconnection is disabled.
"""

import asyncio
import logging
from typing import Any, Optional

import socketio

from chatsync.errors import TransportError
from chatsync.transport.channel import PushHandlers

SOCKETIO_PATH = "/socket.io/"
NEW_MESSAGES_EVENT = "new_messages"

logger = logging.getLogger(__name__)


class SocketIOPushChannel:
    def __init__(
        self,
        base_url: str,
        token: str,
        device_id: str,
        handlers: PushHandlers,
        transports: Optional[list[str]] = None,
    ):
        self._base_url = base_url
        self._token = token
        self._device_id = device_id
        self._handlers = handlers
        self._transports = transports or ["websocket"]
        self._closed = False
        self._sio = socketio.AsyncClient(reconnection=False)
        self._register()
        self._task: Optional[asyncio.Task[None]] = asyncio.get_running_loop().create_task(self._connect())

    @classmethod
    def factory(cls, base_url: str, token: str, transports: Optional[list[str]] = None):
        def open_channel(device_id: str, handlers: PushHandlers) -> "SocketIOPushChannel":
            return cls(base_url, token, device_id, handlers, transports=transports)
        return open_channel

    @property
    def is_open(self) -> bool:
        return not self._closed and self._sio.connected

    def _register(self) -> None:
        @self._sio.event
        async def connect() -> None:
            if not self._closed:
                self._handlers.on_open()

        @self._sio.on(NEW_MESSAGES_EVENT)
        async def on_new_messages(data: Any = None) -> None:
            if self._closed:
                return
            count = data.get("count", 1) if isinstance(data, dict) else 1
            self._handlers.on_data(count)

        @self._sio.event
        async def disconnect(_reason: str = "") -> None:
            if not self._closed:
                self._handlers.on_error(TransportError("Socket.IO connection closed"))

    async def _connect(self) -> None:
        try:
            await self._sio.connect(
                self._base_url,
                auth={"token": self._token, "device_id": self._device_id},
                transports=self._transports,
                socketio_path=SOCKETIO_PATH,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._closed:
                logger.debug(f"Socket.IO connect failed: {e}")
                self._handlers.on_error(e)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            self._task = None

        async def _do_disconnect() -> None:
            try:
                await self._sio.disconnect()
            except Exception as e:
                logger.error(f"Socket.IO disconnect failed: {e}")

        try:
            loop = asyncio.get_running_loop()
            loop.create_task(_do_disconnect())
        except RuntimeError:
            logger.debug("No running loop; Socket.IO client left for garbage collection")
