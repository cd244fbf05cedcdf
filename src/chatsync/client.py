"""
AsyncChatSync — main client: REST APIs plus sync sessions over SSE or Socket.IO.
"""

import uuid
from pathlib import Path
from typing import Optional

from chatsync.auth import Auth
from chatsync.config import SyncConfig
from chatsync.controller import SyncController
from chatsync.errors import AuthError
from chatsync.messages import MessagesAPI
from chatsync.renderer import Renderer
from chatsync.transport.channel import PushChannelFactory
from chatsync.transport.http import DEFAULT_BASE_URL, HttpClient
from chatsync.transport.socketio import SocketIOPushChannel
from chatsync.transport.sse import SSEPushChannel

DEVICE_ID_FILE = Path.home() / ".chatsync" / "device_id"
DEVICE_ID_PREFIX = "cli-"

PUSH_SSE = "sse"
PUSH_SOCKETIO = "socketio"
PUSH_NONE = "none"


def _get_or_create_device_id(provided: Optional[str] = None) -> str:
    if provided:
        return provided
    try:
        return DEVICE_ID_FILE.read_text().strip()
    except FileNotFoundError:
        device_id = f"{DEVICE_ID_PREFIX}{uuid.uuid4()}"
        try:
            DEVICE_ID_FILE.parent.mkdir(parents=True, exist_ok=True)
            DEVICE_ID_FILE.write_text(device_id)
        except OSError:
            pass
        return device_id


class AsyncChatSync:
    """Async client (primary)."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        device_id: Optional[str] = None,
        config: Optional[SyncConfig] = None,
        push: str = PUSH_SSE,
    ):
        self._base_url = base_url
        self.config = config or SyncConfig()
        self.device_id = _get_or_create_device_id(device_id)
        self._push = push

        self.http = HttpClient(base_url=base_url, token=access_token, timeout=self.config.request_timeout)
        self.auth = Auth(self.http)
        self.messages = MessagesAPI(self.http)

    def push_factory(self) -> Optional[PushChannelFactory]:
        if self._push == PUSH_SSE:
            return SSEPushChannel.factory(self.http)
        if self._push == PUSH_SOCKETIO:
            return SocketIOPushChannel.factory(self._base_url, self.http.token or "")
        return None

    def session(self, renderer: Renderer, device_name: str = "chatsync") -> SyncController:
        """Build a sync session bound to ``renderer``. Call ``start()`` on it to go live."""
        if not self.http.token:
            raise AuthError("access_token required. Run the login flow first.")
        return SyncController(
            self.messages,
            renderer,
            push_factory=self.push_factory(),
            config=self.config,
            device_name=device_name,
        )

    async def close(self) -> None:
        await self.http.close()
