"""
chatsync — real-time message synchronization for the chat/file-transfer edge API.

Push (SSE or Socket.IO) with backoff and polling fallback, change
reconciliation, and scroll-anchored backward pagination.
"""

from chatsync.client import AsyncChatSync
from chatsync.auth import Auth
from chatsync.config import SyncConfig
from chatsync.controller import SyncController
from chatsync.messages import MessagesAPI
from chatsync.errors import ChatSyncError, AuthError, FetchError, SendError, TransportError
from chatsync.events import MonitorEvent, TransportEvent
from chatsync.models.message import Message, MessageKind
from chatsync.models.state import ConnectionQuality, ConnectionState, TransportState

__version__ = "0.1.0"
__all__ = [
    "AsyncChatSync",
    "Auth",
    "SyncConfig",
    "SyncController",
    "MessagesAPI",
    "ChatSyncError",
    "AuthError",
    "FetchError",
    "SendError",
    "TransportError",
    "MonitorEvent",
    "TransportEvent",
    "Message",
    "MessageKind",
    "ConnectionQuality",
    "ConnectionState",
    "TransportState",
]
