"""
Connection and pagination state.
"""

from enum import Enum

from pydantic import BaseModel


class ConnectionQuality(str, Enum):
    UNKNOWN = "unknown"
    GOOD = "good"
    POOR = "poor"
    OFFLINE = "offline"


class TransportState(str, Enum):
    CONNECTING = "connecting"
    PUSH_ACTIVE = "push_active"
    RECONNECTING = "reconnecting"
    POLLING_ACTIVE = "polling_active"
    DISCONNECTED = "disconnected"


class ConnectionState(BaseModel):
    """Read-only snapshot assembled from the monitor and the transport."""

    model_config = {"frozen": True}

    is_online: bool = True
    quality: ConnectionQuality = ConnectionQuality.UNKNOWN
    transport: TransportState = TransportState.DISCONNECTED
    reconnect_attempt: int = 0


class PaginationCursor(BaseModel):
    offset: int = 0
    page_size: int = 30
    exhausted: bool = False

    def reset(self, exhausted: bool = False) -> None:
        self.offset = 0
        self.exhausted = exhausted
