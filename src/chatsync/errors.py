"""
chatsync error types.

Every error carries a short machine-readable ``code``. Background sync paths
catch ``ChatSyncError`` and log it; interactive paths let it propagate.
"""

from typing import Any, Optional


class ChatSyncError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class AuthError(ChatSyncError):
    def __init__(self, message: str, code: str = "auth_error"):
        super().__init__(code, message)


class FetchError(ChatSyncError):
    def __init__(self, message: str, code: str = "fetch_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class SendError(ChatSyncError):
    def __init__(self, message: str, code: str = "send_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class TransportError(ChatSyncError):
    def __init__(self, message: str):
        super().__init__("transport_error", message)
