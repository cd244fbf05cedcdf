"""
Message models — rows returned by ``/api/messages``.

Wire row: {id, type, content, device_id, timestamp, original_name, file_size, mime_type, r2_key}
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class MessageKind(str, Enum):
    TEXT = "text"
    FILE = "file"


class FileInfo(BaseModel):
    original_name: str = ""
    file_size: int = 0
    mime_type: Optional[str] = None
    r2_key: str = ""


class Message(BaseModel):
    """A message as stored server-side. Immutable once it has an id."""

    model_config = {"frozen": True, "populate_by_name": True}

    id: int
    kind: MessageKind = Field(MessageKind.TEXT, alias="type")
    body: str = Field("", alias="content")
    device_origin: str = Field("", alias="device_id")
    created_at: datetime = Field(alias="timestamp")
    file: Optional[FileInfo] = None

    @model_validator(mode="before")
    @classmethod
    def _lift_file_columns(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("file") or not data.get("r2_key"):
            return data
        row = dict(data)
        row["file"] = {
            "original_name": row.pop("original_name", None) or "",
            "file_size": row.pop("file_size", None) or 0,
            "mime_type": row.pop("mime_type", None),
            "r2_key": row.pop("r2_key"),
        }
        if not row.get("content"):
            row["content"] = row["file"]["original_name"]
        return row

    @field_validator("body", mode="before")
    @classmethod
    def _none_body(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("created_at", mode="before")
    @classmethod
    def _sqlite_timestamp(cls, v: Any) -> Any:
        # D1 emits CURRENT_TIMESTAMP as "YYYY-MM-DD HH:MM:SS"
        if isinstance(v, str) and len(v) > 10 and v[10] == " ":
            return f"{v[:10]}T{v[11:]}"
        return v

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.created_at, self.id)


class SendResult(BaseModel):
    """POST /api/messages response data."""
    id: int


class ClearResult(BaseModel):
    """POST /api/clear-all response data."""

    model_config = {"populate_by_name": True}

    deleted_messages: int = Field(0, alias="deletedMessages")
    deleted_files: int = Field(0, alias="deletedFiles")
    deleted_file_size: int = Field(0, alias="deletedFileSize")
    deleted_r2_files: int = Field(0, alias="deletedR2Files")


class PollResult(BaseModel):
    """GET /api/poll response."""

    model_config = {"populate_by_name": True}

    has_new_messages: bool = Field(False, alias="hasNewMessages")
    new_message_count: int = Field(0, alias="newMessageCount")
    timestamp: Optional[str] = None
