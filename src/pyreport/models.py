"""
This module defines the core data models for the reporting client using Pydantic.
These models serve as the data transfer objects (DTOs) between the capture
paths, the context merge, the delivery pipeline and the storage adapters, and
ensure that every event is well-structured and validated before it is sent.
"""
import json
import os
import sys
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from .consts import SDK_NAME, VERSION


JSON_SCALARS = (str, int, float, bool, type(None))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Level(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


class User(BaseModel):
    user_id: str
    email: Optional[str] = None
    username: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None

    def serialize(self) -> Dict[str, Any]:
        data = {"id": self.user_id, "email": self.email, "username": self.username, "extra": self.extra}
        return {k: v for k, v in data.items() if v is not None}


class Breadcrumb(BaseModel):
    """A single diagnostic trail entry. Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    category: str
    message: Optional[str] = None
    level: Level = Level.INFO
    type: str = "default"
    data: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    def serialize(self) -> Dict[str, Any]:
        crumb: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "category": self.category,
            "level": self.level.value,
            "type": self.type,
        }
        if self.message is not None:
            crumb["message"] = self.message
        if self.data:
            crumb["data"] = self.data
        return crumb


class SourceLocation(BaseModel):
    """The file, line and function an event was captured at."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: int
    function: str

    @classmethod
    def caller(cls, depth: int = 1) -> "SourceLocation":
        """Location of the frame `depth` levels above the caller of this method."""
        frame = sys._getframe(depth + 1)
        return cls(file=frame.f_code.co_filename, line=frame.f_lineno, function=frame.f_code.co_name)

    @property
    def file_name(self) -> str:
        return os.path.basename(self.file)

    @property
    def culprit(self) -> str:
        return f"{self.file_name}:{self.line} {self.function}"

    @property
    def stack_trace(self) -> Dict[str, List[Dict[str, Any]]]:
        frame = {"filename": self.file_name, "function": self.function, "lineno": self.line}
        return {"frames": [frame]}


class ExceptionRecord(BaseModel):
    type: str
    value: str
    module: Optional[str] = None
    stacktrace: Optional[Dict[str, Any]] = None


class ErrorInfo(BaseModel):
    """An error identified by a domain and a numeric code, with optional nested details."""

    domain: str
    code: int
    user_info: Optional[Dict[str, Any]] = None


def _check_json(value: Any, what: str):
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{what} is not JSON serializable: {e}") from e


class Event(BaseModel):
    """
    A structured report ready for transmission. The capture flow that built it
    owns it until it is handed to the delivery pipeline.
    """

    model_config = ConfigDict(validate_assignment=True)

    message: str
    level: Level = Level.ERROR
    event_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=_utcnow)
    culprit: Optional[str] = None
    stack_trace: Optional[Dict[str, Any]] = None
    exceptions: Optional[List[ExceptionRecord]] = None
    tags: Dict[str, Any] = Field(default_factory=dict)
    extra: Dict[str, Any] = Field(default_factory=dict)
    user: Optional[User] = None
    release_version: Optional[str] = None
    breadcrumbs_serialized: Optional[Dict[str, Any]] = None

    @field_validator("tags")
    @classmethod
    def _tags_are_json_scalars(cls, tags: Dict[str, Any]) -> Dict[str, Any]:
        for key, value in tags.items():
            if not isinstance(value, JSON_SCALARS):
                raise ValueError(f"Tag '{key}' must be a JSON scalar, got {type(value).__name__}")
        _check_json(tags, "tags")
        return tags

    @field_validator("extra")
    @classmethod
    def _extra_is_json(cls, extra: Dict[str, Any]) -> Dict[str, Any]:
        _check_json(extra, "extra")
        return extra

    def set_tag(self, key: str, value: Any):
        self.tags = {**self.tags, key: value}

    def set_extra(self, key: str, value: Any):
        self.extra = {**self.extra, key: value}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "level": self.level.value,
            "platform": "python",
            "sdk": {"name": SDK_NAME, "version": VERSION},
            "tags": self.tags,
            "extra": self.extra,
        }
        if self.culprit is not None:
            payload["culprit"] = self.culprit
        if self.stack_trace is not None:
            payload["stacktrace"] = self.stack_trace
        if self.exceptions:
            payload["exception"] = [e.model_dump(exclude_none=True) for e in self.exceptions]
        if self.user is not None:
            payload["user"] = self.user.serialize()
        if self.release_version is not None:
            payload["release"] = self.release_version
        if self.breadcrumbs_serialized is not None:
            payload["breadcrumbs"] = self.breadcrumbs_serialized
        return payload

    def to_json_bytes(self) -> bytes:
        return json.dumps(self.to_payload(), allow_nan=False).encode("utf-8")


class PersistedEvent(BaseModel):
    """An encoded event waiting on disk for a resend."""

    record_id: int
    data: bytes
    saved_at: datetime
    _delete: Optional[Callable[[int], Awaitable[None]]] = PrivateAttr(default=None)

    def bind(self, delete: Callable[[int], Awaitable[None]]) -> "PersistedEvent":
        self._delete = delete
        return self

    async def delete(self):
        if self._delete is None:
            raise RuntimeError(f"Persisted event {self.record_id} is not bound to a storage")
        await self._delete(self.record_id)
