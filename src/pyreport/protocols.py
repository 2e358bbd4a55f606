"""
This module defines the abstract protocols for the client's collaborators.

By using `Protocol`-based interfaces, the capture and delivery logic is
decoupled from the concrete transport, persistence and crash-reporting
backends. The HTTP transport and the SQLite storage are the shipped
implementations; tests and embedders can substitute their own.
"""
from typing import Any, Dict, List, Protocol

from .models import PersistedEvent, User


class Transport(Protocol):
    """
    Sends one encoded event. Completion is reported by the awaited result:
    True when the endpoint accepted the event, False otherwise.
    """

    async def send(self, payload: bytes) -> bool:
        ...

    async def close(self):
        ...


class EventStorage(Protocol):
    """
    Defines the contract for the on-disk queue of events whose send failed.
    Records are listed oldest first and each one deletes itself.
    """

    async def save(self, data: bytes) -> int:
        ...

    async def list_saved(self) -> List[PersistedEvent]:
        ...

    async def delete(self, record_id: int):
        ...


class CrashHandler(Protocol):
    """
    A push-based mirror of the client context. The client calls these setters
    whenever the corresponding property changes, so a crash report can be
    assembled without touching the client.
    """

    def start_crash_reporting(self):
        ...

    def set_breadcrumbs(self, serialized: Dict[str, Any]):
        ...

    def set_tags(self, tags: Dict[str, Any]):
        ...

    def set_extra(self, extra: Dict[str, Any]):
        ...

    def set_user(self, user: User | None):
        ...

    def set_release_version(self, release_version: str | None):
        ...
