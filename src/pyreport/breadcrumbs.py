import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional

from .consts import DEFAULT_MAX_BREADCRUMBS
from .models import Breadcrumb, Level

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Dict[str, Any]], None]


class BreadcrumbStore:
    """
    A bounded, ordered log of recent diagnostic events.

    The store may be written from any thread. Append, eviction, clearing and
    the change notification all happen inside one lock, so observers see every
    state the store passes through, in order. On overflow the oldest
    breadcrumb is dropped.
    """

    def __init__(self, max_breadcrumbs: int = DEFAULT_MAX_BREADCRUMBS, on_change: Optional[ChangeCallback] = None):
        if max_breadcrumbs < 1:
            raise ValueError("max_breadcrumbs must be at least 1")
        self.max_breadcrumbs = max_breadcrumbs
        self._crumbs: Deque[Breadcrumb] = deque()
        self._lock = threading.RLock()
        self._on_change = on_change

    def set_on_change(self, callback: Optional[ChangeCallback]):
        with self._lock:
            self._on_change = callback

    def record(self, breadcrumb: Breadcrumb):
        if not isinstance(breadcrumb, Breadcrumb):
            raise TypeError("Only Breadcrumb objects can be recorded")
        with self._lock:
            self._crumbs.append(breadcrumb)
            while len(self._crumbs) > self.max_breadcrumbs:
                self._crumbs.popleft()
            self._notify()

    def add(
        self,
        category: str,
        message: str | None = None,
        level: Level = Level.INFO,
        data: Dict[str, Any] | None = None,
        type: str = "default",
    ) -> Breadcrumb:
        breadcrumb = Breadcrumb(category=category, message=message, level=level, data=data, type=type)
        self.record(breadcrumb)
        return breadcrumb

    def clear(self):
        with self._lock:
            self._crumbs.clear()
            self._notify()

    def consume(self) -> Dict[str, Any]:
        """Returns the serialized contents and empties the store in one step."""
        with self._lock:
            snapshot = self._serialize()
            self._crumbs.clear()
            self._notify()
            return snapshot

    @property
    def serialized(self) -> Dict[str, Any]:
        with self._lock:
            return self._serialize()

    def _serialize(self) -> Dict[str, Any]:
        return {"values": [crumb.serialize() for crumb in self._crumbs]}

    def _notify(self):
        if self._on_change is None:
            return
        try:
            self._on_change(self._serialize())
        except Exception as e:
            logger.warning(f"Breadcrumb change callback failed: {e}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._crumbs)

    def __iter__(self) -> Iterator[Breadcrumb]:
        with self._lock:
            snapshot: List[Breadcrumb] = list(self._crumbs)
        return iter(snapshot)
