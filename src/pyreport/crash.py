"""
A pure-Python crash handler: it turns uncaught exceptions into fatal events.

The handler never reads the client. It keeps its own copy of the context,
which the client pushes to it on every change, so the fatal event it builds
already carries the user, tags, extra, release version and breadcrumbs that
were current when the process crashed.
"""
import logging
import sys
import threading
from typing import Any, Callable, Dict

from .events import event_for_exception
from .models import Event, Level, User

logger = logging.getLogger(__name__)

CrashSink = Callable[[Event], None]


class ExceptHookCrashHandler:
    def __init__(self, sink: CrashSink | None = None):
        self.sink = sink
        self.breadcrumbs_serialized: Dict[str, Any] | None = None
        self.tags: Dict[str, Any] = {}
        self.extra: Dict[str, Any] = {}
        self.user: User | None = None
        self.release_version: str | None = None
        self._previous_excepthook = None
        self._previous_threading_excepthook = None
        self._lock = threading.Lock()

    # Mirror of the client context.

    def set_breadcrumbs(self, serialized: Dict[str, Any]):
        with self._lock:
            self.breadcrumbs_serialized = serialized

    def set_tags(self, tags: Dict[str, Any]):
        with self._lock:
            self.tags = dict(tags)

    def set_extra(self, extra: Dict[str, Any]):
        with self._lock:
            self.extra = dict(extra)

    def set_user(self, user: User | None):
        with self._lock:
            self.user = user

    def set_release_version(self, release_version: str | None):
        with self._lock:
            self.release_version = release_version

    # Hook management.

    @property
    def installed(self) -> bool:
        return self._previous_excepthook is not None

    def start_crash_reporting(self):
        if self.installed:
            return
        self._previous_excepthook = sys.excepthook
        self._previous_threading_excepthook = threading.excepthook
        sys.excepthook = self._excepthook
        threading.excepthook = self._threading_excepthook

    def stop_crash_reporting(self):
        if not self.installed:
            return
        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_excepthook
        if threading.excepthook == self._threading_excepthook:
            threading.excepthook = self._previous_threading_excepthook
        self._previous_excepthook = None
        self._previous_threading_excepthook = None

    def _excepthook(self, exc_type, exc_value, exc_tb):
        self.handle_exception(exc_value)
        if self._previous_excepthook is not None:
            self._previous_excepthook(exc_type, exc_value, exc_tb)

    def _threading_excepthook(self, args):
        if args.exc_value is not None:
            self.handle_exception(args.exc_value)
        if self._previous_threading_excepthook is not None:
            self._previous_threading_excepthook(args)

    def crash_event(self, exc: BaseException) -> Event:
        """Builds the fatal event for `exc` from the mirrored context."""
        event = event_for_exception(exc, level=Level.FATAL)
        with self._lock:
            tags, extra = self.tags, self.extra
            event.user = self.user
            event.release_version = self.release_version
            event.breadcrumbs_serialized = self.breadcrumbs_serialized
        try:
            event.tags = {**event.tags, **tags}
        except ValueError as e:
            logger.debug(f"Crash report dropped client tags: {e}")
        try:
            event.extra = {**event.extra, **extra}
        except ValueError as e:
            logger.debug(f"Crash report dropped client extra: {e}")
        return event

    def handle_exception(self, exc: BaseException):
        if isinstance(exc, KeyboardInterrupt) or self.sink is None:
            return
        try:
            self.sink(self.crash_event(exc))
        except Exception as e:
            logger.error(f"Failed to report crash: {e}")
