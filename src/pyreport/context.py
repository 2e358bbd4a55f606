"""
Client-wide context and the rules for applying it to an event.

`ClientContext` is the single mutation point for user, tags, extra and the
release version: every setter pushes the new value to the attached crash
handler. `apply_client_context` merges that context into an event in place.
"""
import logging
from typing import Any, Dict

from .breadcrumbs import BreadcrumbStore
from .consts import DEFAULT_MAX_BREADCRUMBS
from .models import Event, Level, User
from .protocols import CrashHandler
from .serializer import is_json_serializable

logger = logging.getLogger(__name__)


class ClientContext:
    def __init__(self, release_version: str | None = None, max_breadcrumbs: int = DEFAULT_MAX_BREADCRUMBS):
        self.user: User | None = None
        self.tags: Dict[str, Any] = {}
        self.extra: Dict[str, Any] = {}
        self.release_version = release_version
        self.crash_handler: CrashHandler | None = None
        self.breadcrumbs = BreadcrumbStore(max_breadcrumbs, on_change=self._breadcrumbs_changed)

    def attach_crash_handler(self, crash_handler: CrashHandler):
        """Attaches the mirror, seeds it with the current context and starts it."""
        self.crash_handler = crash_handler
        crash_handler.set_user(self.user)
        crash_handler.set_tags(self.tags)
        crash_handler.set_extra(self.extra)
        crash_handler.set_release_version(self.release_version)
        crash_handler.set_breadcrumbs(self.breadcrumbs.serialized)
        crash_handler.start_crash_reporting()

    def set_user(self, user: User | None):
        self.user = user
        if self.crash_handler:
            self.crash_handler.set_user(user)

    def set_tags(self, tags: Dict[str, Any]):
        self.tags = dict(tags)
        if self.crash_handler:
            self.crash_handler.set_tags(self.tags)

    def set_tag(self, key: str, value: Any):
        self.set_tags({**self.tags, key: value})

    def set_extra(self, extra: Dict[str, Any]):
        self.extra = dict(extra)
        if self.crash_handler:
            self.crash_handler.set_extra(self.extra)

    def set_extra_value(self, key: str, value: Any):
        self.set_extra({**self.extra, key: value})

    def set_release_version(self, release_version: str | None):
        self.release_version = release_version
        if self.crash_handler:
            self.crash_handler.set_release_version(release_version)

    def _breadcrumbs_changed(self, serialized: Dict[str, Any]):
        if self.crash_handler:
            self.crash_handler.set_breadcrumbs(serialized)


def resolve_user(event: Event, context: ClientContext) -> User | None:
    return event.user if event.user is not None else context.user


def resolve_release_version(event: Event, context: ClientContext) -> str | None:
    return event.release_version if event.release_version is not None else context.release_version


def _merge_into(event: Event, field: str, incoming: Dict[str, Any]):
    """Merges `incoming` over the event mapping `field`, all or nothing."""
    if not incoming:
        return
    if not is_json_serializable(incoming):
        logger.debug(f"Skipping merge of client {field}: not JSON serializable")
        return
    try:
        setattr(event, field, {**getattr(event, field), **incoming})
    except ValueError as e:
        logger.debug(f"Skipping merge of client {field}: {e}")


def attach_breadcrumbs(event: Event, context: ClientContext):
    """Error-level events take the recorded breadcrumbs; the store is emptied."""
    if event.level == Level.ERROR:
        event.breadcrumbs_serialized = context.breadcrumbs.consume()


def apply_client_context(event: Event, context: ClientContext):
    """
    Applies client-wide context to `event` in place:

    1. Fatal events are left untouched; they carry the context captured at crash time.
    2. User and release version fall back to the client's only when the event has none.
    3. Client tags are merged, all or nothing, if they are JSON serializable as a whole.
    4. The same rule applies to client extra.
    5. Error-level events consume the recorded breadcrumbs.
    """
    if event.level == Level.FATAL:
        return

    event.user = resolve_user(event, context)
    event.release_version = resolve_release_version(event, context)

    _merge_into(event, "tags", context.tags)
    _merge_into(event, "extra", context.extra)

    attach_breadcrumbs(event, context)
