"""
The reporting client: an explicit handle that owns the client-wide context
and turns captures into deliveries.

A capture runs synchronously on the caller's thread up to the point of
sending: the event is built, merged with client context and encoded. The
send itself is scheduled on the client's event loop and reported through
the returned future and the optional `completed` callback. Nothing in the
capture path raises to the caller.
"""
import asyncio
import concurrent.futures
import logging
import sys
from typing import Any, Dict

from .consts import DEFAULT_MAX_BREADCRUMBS
from .context import ClientContext, apply_client_context, attach_breadcrumbs
from .dsn import DSN
from .errors import InvalidDSN
from .events import event_for_error, event_for_exception, event_for_message
from .models import Event, Level, SourceLocation, User
from .pipeline import CompletionCallback, DeliveryPipeline
from .protocols import CrashHandler, EventStorage, Transport
from .serializer import Shape, classify
from .transport import HttpTransport

logger = logging.getLogger(__name__)


class ReportingClient:
    def __init__(
        self,
        dsn: DSN,
        transport: Transport,
        storage: EventStorage,
        *,
        release_version: str | None = None,
        max_breadcrumbs: int = DEFAULT_MAX_BREADCRUMBS,
        crash_handler: CrashHandler | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.dsn = dsn
        self.context = ClientContext(release_version=release_version, max_breadcrumbs=max_breadcrumbs)
        self.pipeline = DeliveryPipeline(transport, storage, loop or asyncio.get_running_loop())
        self._startup_task: asyncio.Task | None = None
        if crash_handler is not None:
            self.attach_crash_handler(crash_handler)

    @classmethod
    def from_dsn_string(
        cls, dsn_string: str, storage: EventStorage, transport: Transport | None = None, **kwargs
    ) -> "ReportingClient | None":
        """
        Creates a client if and only if `dsn_string` is a valid DSN.
        An empty string quietly gives no client; a malformed one is logged.
        """
        dsn = parse_dsn_string(dsn_string)
        if dsn is None:
            return None
        return cls(dsn, transport or HttpTransport(dsn), storage, **kwargs)

    # Context.

    @property
    def breadcrumbs(self):
        return self.context.breadcrumbs

    @property
    def user(self) -> User | None:
        return self.context.user

    @property
    def tags(self) -> Dict[str, Any]:
        return self.context.tags

    @property
    def extra(self) -> Dict[str, Any]:
        return self.context.extra

    @property
    def release_version(self) -> str | None:
        return self.context.release_version

    def set_user(self, user: User | None):
        self.context.set_user(user)

    def set_tags(self, tags: Dict[str, Any]):
        self.context.set_tags(tags)

    def set_tag(self, key: str, value: Any):
        self.context.set_tag(key, value)

    def set_extra(self, extra: Dict[str, Any]):
        self.context.set_extra(extra)

    def set_extra_value(self, key: str, value: Any):
        self.context.set_extra_value(key, value)

    def set_release_version(self, release_version: str | None):
        self.context.set_release_version(release_version)

    def attach_crash_handler(self, crash_handler: CrashHandler):
        if getattr(crash_handler, "sink", False) is None:
            crash_handler.sink = self.capture_crash
        self.context.attach_crash_handler(crash_handler)

    # Capture.

    def capture_message(
        self, message: str, level: Level = Level.INFO, completed: CompletionCallback | None = None
    ) -> concurrent.futures.Future | None:
        return self.capture_event(event_for_message(message, level), completed=completed)

    def capture_error(
        self, error: Any, location: SourceLocation | None = None, completed: CompletionCallback | None = None
    ) -> concurrent.futures.Future | None:
        if classify(error) is not Shape.ERROR:
            logger.error(f"Dropping capture_error of {type(error).__name__}: not an exception or domain/code error")
            _report_dropped(completed)
            return None
        location = location or SourceLocation.caller()
        return self.capture_event(event_for_error(error, location), completed=completed)

    def capture_exception(
        self, exc: BaseException | None = None, completed: CompletionCallback | None = None
    ) -> concurrent.futures.Future | None:
        """Reports `exc`, or the exception currently being handled."""
        exc = exc if exc is not None else sys.exc_info()[1]
        if exc is None:
            logger.debug("capture_exception called with no exception to report")
            return None
        return self.capture_event(event_for_exception(exc), completed=completed)

    def capture_event(
        self, event: Event, use_client_context: bool = True, completed: CompletionCallback | None = None
    ) -> concurrent.futures.Future | None:
        """
        Merges client context into `event` (unless `use_client_context` is
        False), encodes it and schedules the send. Returns the future of the
        send result, or None if the event could not be encoded.
        """
        if use_client_context:
            apply_client_context(event, self.context)
        else:
            attach_breadcrumbs(event, self.context)

        try:
            payload = event.to_json_bytes()
        except (TypeError, ValueError) as e:
            logger.error(f"Dropping event {event.event_id}: cannot encode as JSON: {e}")
            _report_dropped(completed)
            return None
        try:
            return self.pipeline.submit(payload, completed)
        except RuntimeError as e:
            # The loop is closed or gone; nothing can be sent or persisted.
            logger.error(f"Dropping event {event.event_id}: {e}")
            _report_dropped(completed)
            return None

    def capture_crash(self, event: Event):
        """Sink for the crash handler: fatal events already carry their context."""
        future = self.capture_event(event, use_client_context=False)
        if future is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        # Give the send a chance to finish (or persist) before the process dies,
        # unless we are on the loop thread, where waiting would deadlock.
        if running is not self.pipeline.loop:
            try:
                future.result(timeout=5.0)
            except (concurrent.futures.TimeoutError, concurrent.futures.CancelledError) as e:
                logger.warning(f"Crash report not confirmed before exit: {e!r}")

    # Lifecycle.

    def send_events_on_disk(self) -> asyncio.Task:
        """Starts resending persisted events in the background."""
        if self._startup_task is None or self._startup_task.done():
            self._startup_task = self.pipeline.loop.create_task(self.pipeline.send_saved())
        return self._startup_task

    async def flush(self):
        """Waits for the startup drain and every scheduled send to finish."""
        if self._startup_task is not None:
            await asyncio.gather(self._startup_task, return_exceptions=True)
        await self.pipeline.flush()

    async def close(self):
        await self.flush()
        crash_handler = self.context.crash_handler
        if crash_handler is not None and hasattr(crash_handler, "stop_crash_reporting"):
            crash_handler.stop_crash_reporting()
        await self.pipeline.transport.close()


def _report_dropped(completed: CompletionCallback | None):
    if completed is None:
        return
    try:
        completed(False)
    except Exception as e:
        logger.warning(f"Capture completion callback failed: {e}")


def parse_dsn_string(dsn_string: str | None) -> DSN | None:
    if not dsn_string:
        logger.debug("DSN provided was empty - not creating a client")
        return None
    try:
        return DSN.parse(dsn_string)
    except InvalidDSN as e:
        logger.error(f"DSN is invalid: {e}")
        return None
