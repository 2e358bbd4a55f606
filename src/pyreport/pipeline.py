"""
This module implements the delivery half of a capture:

    merged event -> encoded payload -> send -> delivered | persisted

and the startup drain that resends every persisted payload. Events are
encoded before they are handed over, so a resend never merges context
twice. Delivery is at-least-once: a persisted payload resent at startup is
not de-duplicated against new failures.
"""
import asyncio
import concurrent.futures
import logging
import threading
from typing import Callable, Set

from .protocols import EventStorage, Transport

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[bool], None]


class DeliveryPipeline:
    def __init__(self, transport: Transport, storage: EventStorage, loop: asyncio.AbstractEventLoop):
        self.transport = transport
        self.storage = storage
        self.loop = loop
        self._pending: Set[concurrent.futures.Future] = set()
        self._pending_lock = threading.Lock()

    async def _send(self, payload: bytes) -> bool:
        try:
            return bool(await self.transport.send(payload))
        except Exception as e:
            logger.warning(f"Transport raised while sending event: {e}")
            return False

    async def deliver(self, payload: bytes, completed: CompletionCallback | None = None) -> bool:
        """Sends one payload, persisting it for a later resend if the send fails."""
        success = await self._send(payload)
        if completed is not None:
            try:
                completed(success)
            except Exception as e:
                logger.warning(f"Capture completion callback failed: {e}")
        if success:
            return True

        try:
            record_id = await self.storage.save(payload)
            logger.debug(f"Saved undelivered event as record {record_id}")
        except Exception as e:
            logger.error(f"Failed to persist undelivered event: {e}")
        return False

    def submit(self, payload: bytes, completed: CompletionCallback | None = None) -> concurrent.futures.Future:
        """
        Schedules delivery on the pipeline's loop without waiting for it.
        Safe to call from any thread, including the loop's own.
        """
        coro = self.deliver(payload, completed)
        try:
            future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        except RuntimeError:
            # The loop is closed; the coroutine will never run.
            coro.close()
            raise
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: concurrent.futures.Future):
        with self._pending_lock:
            self._pending.discard(future)

    async def flush(self):
        """Waits for every submitted delivery to reach a terminal state."""
        while True:
            with self._pending_lock:
                pending = list(self._pending)
            if not pending:
                return
            await asyncio.gather(*(asyncio.wrap_future(f) for f in pending), return_exceptions=True)

    async def send_saved(self) -> int:
        """
        Resends every persisted payload, one record at a time, deleting each
        record after its own successful resend. Returns the number delivered.
        """
        try:
            saved = await self.storage.list_saved()
        except Exception as e:
            logger.error(f"Failed to list persisted events: {e}")
            return 0

        delivered = 0
        for record in saved:
            if not await self._send(record.data):
                continue
            try:
                await record.delete()
            except Exception as e:
                logger.error(f"Failed to delete delivered record {record.record_id}: {e}")
                continue
            delivered += 1

        if saved:
            logger.info(f"Resent {delivered} of {len(saved)} persisted events")
        return delivered
