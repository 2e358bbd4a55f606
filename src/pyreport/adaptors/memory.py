import asyncio
from datetime import datetime, timezone
from typing import Dict, List

from ..models import PersistedEvent


class MemoryEventStorage:
    """
    An in-process implementation of the `EventStorage` protocol. Nothing
    survives the process; useful for tests and for clients that should not
    touch the disk.
    """

    def __init__(self):
        self._records: Dict[int, PersistedEvent] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def save(self, data: bytes) -> int:
        async with self._lock:
            record_id = self._next_id
            self._next_id += 1
            self._records[record_id] = PersistedEvent(
                record_id=record_id, data=data, saved_at=datetime.now(timezone.utc)
            )
            return record_id

    async def list_saved(self) -> List[PersistedEvent]:
        async with self._lock:
            return [
                record.model_copy().bind(self.delete)
                for _, record in sorted(self._records.items())
            ]

    async def delete(self, record_id: int):
        async with self._lock:
            self._records.pop(record_id, None)

    def __len__(self) -> int:
        return len(self._records)
