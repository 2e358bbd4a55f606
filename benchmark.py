import argparse
import asyncio
import os
import tempfile
import time

from cryptography.fernet import Fernet

from pyreport import DeliveryPipeline, event_for_message
from pyreport.adaptors import sqlite_storage_factory


class CountingTransport:
    def __init__(self, accept: bool):
        self.accept = accept
        self.sent = 0

    async def send(self, payload: bytes) -> bool:
        self.sent += 1
        return self.accept

    async def close(self):
        pass


async def benchmark(num_events: int):
    print(f"Benchmarking with {num_events} events...")

    async def run_mode(db_path: str, key: bytes | None):
        payloads = [event_for_message(f"event {i}").to_json_bytes() for i in range(num_events)]
        async with sqlite_storage_factory(db_path, key=key) as storage:
            loop = asyncio.get_running_loop()

            # --- Persist benchmark: every send fails ---
            failing = DeliveryPipeline(CountingTransport(accept=False), storage, loop)
            start_persist = time.perf_counter()
            for payload in payloads:
                await failing.deliver(payload)
            persist_time = time.perf_counter() - start_persist

            # --- Drain benchmark: every resend succeeds ---
            accepting = DeliveryPipeline(CountingTransport(accept=True), storage, loop)
            start_drain = time.perf_counter()
            delivered = await accepting.send_saved()
            drain_time = time.perf_counter() - start_drain

            assert delivered == num_events
            assert await storage.count() == 0

        return persist_time, drain_time

    results = {}
    results["In-memory SQLite"] = await run_mode(":memory:", None)
    with tempfile.TemporaryDirectory() as tmpdir:
        results["File-based SQLite"] = await run_mode(os.path.join(tmpdir, "bench.db"), None)
        results["File-based SQLite (encrypted)"] = await run_mode(
            os.path.join(tmpdir, "bench_encrypted.db"), Fernet.generate_key()
        )

    print(f"\n--- Results for {num_events} events ---")
    for mode, (persist_time, drain_time) in results.items():
        persist_throughput = num_events / persist_time if persist_time > 0 else 0
        drain_throughput = num_events / drain_time if drain_time > 0 else 0
        print(
            f"{mode:<30} - Persist: {persist_time:.4f}s ({persist_throughput:,.0f} events/s), "
            f"Drain: {drain_time:.4f}s ({drain_throughput:,.0f} events/s)"
        )


async def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--num-events", type=int, default=1000)
    args = parser.parse_args()
    await benchmark(args.num_events)


if __name__ == "__main__":
    asyncio.run(main())
