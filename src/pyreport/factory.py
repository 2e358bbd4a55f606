"""
This module implements the factory that wires a client to its collaborators.

`open_client` is an async context manager: it parses the DSN, opens the
on-disk event queue, builds the HTTP transport and the client, starts
resending persisted events, and on exit waits for in-flight sends before
releasing every resource. There is no process-wide client; callers keep the
handle they are given.
"""
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from .adaptors.sqlite import sqlite_storage_factory
from .client import ReportingClient, parse_dsn_string
from .consts import DEFAULT_MAX_BREADCRUMBS
from .protocols import CrashHandler, Transport
from .transport import DEFAULT_TIMEOUT, HttpTransport

DSN_ENV_VAR = "PYREPORT_DSN"
RELEASE_ENV_VAR = "PYREPORT_RELEASE"


@asynccontextmanager
async def open_client(
    dsn_string: str | None = None,
    *,
    storage_path: str = ":memory:",
    key: bytes | str | None = None,
    release_version: str | None = None,
    max_breadcrumbs: int = DEFAULT_MAX_BREADCRUMBS,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Transport | None = None,
    crash_handler: CrashHandler | None = None,
    send_saved_on_start: bool = True,
) -> AsyncIterator[ReportingClient | None]:
    """
    Yields a ready client, or None when the DSN is empty or invalid.

    `dsn_string` and `release_version` fall back to the PYREPORT_DSN and
    PYREPORT_RELEASE environment variables. Events whose send fails are kept
    in the SQLite database at `storage_path`, Fernet-encrypted with `key`
    when one is given.
    """
    if dsn_string is None:
        dsn_string = os.environ.get(DSN_ENV_VAR, "")
    if release_version is None:
        release_version = os.environ.get(RELEASE_ENV_VAR) or None

    dsn = parse_dsn_string(dsn_string)
    if dsn is None:
        yield None
        return

    async with sqlite_storage_factory(storage_path, key=key) as storage:
        client = ReportingClient(
            dsn,
            transport or HttpTransport(dsn, timeout=timeout),
            storage,
            release_version=release_version,
            max_breadcrumbs=max_breadcrumbs,
            crash_handler=crash_handler,
        )
        if send_saved_on_start:
            client.send_events_on_disk()
        try:
            yield client
        finally:
            await client.close()
