# pyreport package

from .consts import VERSION as __version__
from .models import Breadcrumb, ErrorInfo, Event, ExceptionRecord, Level, PersistedEvent, SourceLocation, User
from .errors import InvalidDSN, ReportingError, SendFailure
from .dsn import DSN
from .breadcrumbs import BreadcrumbStore
from .serializer import serialize
from .events import event_for_error, event_for_exception, event_for_message
from .context import ClientContext, apply_client_context
from .pipeline import DeliveryPipeline
from .transport import HttpTransport
from .crash import ExceptHookCrashHandler
from .client import ReportingClient
from .factory import open_client
from .adaptors import MemoryEventStorage, SQLiteEventStorage, sqlite_storage_factory

__all__ = [
    "Breadcrumb",
    "BreadcrumbStore",
    "ClientContext",
    "DSN",
    "DeliveryPipeline",
    "ErrorInfo",
    "Event",
    "ExceptHookCrashHandler",
    "ExceptionRecord",
    "HttpTransport",
    "InvalidDSN",
    "Level",
    "MemoryEventStorage",
    "PersistedEvent",
    "ReportingClient",
    "ReportingError",
    "SQLiteEventStorage",
    "SendFailure",
    "SourceLocation",
    "User",
    "apply_client_context",
    "event_for_error",
    "event_for_exception",
    "event_for_message",
    "open_client",
    "serialize",
    "sqlite_storage_factory",
]
