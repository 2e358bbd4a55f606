import logging

from .breadcrumbs import BreadcrumbStore
from .models import Level
from .serializer import serialize


def level_for_record(levelno: int) -> Level:
    if levelno >= logging.CRITICAL:
        return Level.FATAL
    if levelno >= logging.ERROR:
        return Level.ERROR
    if levelno >= logging.WARNING:
        return Level.WARNING
    if levelno >= logging.INFO:
        return Level.INFO
    return Level.DEBUG


class BreadcrumbHandler(logging.Handler):
    """Records every log record it handles as a breadcrumb in `store`."""

    def __init__(self, store: BreadcrumbStore, level: int = logging.INFO):
        super().__init__(level)
        self.store = store

    def emit(self, record: logging.LogRecord):
        # Our own log lines would otherwise be recorded as breadcrumbs too.
        if record.name.startswith("pyreport"):
            return
        try:
            data = {"module": record.module, "lineno": record.lineno}
            if record.exc_info and record.exc_info[1] is not None:
                data["exception"] = serialize(record.exc_info[1])
            self.store.add(
                category=record.name,
                message=record.getMessage(),
                level=level_for_record(record.levelno),
                data=data,
                type="log",
            )
        except Exception:
            self.handleError(record)
