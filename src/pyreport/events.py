"""
Builders that turn raw errors, exceptions and messages into `Event` objects.
None of them touch client context; that is merged later by the capture path.
"""
import traceback
from typing import Any, Dict, List

from .models import Event, ExceptionRecord, Level, SourceLocation
from .serializer import error_code, error_domain, error_user_info, serialize


def event_for_error(error: Any, location: SourceLocation) -> Event:
    """Builds an error-level event from an error-like value and the location it was captured at."""
    domain = error_domain(error)
    code = error_code(error)
    user_info = error_user_info(error)

    event = Event(message=f"{domain}.{code} in {location.culprit}", level=Level.ERROR)
    event.extra = {"user_info": serialize(user_info) if user_info is not None else {}}
    event.culprit = location.culprit
    event.stack_trace = location.stack_trace
    event.exceptions = [ExceptionRecord(type=domain, value=f"{domain} ({code})")]
    return event


def event_for_message(message: str, level: Level = Level.INFO) -> Event:
    return Event(message=message, level=level)


def _frames(tb) -> List[Dict[str, Any]]:
    return [
        {"filename": frame.filename, "function": frame.name, "lineno": frame.lineno, "context_line": frame.line}
        for frame in traceback.extract_tb(tb)
    ]


def _exception_chain(exc: BaseException) -> List[BaseException]:
    chain: List[BaseException] = []
    seen = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(current)
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None
    chain.reverse()
    return chain


def event_for_exception(exc: BaseException, level: Level = Level.ERROR) -> Event:
    """
    Builds an event from a raised Python exception, including its cause chain.
    Exceptions are listed innermost cause first, the raised exception last.
    """
    records = []
    for link in _exception_chain(exc):
        cls = type(link)
        frames = _frames(link.__traceback__)
        records.append(
            ExceptionRecord(
                type=cls.__qualname__,
                value=str(link),
                module=None if cls.__module__ == "builtins" else cls.__module__,
                stacktrace={"frames": frames} if frames else None,
            )
        )

    event = Event(message=f"{type(exc).__qualname__}: {exc}", level=level, exceptions=records)
    frames = _frames(exc.__traceback__)
    if frames:
        last = frames[-1]
        location = SourceLocation(file=last["filename"], line=last["lineno"] or 0, function=last["function"])
        event.culprit = location.culprit
        event.stack_trace = {"frames": frames}
    return event
