"""
This module converts arbitrary captured values into JSON-safe structures.

Every value is first classified into one of a closed set of shapes and then
handled by the matching branch; nothing here raises. Containers currently
being walked are tracked by identity, so cyclic graphs terminate with a
sentinel instead of recursing forever.
"""
import json
import logging
import math
from collections import deque
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Set
from urllib.parse import ParseResult, SplitResult

import httpx
from pydantic import AnyUrl
from pydantic_core import Url

from .models import ErrorInfo, JSON_SCALARS

logger = logging.getLogger(__name__)

MAX_DEPTH = 32
CYCLE_MARKER = "<cycle>"
DEPTH_MARKER = "<max depth>"

_SEQUENCE_TYPES = (list, tuple, set, frozenset, deque)
_KEY_TYPES = (str, int, float, bool, type(None))


class Shape(Enum):
    ERROR = "error"
    URL = "url"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    SCALAR = "scalar"
    OTHER = "other"


def classify(value: Any) -> Shape:
    # URLs first: ParseResult and SplitResult are tuples.
    if isinstance(value, (ParseResult, SplitResult, AnyUrl, Url, httpx.URL)):
        return Shape.URL
    if isinstance(value, (ErrorInfo, BaseException)):
        return Shape.ERROR
    if not isinstance(value, type) and _has_error_fields(value):
        return Shape.ERROR
    if _is_non_finite(value):
        return Shape.OTHER
    if isinstance(value, JSON_SCALARS):
        return Shape.SCALAR
    if isinstance(value, Mapping):
        return Shape.MAPPING
    if isinstance(value, _SEQUENCE_TYPES):
        return Shape.SEQUENCE
    return Shape.OTHER


def _is_non_finite(value: Any) -> bool:
    return isinstance(value, float) and not math.isfinite(value)


def _has_error_fields(value: Any) -> bool:
    try:
        return hasattr(value, "domain") and hasattr(value, "code")
    except Exception:
        return False


def _safe_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return f"<unserializable {type(value).__name__}>"


def error_domain(error: Any) -> str:
    if isinstance(error, BaseException):
        cls = type(error)
        if cls.__module__ == "builtins":
            return cls.__qualname__
        return f"{cls.__module__}.{cls.__qualname__}"
    try:
        return _safe_str(error.domain)
    except Exception:
        return type(error).__qualname__


def error_code(error: Any) -> int:
    if isinstance(error, BaseException):
        for attr in ("errno", "code"):
            code = getattr(error, attr, None)
            if isinstance(code, int) and not isinstance(code, bool):
                return code
        return 0
    code = getattr(error, "code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    return 0


def error_user_info(error: Any) -> Dict[str, Any] | None:
    """The nested details of an error, before serialization."""
    if isinstance(error, BaseException):
        info: Dict[str, Any] = {"description": _safe_str(error)}
        underlying = error.__cause__
        if underlying is None and not error.__suppress_context__:
            underlying = error.__context__
        if underlying is not None:
            info["underlying_error"] = underlying
        return info
    return getattr(error, "user_info", None)


def serialize(value: Any) -> Any:
    """Returns a JSON-safe rendition of `value`. Never raises."""
    return _serialize(value, set(), 0)


def _serialize(value: Any, path: Set[int], depth: int) -> Any:
    shape = classify(value)

    if shape is Shape.SCALAR:
        return value
    if shape is Shape.URL:
        return value.geturl() if isinstance(value, (ParseResult, SplitResult)) else str(value)
    if shape is Shape.OTHER:
        return _fallback(value)

    if depth >= MAX_DEPTH:
        logger.debug(f"Serializer depth limit reached at {type(value).__name__}")
        return DEPTH_MARKER
    marker = id(value)
    if marker in path:
        logger.debug(f"Serializer found a cycle through {type(value).__name__}")
        return CYCLE_MARKER

    path.add(marker)
    try:
        if shape is Shape.ERROR:
            user_info = error_user_info(value)
            return {
                "domain": error_domain(value),
                "code": _serialize(error_code(value), path, depth + 1),
                "user_info": _serialize(user_info, path, depth + 1) if user_info is not None else {},
            }
        if shape is Shape.MAPPING:
            return {_key(k): _serialize(v, path, depth + 1) for k, v in value.items()}
        return [_serialize(item, path, depth + 1) for item in value]
    finally:
        path.discard(marker)


def _key(key: Any) -> Any:
    if isinstance(key, _KEY_TYPES) and not _is_non_finite(key):
        return key
    return _safe_str(key)


def _fallback(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        result = bytes(value).decode("utf-8", errors="replace")
    elif isinstance(value, (datetime, date)):
        result = value.isoformat()
    elif isinstance(value, Enum):
        result = value.value if classify(value.value) is Shape.SCALAR else _safe_str(value.value)
    else:
        result = _safe_str(value)
    logger.debug(f"Serialized unsupported {type(value).__name__} value with a fallback")
    return result


def is_json_serializable(value: Any) -> bool:
    """Strict check: True only if `value` encodes as JSON as-is."""
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError):
        return False
    return True
