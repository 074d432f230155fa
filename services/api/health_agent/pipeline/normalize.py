"""Coercion helpers applied to loosely-typed model output.

Each helper accepts whatever the model produced for a field and returns a
value of the target type, falling back to a sentinel instead of raising. The
helpers are idempotent: feeding their output back in returns it unchanged.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

UNKNOWN = "Unknown"

# Values a model uses to say "I could not determine this"
_SENTINELS = {"", "unknown", "null", "none", "n/a", "na", "not available", "-"}

DATE_FORMATS: Tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%A, %B %d, %Y",
)

TIME_FORMATS: Tuple[str, ...] = (
    "%H:%M",
    "%H:%M:%S",
    "%I:%M %p",
    "%I:%M%p",
    "%I %p",
    "%I%p",
)

DAY_PARTS: Dict[str, Tuple[time, time]] = {
    "morning": (time(9, 0), time(12, 0)),
    "afternoon": (time(12, 0), time(17, 0)),
    "evening": (time(17, 0), time(20, 0)),
}

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_THOUSANDS_RE = re.compile(r"(?<=\d),(?=\d{3}\b)")
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")
_ENUM_KEY_RE = re.compile(r"[\s\-/]+")

E = TypeVar("E", bound=Enum)


def is_sentinel(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in _SENTINELS
    return False


def coerce_text(value: Any, default: str = UNKNOWN) -> str:
    if value is None or isinstance(value, (dict, bool)):
        return default
    if isinstance(value, (list, tuple)):
        parts = [coerce_text(v, "") for v in value]
        joined = ", ".join(p for p in parts if p)
        return joined or default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    if not text or text.lower() in {"null", "none", "n/a"}:
        return default
    return text


def coerce_optional_text(value: Any) -> Optional[str]:
    if is_sentinel(value):
        return None
    text = coerce_text(value, "")
    return text or None


def coerce_text_list(value: Any) -> List[str]:
    """Always return a list of non-empty strings.

    A bare string becomes a one-item list, or one item per line when the model
    rendered a bulleted block instead of an array.
    """
    if value is None or isinstance(value, bool):
        return []
    if isinstance(value, str):
        lines = [_BULLET_RE.sub("", line).strip() for line in value.splitlines()]
        return [line for line in lines if line and not is_sentinel(line)]
    if isinstance(value, Mapping):
        value = list(value.values())
    if not isinstance(value, (list, tuple)):
        text = coerce_optional_text(value)
        return [text] if text else []
    out: List[str] = []
    for item in value:
        text = coerce_optional_text(item)
        if text:
            out.append(text)
    return out


def coerce_optional_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return None if math.isnan(number) or math.isinf(number) else number
    if isinstance(value, str):
        cleaned = _THOUSANDS_RE.sub("", value)
        match = _NUMBER_RE.search(cleaned)
        if match:
            return float(match.group(0))
    return None


def coerce_number(value: Any, default: float = 0.0) -> float:
    number = coerce_optional_number(value)
    return default if number is None else number


def coerce_int(value: Any, default: int = 0) -> int:
    number = coerce_optional_number(value)
    return default if number is None else int(round(number))


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "y", "1"}
    return False


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def parse_date(value: Any) -> Optional[date]:
    """Return the first successful parse across ``DATE_FORMATS`` or ``None``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    # ISO datetimes ("2026-10-20T10:00:00Z") carry a usable date prefix
    if len(text) > 10 and text[10] in "T ":
        try:
            return datetime.strptime(text[:10], "%Y-%m-%d").date()
        except ValueError:
            return None
    return None


def parse_time(value: Any) -> Optional[time]:
    if isinstance(value, datetime):
        return value.time().replace(microsecond=0)
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        return None
    text = re.sub(r"\s+", " ", value.strip().upper().replace(".", ""))
    if not text:
        return None
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    return None


def day_part_range(value: Any) -> Optional[Tuple[time, time]]:
    if not isinstance(value, str):
        return None
    return DAY_PARTS.get(value.strip().lower())


def coerce_time_range(value: Any) -> Optional[Dict[str, time]]:
    """Accept ``{"start", "end"}`` objects, "HH:MM-HH:MM" strings or day-part words."""
    start: Optional[time] = None
    end: Optional[time] = None
    if isinstance(value, Mapping):
        start, end = parse_time(value.get("start")), parse_time(value.get("end"))
    elif isinstance(value, str):
        part = day_part_range(value)
        if part:
            start, end = part
        elif "-" in value:
            left, _, right = value.partition("-")
            start, end = parse_time(left), parse_time(right)
    if start is None or end is None or end <= start:
        return None
    return {"start": start, "end": end}


def _enum_key(value: str) -> str:
    return _ENUM_KEY_RE.sub("_", value.strip().lower())


def coerce_enum(
    value: Any,
    enum_cls: Type[E],
    fallback: E,
    aliases: Optional[Mapping[str, str]] = None,
) -> E:
    """Case- and separator-insensitive enum match; unmatched maps to ``fallback``."""
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str) or not value.strip():
        return fallback
    key = _enum_key(value)
    if aliases and key in aliases:
        key = aliases[key]
    for member in enum_cls:
        if key in {_enum_key(str(member.value)), member.name.lower()}:
            return member
    return fallback


def coerce_mapping(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def coerce_object_list(value: Any, key: str = "name") -> List[Dict[str, Any]]:
    """Normalize an array-of-objects field.

    Missing fields become ``[]``, a single object is wrapped, and bare strings
    become ``{key: text}`` so a list of names still yields typed items.
    """
    if value is None:
        return []
    if isinstance(value, Mapping):
        return [dict(value)]
    if isinstance(value, str):
        return [{key: text} for text in coerce_text_list(value)]
    if not isinstance(value, (list, tuple)):
        return []
    items: List[Dict[str, Any]] = []
    for item in value:
        if isinstance(item, Mapping):
            items.append(dict(item))
        else:
            text = coerce_optional_text(item)
            if text:
                items.append({key: text})
    return items
