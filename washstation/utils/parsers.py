# washstation/utils/parsers.py
from __future__ import annotations

from datetime import date, datetime, time, timezone

from ..errors import ValidationError


# ======================
# Lenient parsers (None on bad input)
# ======================
def parse_float(val):
    try:
        if val is None or str(val).strip() == "":
            return None
        return float(val)
    except (TypeError, ValueError):
        return None


def parse_int(val):
    try:
        if val is None or str(val).strip() == "":
            return None
        return int(val)
    except (TypeError, ValueError):
        return None


def parse_bool(val, default: bool = False) -> bool:
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in ("1", "true", "yes", "on")


def parse_datetime(val):
    """
    ISO-8601 date or datetime -> naive UTC datetime.
    Aware values are converted to UTC; naive values are taken as UTC already.
    """
    if val is None:
        return None
    if isinstance(val, datetime):
        dt = val
    elif isinstance(val, date):
        return datetime.combine(val, time.min)
    else:
        s = str(val).strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_date(val):
    dt = parse_datetime(val)
    return dt.date() if dt else None


# ======================
# Strict variants (raise ValidationError)
# ======================
def require_datetime(val, field: str) -> datetime:
    dt = parse_datetime(val)
    if dt is None:
        raise ValidationError(f"Invalid {field} format")
    return dt


def require_date(val, field: str) -> date:
    return require_datetime(val, field).date()

