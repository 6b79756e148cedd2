# washstation/services/batches.py
"""
Batch numbers and the string conventions built on them.

A batch number is YY + station code + DD + MM + grade, from the purchase
date's UTC calendar day, e.g. station KY, grade A, 2024-03-15 -> 24KY1503A.
It is the join key between purchases, processing, bagging-off and wet
transfers, so the format must never change.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from ..errors import UnsupportedProcessingType, ValidationError
from ..models import ProcessingType
from ..utils.parsers import parse_datetime

LOT_PREFIX_LENGTH = 9

_PURCHASE_PREFIX_RE = re.compile(r"^(\d+[A-Z]+\d+)")


def derive_batch_id(station, grade: str, purchase_date) -> str:
    code = station if isinstance(station, str) else getattr(station, "code", None)
    if not code:
        raise ValidationError("Station code is required to derive a batch number")
    if not grade:
        raise ValidationError("Grade is required to derive a batch number")

    if isinstance(purchase_date, datetime):
        day = parse_datetime(purchase_date)
    elif isinstance(purchase_date, date):
        day = purchase_date
    else:
        day = parse_datetime(purchase_date)
    if day is None:
        raise ValidationError("Invalid purchase date format")

    return f"{day.year % 100:02d}{code}{day.day:02d}{day.month:02d}{grade}"


def normalize_processing_type(value) -> ProcessingType:
    """Accepts HONEY, NATURAL, FULLY_WASHED and the legacy spelling "FULLY WASHED"."""
    if isinstance(value, ProcessingType):
        return value
    key = str(value or "").strip().upper().replace(" ", "_")
    try:
        return ProcessingType(key)
    except ValueError:
        raise UnsupportedProcessingType(value) from None


def is_secondary_batch(batch_no: str) -> bool:
    """Second split of a batch: "...-2" or a trailing grade B."""
    return batch_no.endswith("-2") or batch_no.endswith("B")


# ======================
# Prefixes used by reports
# ======================
def lot_prefix(batch_no: str) -> str:
    """Fixed-width lot key: -1/-2 splits of a batch share it."""
    return batch_no[:LOT_PREFIX_LENGTH]


def batch_base(batch_no: str) -> str:
    return batch_no.split("-")[0]


def purchase_prefix(batch_no: str) -> str | None:
    """Leading digits+letters+digits (year, station code, day and month)."""
    match = _PURCHASE_PREFIX_RE.match(batch_no or "")
    return match.group(1) if match else None


def prefix_matches(prefix: str, others) -> bool:
    return any(prefix in other or other in prefix for other in others)


def outturn(output_kgs: float, input_kgs: float) -> float:
    """Output as a percentage of input, 2 decimals; 0 when there is no input."""
    if not input_kgs or input_kgs <= 0:
        return 0
    return round(output_kgs / input_kgs * 100, 2)
