# washstation/services/processing.py
"""
Processing lifecycle: one wet-mill run per batch number.

    IN_PROGRESS -> BAGGING_STARTED (first bagging-off lands)
    IN_PROGRESS -> TRANSFERRED     (wet transfer issued; back on transfer delete)
    any         -> COMPLETED       (bagging-off with status COMPLETED)

setStatus accepts any transition unless STRICT_PROCESSING_TRANSITIONS is on.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import (
    AlreadyStarted,
    BatchNotInPurchases,
    InvalidStatusTransition,
    MissingRequiredFields,
    ProcessingNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import (
    ACTIVE_PROCESSING_STATUSES,
    BaggingOff,
    CWS,
    Processing,
    ProcessingStatus,
    Purchase,
    can_transition,
    utcnow_naive,
)
from ..utils.parsers import parse_float, parse_int
from . import unit_of_work
from .batches import derive_batch_id, normalize_processing_type
from .reference import get_station


def parse_status(value) -> ProcessingStatus:
    if isinstance(value, ProcessingStatus):
        return value
    try:
        return ProcessingStatus(str(value or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid processing status: {value}") from None


def get_processing(processing_id) -> Processing:
    processing = db.session.get(Processing, processing_id) if processing_id is not None else None
    if processing is None:
        raise ProcessingNotFound()
    return processing


def find_by_batch(batch_no: str) -> Processing | None:
    return Processing.query.filter_by(batch_no=batch_no).first()


# =========================================================
# Lock-out queries used by the purchase ledger
# =========================================================
def is_batch_active(batch_no: str) -> bool:
    return (
        Processing.query.filter(
            Processing.batch_no == batch_no,
            Processing.status.in_(ACTIVE_PROCESSING_STATUSES),
        ).first()
        is not None
    )


def has_started(station, purchase_date, grade: str) -> bool:
    if not isinstance(station, CWS):
        station = get_station(station)
    return is_batch_active(derive_batch_id(station, grade, purchase_date))


# =========================================================
# start
# =========================================================
def start_processing(data: dict) -> Processing:
    required = ("batchNo", "processingType", "totalKgs", "grade", "cwsId")
    missing = [f for f in required if data.get(f) in (None, "")]
    if missing:
        raise MissingRequiredFields(missing)

    batch_no = str(data["batchNo"]).strip()
    grade = str(data["grade"]).strip().upper()
    processing_type = normalize_processing_type(data["processingType"])
    total_kgs = parse_float(data.get("totalKgs"))
    if total_kgs is None:
        raise ValidationError("totalKgs must be a number")

    station = get_station(parse_int(data.get("cwsId")))

    if not station.havespeciality:
        if Purchase.query.filter_by(batch_no=batch_no, grade=grade).first() is None:
            current_app.logger.info("Processing refused: batch %s grade %s not in purchases", batch_no, grade)
            raise BatchNotInPurchases()

    if find_by_batch(batch_no) is not None:
        current_app.logger.info("Processing refused: batch %s already started", batch_no)
        raise AlreadyStarted()

    now = utcnow_naive()
    processing = Processing(
        batch_no=batch_no,
        processing_type=processing_type,
        total_kgs=total_kgs,
        grade=grade,
        cws_id=station.id,
        status=ProcessingStatus.IN_PROGRESS,
        start_date=now,
        notes=(data.get("notes") or None),
    )

    with unit_of_work("Start processing"):
        db.session.add(processing)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise AlreadyStarted() from exc

    current_app.logger.info("Processing %s started for batch %s", processing.id, batch_no)
    return processing


# =========================================================
# setStatus
# =========================================================
def apply_status(processing: Processing, status: ProcessingStatus) -> None:
    """Status write shared by cascades: stamps endDate on completion."""
    processing.status = status
    if status == ProcessingStatus.COMPLETED:
        processing.end_date = utcnow_naive()


def set_status(processing_id: int, status, notes: str | None = None) -> Processing:
    processing = get_processing(processing_id)
    target = parse_status(status)

    if current_app.config.get("STRICT_PROCESSING_TRANSITIONS") and not can_transition(processing.status, target):
        raise InvalidStatusTransition(
            f"Cannot move processing from {processing.status.value} to {target.value}"
        )

    with unit_of_work("Update processing status"):
        apply_status(processing, target)
        if notes:
            processing.notes = notes

    return processing


def on_bagging_off_created(batch_no: str) -> bool:
    """IN_PROGRESS -> BAGGING_STARTED once a bagging-off exists. Caller owns the transaction."""
    processing = find_by_batch(batch_no)
    if processing is None or processing.status != ProcessingStatus.IN_PROGRESS:
        return False
    if BaggingOff.query.filter_by(processing_id=processing.id).first() is None:
        return False
    processing.status = ProcessingStatus.BAGGING_STARTED
    return True


# =========================================================
# Listing / stats
# =========================================================
def list_for_batch(batch_no: str) -> list[Processing]:
    rows = Processing.query.filter_by(batch_no=batch_no).order_by(Processing.created_at.desc()).all()
    if not rows:
        raise ProcessingNotFound("No processing found for this batch")
    return rows


def list_for_station(cws_id: int, status=None, processing_type=None) -> list[Processing]:
    q = Processing.query.filter(Processing.cws_id == cws_id)
    if status:
        q = q.filter(Processing.status == parse_status(status))
    if processing_type:
        q = q.filter(Processing.processing_type == normalize_processing_type(processing_type))
    return q.order_by(Processing.created_at.desc(), Processing.id.desc()).all()


def station_stats(cws_id: int) -> list[dict]:
    rows = (
        db.session.query(
            Processing.processing_type,
            Processing.status,
            func.coalesce(func.sum(Processing.total_kgs), 0.0),
            func.count(Processing.id),
        )
        .filter(Processing.cws_id == cws_id)
        .group_by(Processing.processing_type, Processing.status)
        .all()
    )
    return [
        {
            "processingType": ptype.value,
            "status": status.value,
            "totalKgs": float(total or 0),
            "count": int(count),
        }
        for ptype, status, total, count in rows
    ]
