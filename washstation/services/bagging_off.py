# washstation/services/bagging_off.py
"""
Bagging-off reconciler.

Turns a reported {bucket: kg} map into BaggingOff rows. Which buckets a row
may hold depends on the processing type and on whether the batch is a
secondary split ("-2" or trailing "B"):

    HONEY           H1, plus a separate FULLY_WASHED row for A0..A3
    NATURAL         N1 N2       (secondary: B1 B2)
    FULLY_WASHED    A0 A1 A2 A3 (secondary: B1 B2)

Zero buckets are not stored; totals are always recomputed here. Regular mode
replaces the latest row for (batch, type, processing); progressive mode adds
onto it. The bagging-off write, the processing completion and the wet
transfer rewrite commit together or not at all.
"""

from __future__ import annotations

from flask import current_app

from ..errors import (
    BaggingOffNotFound,
    BusinessRuleViolation,
    MissingRequiredFields,
    ProcessingNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import (
    BaggingOff,
    Processing,
    ProcessingStatus,
    ProcessingType,
    WetTransfer,
)
from ..utils.parsers import parse_bool, parse_float, parse_int, require_datetime
from . import unit_of_work
from .batches import is_secondary_batch, normalize_processing_type
from .processing import apply_status, find_by_batch, get_processing, on_bagging_off_created, parse_status

HONEY_BUCKETS = ("H1",)
NATURAL_BUCKETS = ("N1", "N2")
SECONDARY_BUCKETS = ("B1", "B2")
WASHED_BUCKETS = ("A0", "A1", "A2", "A3")


# =========================================================
# Bucket schemas
# =========================================================
def schema_keys(processing_type: ProcessingType, batch_no: str) -> tuple[str, ...]:
    """Buckets a single row of this type may hold for this batch."""
    if processing_type == ProcessingType.HONEY:
        return HONEY_BUCKETS
    if is_secondary_batch(batch_no):
        return SECONDARY_BUCKETS
    if processing_type == ProcessingType.NATURAL:
        return NATURAL_BUCKETS
    return WASHED_BUCKETS


def bucket_schemas(processing_type: ProcessingType, batch_no: str) -> list[tuple[ProcessingType, tuple[str, ...]]]:
    """Rows one report can produce, in write order."""
    schemas = [(processing_type, schema_keys(processing_type, batch_no))]
    if processing_type == ProcessingType.HONEY:
        # Fully washed output reported alongside honey goes to its own row.
        schemas.append((ProcessingType.FULLY_WASHED, WASHED_BUCKETS))
    return schemas


def extract_buckets(output_kgs: dict, keys) -> dict:
    buckets = {}
    for key in keys:
        raw = output_kgs.get(key)
        if raw in (None, ""):
            continue
        value = parse_float(raw)
        if value is None:
            raise ValidationError(f"Output for {key} must be a number")
        if value < 0:
            raise ValidationError(f"Output for {key} cannot be negative")
        if value > 0:
            buckets[key] = value
    return buckets


def bucket_total(buckets: dict) -> float:
    return float(sum(buckets.values()))


def _latest_row(batch_no: str, processing_type: ProcessingType, processing_id: int) -> BaggingOff | None:
    return (
        BaggingOff.query.filter_by(
            batch_no=batch_no,
            processing_type=processing_type,
            processing_id=processing_id,
        )
        .order_by(BaggingOff.id.desc())
        .first()
    )


def _sync_wet_transfers(batch_no: str, status: str, output_kgs: dict) -> int:
    """Every wet transfer of the batch takes the reported status and its grade's output."""
    rows = WetTransfer.query.filter_by(batch_no=batch_no).all()
    for row in rows:
        row.status = status
        row.output_kgs = parse_float(output_kgs.get(row.grade)) or 0.0
    return len(rows)


# =========================================================
# reconcile (POST /bagging-off)
# =========================================================
def reconcile(data: dict) -> list[BaggingOff]:
    required = ("date", "outputKgs", "batchNo", "processingType", "status")
    missing = [f for f in required if data.get(f) in (None, "")]
    if missing:
        raise MissingRequiredFields(missing, message="Missing required fields")

    output_kgs = data["outputKgs"]
    if not isinstance(output_kgs, dict):
        raise ValidationError("outputKgs must be an object of bucket weights")

    batch_no = str(data["batchNo"]).strip()
    processing = find_by_batch(batch_no)
    if processing is None:
        raise ProcessingNotFound("Processing not found for this batch")

    processing_type = normalize_processing_type(data["processingType"])
    status = parse_status(data["status"])
    report_date = require_datetime(data["date"], "date")
    progressive = parse_bool(data.get("progressive"), default=False)

    target = processing
    existing = data.get("existingProcessing")
    if isinstance(existing, dict) and parse_int(existing.get("id")) is not None:
        target = get_processing(parse_int(existing.get("id")))

    written: list[BaggingOff] = []
    with unit_of_work("Record bagging off"):
        if status == ProcessingStatus.COMPLETED:
            apply_status(target, ProcessingStatus.COMPLETED)

        for row_type, keys in bucket_schemas(processing_type, batch_no):
            buckets = extract_buckets(output_kgs, keys)
            # Zero weights still count as a report for this row's schema.
            reported = any(output_kgs.get(key) not in (None, "") for key in keys)
            row = _latest_row(batch_no, row_type, target.id)

            if row is not None and reported:
                if progressive:
                    merged = dict(row.output_kgs or {})
                    for key, value in buckets.items():
                        merged[key] = float(merged.get(key, 0.0)) + value
                else:
                    merged = buckets
                row.output_kgs = merged
                row.total_output_kgs = bucket_total(merged)
                row.date = report_date
                row.status = status.value
                written.append(row)
                continue

            if not buckets:
                continue

            row = BaggingOff(
                batch_no=batch_no,
                processing_id=target.id,
                date=report_date,
                processing_type=row_type,
                output_kgs=buckets,
                total_output_kgs=bucket_total(buckets),
                status=status.value,
                notes=data.get("notes") or None,
            )
            db.session.add(row)
            written.append(row)

        _sync_wet_transfers(batch_no, status.value, output_kgs)
        on_bagging_off_created(batch_no)

    current_app.logger.info(
        "Bagging off for batch %s: %d row(s), status %s, progressive=%s",
        batch_no,
        len(written),
        status.value,
        progressive,
    )
    return written


# =========================================================
# CRUD
# =========================================================
def get_bagging_off(bagging_off_id) -> BaggingOff:
    row = db.session.get(BaggingOff, bagging_off_id) if bagging_off_id is not None else None
    if row is None:
        raise BaggingOffNotFound()
    return row


def update_bagging_off(bagging_off_id: int, data: dict) -> BaggingOff:
    row = get_bagging_off(bagging_off_id)

    buckets = None
    if data.get("outputKgs") is not None:
        output_kgs = data["outputKgs"]
        if not isinstance(output_kgs, dict):
            raise ValidationError("outputKgs must be an object of bucket weights")
        allowed = schema_keys(row.processing_type, row.batch_no)
        unknown = sorted(k for k in output_kgs if k not in allowed)
        if unknown:
            raise ValidationError(
                f"Buckets {', '.join(unknown)} not allowed for {row.processing_type.value} batch {row.batch_no}"
            )
        buckets = extract_buckets(output_kgs, allowed)

    status = parse_status(data["status"]) if data.get("status") else None
    report_date = require_datetime(data["date"], "date") if data.get("date") else None

    with unit_of_work("Update bagging off"):
        if buckets is not None:
            row.output_kgs = buckets
            row.total_output_kgs = bucket_total(buckets)
        if report_date is not None:
            row.date = report_date
        if status is not None:
            row.status = status.value
        if "notes" in data:
            row.notes = data.get("notes") or None
        if status == ProcessingStatus.COMPLETED:
            apply_status(row.processing, ProcessingStatus.COMPLETED)

    return row


def delete_bagging_off(bagging_off_id: int) -> None:
    row = get_bagging_off(bagging_off_id)
    if row.transfers:
        raise BusinessRuleViolation("Cannot delete bagging off record with transfers")
    with unit_of_work("Delete bagging off"):
        db.session.delete(row)


def list_bagging_offs() -> list[BaggingOff]:
    return BaggingOff.query.order_by(BaggingOff.created_at.desc(), BaggingOff.id.desc()).all()


def list_for_batch(batch_no: str) -> list[BaggingOff]:
    return (
        BaggingOff.query.filter_by(batch_no=batch_no.strip())
        .order_by(BaggingOff.created_at.desc(), BaggingOff.id.desc())
        .all()
    )


def list_completed_for_station(cws_id: int) -> list[BaggingOff]:
    return (
        BaggingOff.query.join(Processing, BaggingOff.processing_id == Processing.id)
        .filter(Processing.cws_id == cws_id, BaggingOff.status == ProcessingStatus.COMPLETED.value)
        .order_by(BaggingOff.created_at.desc(), BaggingOff.id.desc())
        .all()
    )
