# washstation/services/wet_transfers.py
"""
Wet parchment moving between stations.

    PENDING -> RECEIVED (quality check recorded)
    PENDING -> REJECTED (reason recorded)

Creating a transfer marks its processing TRANSFERRED; deleting one puts the
processing back to IN_PROGRESS. Both happen in the same transaction as the
transfer row itself.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_

from ..errors import InvalidStatusTransition, MissingRequiredFields, ValidationError, WetTransferNotFound
from ..extensions import db
from ..models import ProcessingStatus, WetTransfer, WetTransferStatus, utcnow_naive
from ..utils.parsers import parse_float, parse_int, require_datetime
from . import unit_of_work
from .batches import normalize_processing_type
from .processing import apply_status, get_processing
from .reference import get_station

DEFAULT_MOISTURE = 12.0
DEFAULT_REJECTION_REASON = "Rejected by receiver"


def get_wet_transfer(transfer_id) -> WetTransfer:
    row = db.session.get(WetTransfer, transfer_id) if transfer_id is not None else None
    if row is None:
        raise WetTransferNotFound()
    return row


def _require_pending(row: WetTransfer, target: WetTransferStatus) -> None:
    if row.status != WetTransferStatus.PENDING.value:
        raise InvalidStatusTransition(
            f"Wet transfer {row.id} is {row.status}; only PENDING transfers can be {target.value.lower()}"
        )


# =========================================================
# createTransfer
# =========================================================
def create_wet_transfer(data: dict) -> WetTransfer:
    required = ("processingId", "sourceCwsId", "destinationCwsId", "grade", "processingType")
    missing = [f for f in required if data.get(f) in (None, "")]
    if missing:
        raise MissingRequiredFields(missing, message="Required fields missing")

    processing = get_processing(parse_int(data.get("processingId")))
    source = get_station(parse_int(data.get("sourceCwsId")))
    destination = get_station(parse_int(data.get("destinationCwsId")))
    processing_type = normalize_processing_type(data.get("processingType"))

    moisture = parse_float(data.get("moistureContent"))
    total_kgs = parse_float(data.get("totalKgs"))
    row = WetTransfer(
        processing_id=processing.id,
        batch_no=(data.get("batchNo") or processing.batch_no),
        date=require_datetime(data["date"], "date") if data.get("date") else utcnow_naive(),
        source_cws_id=source.id,
        destination_cws_id=destination.id,
        total_kgs=total_kgs if total_kgs is not None else processing.total_kgs,
        output_kgs=parse_float(data.get("outputKgs")) or 0.0,
        grade=str(data["grade"]).strip().upper(),
        processing_type=processing_type.value,
        moisture_content=moisture if moisture is not None else DEFAULT_MOISTURE,
        status=WetTransferStatus.PENDING.value,
        notes=data.get("notes") or None,
    )

    with unit_of_work("Create wet transfer"):
        db.session.add(row)
        apply_status(processing, ProcessingStatus.TRANSFERRED)

    current_app.logger.info(
        "Wet transfer %s: batch %s from CWS %s to CWS %s", row.id, row.batch_no, source.id, destination.id
    )
    return row


# =========================================================
# receive / reject
# =========================================================
def receive_wet_transfer(data: dict) -> WetTransfer:
    missing = [f for f in ("transferId", "receivingCwsId") if data.get(f) in (None, "")]
    if missing:
        raise MissingRequiredFields(missing, message="Required fields missing")

    row = get_wet_transfer(parse_int(data.get("transferId")))
    receiving = get_station(parse_int(data.get("receivingCwsId")))
    _require_pending(row, WetTransferStatus.RECEIVED)

    received_date = require_datetime(data["receivedDate"], "receivedDate") if data.get("receivedDate") else utcnow_naive()

    with unit_of_work("Receive wet transfer"):
        row.status = WetTransferStatus.RECEIVED.value
        row.receiving_cws_id = receiving.id
        row.received_date = received_date
        row.received_moisture = parse_float(data.get("moisture"))
        row.defect_percentage = parse_float(data.get("defectPercentage"))
        row.clean_cup_score = parse_float(data.get("cleanCupScore"))
        if data.get("notes"):
            row.notes = data["notes"]

    return row


def reject_wet_transfer(data: dict) -> WetTransfer:
    missing = [f for f in ("transferId", "receivingCwsId") if data.get(f) in (None, "")]
    if missing:
        raise MissingRequiredFields(missing, message="Required fields missing")

    row = get_wet_transfer(parse_int(data.get("transferId")))
    receiving = get_station(parse_int(data.get("receivingCwsId")))
    _require_pending(row, WetTransferStatus.REJECTED)

    reason = (data.get("rejectionReason") or "").strip() or DEFAULT_REJECTION_REASON

    with unit_of_work("Reject wet transfer"):
        row.status = WetTransferStatus.REJECTED.value
        row.receiving_cws_id = receiving.id
        row.received_date = utcnow_naive()
        row.rejection_reason = reason

    return row


# =========================================================
# Update / delete
# =========================================================
def update_wet_transfer(transfer_id: int, data: dict) -> WetTransfer:
    row = get_wet_transfer(transfer_id)

    with unit_of_work("Update wet transfer"):
        if data.get("date"):
            row.date = require_datetime(data["date"], "date")
        if data.get("outputKgs") not in (None, ""):
            value = parse_float(data["outputKgs"])
            if value is None:
                raise ValidationError("outputKgs must be a number")
            row.output_kgs = value
        if data.get("moistureContent") not in (None, ""):
            value = parse_float(data["moistureContent"])
            if value is None:
                raise ValidationError("moistureContent must be a number")
            row.moisture_content = value
        if data.get("status"):
            row.status = str(data["status"]).strip().upper()
        if "notes" in data:
            row.notes = data.get("notes") or None

    return row


def delete_wet_transfer(transfer_id: int) -> None:
    row = get_wet_transfer(transfer_id)
    processing = row.processing

    with unit_of_work("Delete wet transfer"):
        db.session.delete(row)
        if processing is not None:
            apply_status(processing, ProcessingStatus.IN_PROGRESS)


# =========================================================
# Queries
# =========================================================
def _ordered(q):
    return q.order_by(WetTransfer.date.desc(), WetTransfer.id.desc())


def list_wet_transfers() -> list[WetTransfer]:
    return _ordered(WetTransfer.query).all()


def list_from_station(cws_id: int) -> list[WetTransfer]:
    return _ordered(WetTransfer.query.filter(WetTransfer.source_cws_id == cws_id)).all()


def list_to_station(cws_id: int) -> list[WetTransfer]:
    return _ordered(WetTransfer.query.filter(WetTransfer.destination_cws_id == cws_id)).all()


def search_by_batch(batch_no: str) -> list[WetTransfer]:
    like = f"%{(batch_no or '').strip().lower()}%"
    return _ordered(WetTransfer.query.filter(func.lower(WetTransfer.batch_no).like(like))).all()


def _counts(rows: list[WetTransfer]) -> dict:
    def count(status: WetTransferStatus) -> int:
        return sum(1 for r in rows if r.status == status.value)

    return {
        "total": len(rows),
        "pending": count(WetTransferStatus.PENDING),
        "received": count(WetTransferStatus.RECEIVED),
        "rejected": count(WetTransferStatus.REJECTED),
        "totalKgs": round(sum(float(r.output_kgs or 0) for r in rows), 2),
    }


def station_summary(cws_id: int) -> dict:
    sent = WetTransfer.query.filter(WetTransfer.source_cws_id == cws_id).all()
    received = WetTransfer.query.filter(WetTransfer.destination_cws_id == cws_id).all()
    return {"sent": _counts(sent), "received": _counts(received)}


def recent_for_station(cws_id: int, limit: int = 5) -> list[dict]:
    rows = (
        _ordered(
            WetTransfer.query.filter(
                or_(WetTransfer.source_cws_id == cws_id, WetTransfer.destination_cws_id == cws_id)
            )
        )
        .limit(max(1, limit))
        .all()
    )
    out = []
    for row in rows:
        data = row.to_dict()
        data["direction"] = "OUTBOUND" if row.source_cws_id == cws_id else "INBOUND"
        out.append(data)
    return out
