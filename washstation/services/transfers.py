# washstation/services/transfers.py
"""Dry output hand-off: only COMPLETED bagging-off records can be dispatched."""

from __future__ import annotations

from ..errors import BaggingOffNotFound, MissingRequiredFields, TransferNotFound
from ..extensions import db
from ..models import BaggingOff, Processing, ProcessingStatus, Transfer, utcnow_naive
from ..utils.parsers import parse_datetime, parse_int
from . import unit_of_work


def get_transfer(transfer_id) -> Transfer:
    row = db.session.get(Transfer, transfer_id) if transfer_id is not None else None
    if row is None:
        raise TransferNotFound()
    return row


def create_transfer(data: dict) -> Transfer:
    bagging_off_id = parse_int(data.get("baggingOffId"))
    if bagging_off_id is None:
        raise MissingRequiredFields(["baggingOffId"])

    bagging_off = BaggingOff.query.filter_by(
        id=bagging_off_id,
        status=ProcessingStatus.COMPLETED.value,
    ).first()
    if bagging_off is None:
        raise BaggingOffNotFound("Bagging off record not found or not completed")

    row = Transfer(
        bagging_off_id=bagging_off.id,
        batch_no=(data.get("batchNo") or bagging_off.batch_no),
        notes=data.get("notes") or None,
        transfer_date=utcnow_naive(),
    )
    with unit_of_work("Create transfer"):
        db.session.add(row)
    return row


def update_transfer(transfer_id: int, data: dict) -> Transfer:
    row = get_transfer(transfer_id)
    with unit_of_work("Update transfer"):
        if "notes" in data:
            row.notes = data.get("notes") or None
        if "status" in data:
            row.status = data.get("status") or None
    return row


def _ordered(q):
    return q.order_by(Transfer.transfer_date.desc(), Transfer.id.desc())


def list_transfers() -> list[Transfer]:
    return _ordered(Transfer.query).all()


def list_for_batch(batch_no: str) -> list[Transfer]:
    rows = _ordered(Transfer.query.filter_by(batch_no=batch_no)).all()
    if not rows:
        raise TransferNotFound("No transfers found for this batch")
    return rows


def list_for_station(cws_id: int, start=None, end=None) -> list[Transfer]:
    q = (
        Transfer.query.join(BaggingOff, Transfer.bagging_off_id == BaggingOff.id)
        .join(Processing, BaggingOff.processing_id == Processing.id)
        .filter(Processing.cws_id == cws_id)
    )
    start_dt, end_dt = parse_datetime(start), parse_datetime(end)
    # Date filter applies only when both ends are given.
    if start_dt and end_dt:
        q = q.filter(Transfer.transfer_date >= start_dt, Transfer.transfer_date <= end_dt)
    return _ordered(q).all()


def list_for_bagging_off(bagging_off_id: int) -> list[Transfer]:
    return _ordered(Transfer.query.filter_by(bagging_off_id=bagging_off_id)).all()
