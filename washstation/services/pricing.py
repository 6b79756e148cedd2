# washstation/services/pricing.py
"""Fee schedules. Snapshots are append-only; the latest by creation time is current."""

from __future__ import annotations

from ..errors import MissingRequiredFields, ValidationError
from ..extensions import db
from ..models import CWSPricing, GlobalFees, SiteCollectionFees
from ..utils.parsers import parse_float, parse_int
from . import unit_of_work
from .reference import get_site_collection, get_station


def _amount(data: dict, key: str) -> float:
    if data.get(key) in (None, ""):
        raise MissingRequiredFields([key])
    value = parse_float(data.get(key))
    if value is None:
        raise ValidationError(f"{key} must be a number")
    if value < 0:
        raise ValidationError(f"{key} cannot be negative")
    return value


def _latest(q, model):
    return q.order_by(model.created_at.desc(), model.id.desc()).first()


def record_global_fees(data: dict) -> GlobalFees:
    row = GlobalFees(
        commission_fee=_amount(data, "commissionFee"),
        transport_fee=_amount(data, "transportFee"),
    )
    with unit_of_work("Record global fees"):
        db.session.add(row)
    return row


def current_global_fees() -> GlobalFees | None:
    return _latest(GlobalFees.query, GlobalFees)


def record_cws_pricing(data: dict) -> CWSPricing:
    station = get_station(parse_int(data.get("cwsId")))
    row = CWSPricing(
        cws_id=station.id,
        grade_a_price=_amount(data, "gradeAPrice"),
        transport_fee=_amount(data, "transportFee"),
    )
    with unit_of_work("Record CWS pricing"):
        db.session.add(row)
    return row


def current_cws_pricing(cws_id: int) -> CWSPricing | None:
    return _latest(CWSPricing.query.filter_by(cws_id=cws_id), CWSPricing)


def record_site_fees(data: dict) -> SiteCollectionFees:
    site = get_site_collection(parse_int(data.get("siteCollectionId")))
    row = SiteCollectionFees(
        site_collection_id=site.id,
        transport_fee=_amount(data, "transportFee"),
    )
    with unit_of_work("Record site collection fees"):
        db.session.add(row)
    return row


def current_site_fees(site_collection_id: int) -> SiteCollectionFees | None:
    return _latest(SiteCollectionFees.query.filter_by(site_collection_id=site_collection_id), SiteCollectionFees)
