# washstation/services/purchases.py
"""
Purchase ledger: cherry intake per station, grade and day.

Lock-out rules, checked in this order before anything is written:
  1. station exists, purchase date parses
  2. processing has not started for the derived batch
  3. the batch is not active in processing
  4. no purchase yet for (station, grade, day, delivery type or site)
The last rule is also backed by a unique dedupe key in the store.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    BatchAlreadyProcessing,
    DuplicatePurchase,
    MissingRequiredFields,
    ProcessingAlreadyStarted,
    PurchaseNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import DeliveryType, Purchase
from ..utils.parsers import parse_float, parse_int, require_date
from . import unit_of_work
from .batches import derive_batch_id
from .processing import has_started, is_batch_active
from .reference import get_site_collection, get_station


def dedupe_key(cws_id: int, grade: str, day, delivery_type: DeliveryType, site_collection_id=None) -> str:
    slot = f"SITE:{site_collection_id}" if delivery_type == DeliveryType.SITE_COLLECTION else delivery_type.value
    return f"{cws_id}:{grade}:{day.isoformat()}:{slot}"


def _duplicate_message(delivery_type: DeliveryType) -> str:
    if delivery_type == DeliveryType.SITE_COLLECTION:
        return "A purchase for this site and grade already exists for this date"
    return f"A {delivery_type.value.lower()} purchase for this grade already exists for this date"


def _parse_delivery_type(value) -> DeliveryType:
    try:
        return DeliveryType(str(value or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid delivery type: {value}") from None


def _money_fields(data: dict) -> dict:
    fields = {
        "total_kgs": "totalKgs",
        "total_price": "totalPrice",
        "cherry_price": "cherryPrice",
        "transport_fee": "transportFee",
        "commission_fee": "commissionFee",
    }
    out = {}
    for attr, key in fields.items():
        if key in data:
            num = parse_float(data.get(key))
            if num is None:
                raise ValidationError(f"{key} must be a number")
            out[attr] = num
    return out


def get_purchase(purchase_id) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id) if purchase_id is not None else None
    if purchase is None:
        raise PurchaseNotFound()
    return purchase


def list_purchases(cws_id: int | None = None) -> list[Purchase]:
    q = Purchase.query
    if cws_id is not None:
        q = q.filter(Purchase.cws_id == cws_id)
    return q.order_by(Purchase.id.desc()).all()


# =========================================================
# recordPurchase
# =========================================================
def record_purchase(data: dict) -> Purchase:
    missing = [f for f in ("cwsId", "deliveryType", "grade", "purchaseDate", "totalKgs") if data.get(f) in (None, "")]
    if "cwsId" in missing:
        raise MissingRequiredFields(missing)

    station = get_station(parse_int(data.get("cwsId")))
    purchase_day = require_date(data.get("purchaseDate"), "purchase date")
    if missing:
        raise MissingRequiredFields(missing)

    delivery_type = _parse_delivery_type(data.get("deliveryType"))
    grade = str(data["grade"]).strip().upper()

    site_collection_id = None
    if delivery_type == DeliveryType.SITE_COLLECTION:
        site_collection_id = parse_int(data.get("siteCollectionId"))
        if site_collection_id is None:
            raise MissingRequiredFields(["siteCollectionId"])
        get_site_collection(site_collection_id)

    if has_started(station, purchase_day, grade):
        current_app.logger.info("Purchase refused: processing started (cws=%s grade=%s day=%s)", station.id, grade, purchase_day)
        raise ProcessingAlreadyStarted(
            "Cannot add purchase. Processing has already started for cherries from this date."
        )

    batch_no = derive_batch_id(station, grade, purchase_day)
    if is_batch_active(batch_no):
        current_app.logger.info("Purchase refused: batch %s already in processing", batch_no)
        raise BatchAlreadyProcessing("That batch is already in processing, you can't add other purchases")

    key = dedupe_key(station.id, grade, purchase_day, delivery_type, site_collection_id)
    if Purchase.query.filter_by(dedupe_key=key).first() is not None:
        current_app.logger.info("Purchase refused: duplicate %s", key)
        raise DuplicatePurchase(_duplicate_message(delivery_type))

    purchase = Purchase(
        cws_id=station.id,
        delivery_type=delivery_type,
        site_collection_id=site_collection_id,
        grade=grade,
        purchase_date=purchase_day,
        batch_no=batch_no,
        dedupe_key=key,
        **_money_fields(data),
    )

    with unit_of_work("Record purchase"):
        db.session.add(purchase)
        try:
            db.session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent identical purchase.
            raise DuplicatePurchase(_duplicate_message(delivery_type)) from exc

    return purchase


# =========================================================
# updatePurchase
# =========================================================
def update_purchase(purchase_id: int, data: dict) -> Purchase:
    purchase = get_purchase(purchase_id)

    station = purchase.cws
    if data.get("cwsId") not in (None, ""):
        new_cws_id = parse_int(data.get("cwsId"))
        if new_cws_id != purchase.cws_id:
            station = get_station(new_cws_id)

    grade = str(data["grade"]).strip().upper() if data.get("grade") else purchase.grade
    delivery_type = (
        _parse_delivery_type(data["deliveryType"]) if data.get("deliveryType") else purchase.delivery_type
    )

    site_collection_id = purchase.site_collection_id
    if delivery_type == DeliveryType.SITE_COLLECTION:
        if "siteCollectionId" in data:
            site_collection_id = parse_int(data.get("siteCollectionId"))
        if site_collection_id is None:
            raise MissingRequiredFields(["siteCollectionId"])
        if site_collection_id != purchase.site_collection_id:
            get_site_collection(site_collection_id)
    else:
        site_collection_id = None

    batch_no = purchase.batch_no
    if grade != purchase.grade:
        # Re-derive from the (possibly new) station and the original purchase date.
        batch_no = derive_batch_id(station, grade, purchase.purchase_date)
        if is_batch_active(batch_no):
            current_app.logger.info("Purchase %s grade change refused: batch %s in processing", purchase.id, batch_no)
            raise BatchAlreadyProcessing("Cannot update grade. The new batch is already in processing.")

    key = dedupe_key(station.id, grade, purchase.purchase_date, delivery_type, site_collection_id)

    with unit_of_work("Update purchase"):
        purchase.cws_id = station.id
        purchase.grade = grade
        purchase.delivery_type = delivery_type
        purchase.site_collection_id = site_collection_id
        purchase.batch_no = batch_no
        purchase.dedupe_key = key
        for attr, value in _money_fields(data).items():
            setattr(purchase, attr, value)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise DuplicatePurchase(_duplicate_message(delivery_type)) from exc

    return purchase


# =========================================================
# deletePurchase
# =========================================================
def delete_purchase(purchase_id: int) -> None:
    purchase = get_purchase(purchase_id)
    with unit_of_work("Delete purchase"):
        db.session.delete(purchase)
