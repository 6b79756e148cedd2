# washstation/services/reference.py
"""Stations (CWS) and site collections, read through the look-aside cache."""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..cache import cached_json, invalidate
from ..errors import (
    MissingRequiredFields,
    SiteCollectionInUse,
    SiteCollectionNotFound,
    StationInUse,
    StationNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import (
    CWS,
    CWSPricing,
    Processing,
    Purchase,
    SiteCollection,
    SiteCollectionFees,
    User,
    WetTransfer,
)
from ..utils.parsers import parse_bool, parse_int
from . import unit_of_work


# =========================================================
# Cache keys
# =========================================================
CWS_ALL_KEY = "cws:all"
SITES_ALL_KEY = "site-collections:all"


def cws_key(cws_id) -> str:
    return f"cws:{cws_id}"


def site_key(site_id) -> str:
    return f"site-collections:{site_id}"


def sites_for_cws_key(cws_id) -> str:
    return f"site-collections:cws:{cws_id}"


# =========================================================
# Stations
# =========================================================
def get_station(cws_id) -> CWS:
    station = db.session.get(CWS, cws_id) if cws_id is not None else None
    if station is None:
        raise StationNotFound()
    return station


def list_stations() -> list[dict]:
    return cached_json(
        CWS_ALL_KEY,
        lambda: [c.to_dict() for c in CWS.query.order_by(CWS.name.asc()).all()],
    )


def station_detail(cws_id: int) -> dict:
    return cached_json(cws_key(cws_id), lambda: get_station(cws_id).to_dict())


def create_station(data: dict) -> CWS:
    name = (data.get("name") or "").strip()
    code = (data.get("code") or "").strip().upper()
    missing = [f for f, v in (("name", name), ("code", code)) if not v]
    if missing:
        raise MissingRequiredFields(missing)

    station = CWS(
        name=name,
        code=code,
        location=(data.get("location") or "").strip() or None,
        havespeciality=parse_bool(data.get("havespeciality"), default=False),
        is_wet_parchment_sender=parse_bool(data.get("is_wet_parchment_sender"), default=True),
    )

    with unit_of_work("Create CWS"):
        db.session.add(station)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ValidationError(f"CWS code {code} already exists") from exc

    invalidate(CWS_ALL_KEY, cws_key(station.id))
    current_app.logger.info("Created CWS %s (%s)", station.id, station.code)
    return station


def update_station(cws_id: int, data: dict) -> CWS:
    station = get_station(cws_id)

    with unit_of_work("Update CWS"):
        if "name" in data and data["name"]:
            station.name = str(data["name"]).strip()
        if "code" in data and data["code"]:
            station.code = str(data["code"]).strip().upper()
        if "location" in data:
            station.location = (data.get("location") or "").strip() or None
        if "havespeciality" in data:
            station.havespeciality = parse_bool(data["havespeciality"])
        if "is_wet_parchment_sender" in data:
            station.is_wet_parchment_sender = parse_bool(data["is_wet_parchment_sender"], default=True)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ValidationError(f"CWS code {station.code} already exists") from exc

    # Site-collection payloads embed the station brief.
    site_keys = [site_key(s.id) for s in SiteCollection.query.filter_by(cws_id=cws_id).all()]
    invalidate(CWS_ALL_KEY, cws_key(cws_id), SITES_ALL_KEY, sites_for_cws_key(cws_id), *site_keys)
    return station


def _station_references(cws_id: int) -> bool:
    checks = (
        Purchase.query.filter_by(cws_id=cws_id),
        Processing.query.filter_by(cws_id=cws_id),
        SiteCollection.query.filter_by(cws_id=cws_id),
        CWSPricing.query.filter_by(cws_id=cws_id),
        WetTransfer.query.filter(
            (WetTransfer.source_cws_id == cws_id) | (WetTransfer.destination_cws_id == cws_id)
        ),
    )
    return any(q.first() is not None for q in checks)


def delete_station(cws_id: int) -> None:
    station = get_station(cws_id)
    if _station_references(cws_id):
        current_app.logger.info("Refused to delete CWS %s: still referenced", cws_id)
        raise StationInUse()

    with unit_of_work("Delete CWS"):
        User.query.filter_by(cws_id=cws_id).update({"cws_id": None})
        db.session.delete(station)

    invalidate(CWS_ALL_KEY, cws_key(cws_id))


# =========================================================
# Site collections
# =========================================================
def get_site_collection(site_id) -> SiteCollection:
    site = db.session.get(SiteCollection, site_id) if site_id is not None else None
    if site is None:
        raise SiteCollectionNotFound()
    return site


def list_site_collections() -> list[dict]:
    return cached_json(
        SITES_ALL_KEY,
        lambda: [s.to_dict() for s in SiteCollection.query.order_by(SiteCollection.name.asc()).all()],
    )


def site_collections_for_station(cws_id: int) -> list[dict]:
    def load():
        return [
            s.to_dict()
            for s in SiteCollection.query.filter_by(cws_id=cws_id).order_by(SiteCollection.name.asc()).all()
        ]

    return cached_json(sites_for_cws_key(cws_id), load)


def site_collection_detail(site_id: int) -> dict:
    return cached_json(site_key(site_id), lambda: get_site_collection(site_id).to_dict())


def _invalidate_site(site_id, *cws_ids) -> None:
    keys = [SITES_ALL_KEY, site_key(site_id)]
    keys.extend(sites_for_cws_key(c) for c in {c for c in cws_ids if c is not None})
    invalidate(*keys)


def create_site_collection(data: dict) -> SiteCollection:
    name = (data.get("name") or "").strip()
    cws_id = parse_int(data.get("cwsId"))
    missing = [f for f, v in (("name", name), ("cwsId", cws_id)) if not v]
    if missing:
        raise MissingRequiredFields(missing)
    get_station(cws_id)

    site = SiteCollection(name=name, cws_id=cws_id)
    with unit_of_work("Create site collection"):
        db.session.add(site)

    _invalidate_site(site.id, cws_id)
    return site


def update_site_collection(site_id: int, data: dict) -> SiteCollection:
    site = get_site_collection(site_id)
    old_cws_id = site.cws_id

    new_cws_id = parse_int(data.get("cwsId")) if "cwsId" in data else None
    if new_cws_id is not None:
        get_station(new_cws_id)

    with unit_of_work("Update site collection"):
        if data.get("name"):
            site.name = str(data["name"]).strip()
        if new_cws_id is not None:
            site.cws_id = new_cws_id

    _invalidate_site(site_id, old_cws_id, site.cws_id)
    return site


def delete_site_collection(site_id: int) -> None:
    site = get_site_collection(site_id)
    if Purchase.query.filter_by(site_collection_id=site_id).first() is not None:
        current_app.logger.info("Refused to delete site collection %s: purchases exist", site_id)
        raise SiteCollectionInUse()

    cws_id = site.cws_id
    with unit_of_work("Delete site collection"):
        SiteCollectionFees.query.filter_by(site_collection_id=site_id).delete()
        db.session.delete(site)

    _invalidate_site(site_id, cws_id)
