# washstation/services/reports.py
"""
Read-only rollups over purchases, processing and bagging-off.

Outturn = output kg / input kg * 100, 2 decimals. For yield reporting a lot
counts as Natural when any processing row sharing its prefix is NATURAL,
even if its other parts were fully washed; such lots are left out of the
non-Natural figures.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import (
    BaggingOff,
    CWS,
    DeliveryType,
    Processing,
    ProcessingStatus,
    ProcessingType,
    Purchase,
    to_iso,
    utcnow_naive,
)
from ..utils.parsers import parse_date, parse_datetime
from .batches import batch_base, lot_prefix, outturn, prefix_matches, purchase_prefix


# =========================================================
# Helpers
# =========================================================
def _require_range(start, end) -> tuple[date, date]:
    start_day, end_day = parse_date(start), parse_date(end)
    if start_day is None or end_day is None:
        raise ValidationError(
            "Invalid date format. Please provide valid startDate and endDate in ISO format"
        )
    return start_day, end_day


def _money_totals(purchases) -> dict:
    totals = {
        "totalKgs": 0.0,
        "totalPrice": 0.0,
        "totalCherryPrice": 0.0,
        "totalTransportFee": 0.0,
        "totalCommissionFee": 0.0,
    }
    for p in purchases:
        totals["totalKgs"] += p.total_kgs or 0
        totals["totalPrice"] += p.total_price or 0
        totals["totalCherryPrice"] += (p.total_kgs or 0) * (p.cherry_price or 0)
        totals["totalTransportFee"] += (p.total_kgs or 0) * (p.transport_fee or 0)
        totals["totalCommissionFee"] += (p.total_kgs or 0) * (p.commission_fee or 0)
    return totals


def _breakdown(purchases, key) -> dict:
    out: dict = {}
    for p in purchases:
        bucket = out.setdefault(key(p), {"totalKgs": 0.0, "totalPrice": 0.0})
        bucket["totalKgs"] += p.total_kgs or 0
        bucket["totalPrice"] += p.total_price or 0
    return out


def _kg_and_amount(purchases, delivery_type: DeliveryType) -> dict:
    rows = [p for p in purchases if p.delivery_type == delivery_type]
    return {
        "kgs": sum(p.total_kgs or 0 for p in rows),
        "amount": sum(p.total_price or 0 for p in rows),
    }


def _processing_prefixes() -> list[str]:
    prefixes = []
    for (batch_no,) in db.session.query(Processing.batch_no).all():
        prefixes.append(purchase_prefix(batch_no) or batch_no)
    return prefixes


def _matching_processing(purchases, prefixes) -> list[Purchase]:
    out = []
    for p in purchases:
        prefix = purchase_prefix(p.batch_no)
        if prefix and prefix_matches(prefix, prefixes):
            out.append(p)
    return out


def _purchases_between(start_day: date, end_day: date, cws_id: int | None = None):
    q = Purchase.query.filter(Purchase.purchase_date >= start_day, Purchase.purchase_date <= end_day)
    if cws_id is not None:
        q = q.filter(Purchase.cws_id == cws_id)
    return q


def _overall(rows: list[dict]) -> dict:
    overall = {
        "totalKgs": 0.0,
        "totalPrice": 0.0,
        "totalCherryPrice": 0.0,
        "totalTransportFee": 0.0,
        "totalCommissionFee": 0.0,
        "numberOfCWS": 0,
    }
    for row in rows:
        for key in ("totalKgs", "totalPrice", "totalCherryPrice", "totalTransportFee", "totalCommissionFee"):
            overall[key] += row[key]
        overall["numberOfCWS"] += 1
    return overall


# =========================================================
# Purchase reports
# =========================================================
def purchases_grouped_by_date() -> list[dict]:
    rows = (
        db.session.query(
            Purchase.purchase_date,
            Purchase.delivery_type,
            func.coalesce(func.sum(Purchase.total_kgs), 0.0),
            func.coalesce(func.sum(Purchase.total_price), 0.0),
            func.count(Purchase.id),
        )
        .group_by(Purchase.purchase_date, Purchase.delivery_type)
        .order_by(Purchase.purchase_date.desc())
        .all()
    )

    grouped: dict = {}
    for day, delivery_type, kgs, price, count in rows:
        entry = grouped.setdefault(
            day,
            {"date": to_iso(day), "totalKgs": 0.0, "totalPrice": 0.0, "totalPurchases": 0, "deliveryTypes": []},
        )
        entry["totalKgs"] += float(kgs)
        entry["totalPrice"] += float(price)
        entry["totalPurchases"] += int(count)
        entry["deliveryTypes"].append(
            {
                "deliveryType": delivery_type.value,
                "totalKgs": float(kgs),
                "totalPrice": float(price),
                "count": int(count),
            }
        )
    return list(grouped.values())


def purchases_in_range(start, end) -> dict:
    start_day, end_day = _require_range(start, end)
    purchases = (
        _purchases_between(start_day, end_day)
        .order_by(Purchase.purchase_date.desc(), Purchase.created_at.desc(), Purchase.batch_no.asc())
        .all()
    )
    money = _money_totals(purchases)
    return {
        "dateRange": {"start": to_iso(start_day), "end": to_iso(end_day)},
        "totalPurchases": len(purchases),
        "totals": {
            "totalKgs": money["totalKgs"],
            "totalPrice": money["totalPrice"],
            "totalTransportFee": money["totalTransportFee"],
            "totalCommissionFee": money["totalCommissionFee"],
        },
        "purchases": [p.to_dict() for p in purchases],
    }


def purchases_on_date(day_value) -> dict:
    day = parse_date(day_value)
    if day is None:
        raise ValidationError("Invalid date format")

    purchases = (
        Purchase.query.filter(Purchase.purchase_date == day)
        .order_by(Purchase.cws_id.asc(), Purchase.delivery_type.asc(), Purchase.id.asc())
        .all()
    )
    by_station = defaultdict(list)
    for p in purchases:
        by_station[p.cws_id].append(p)

    cws_data = []
    for station in CWS.query.order_by(CWS.name.asc()).all():
        rows = by_station.get(station.id)
        if not rows:
            continue
        cws_data.append(
            {
                "cwsId": station.id,
                "name": station.name,
                "purchases": [p.to_dict() for p in rows],
                "totals": {
                    "totalKgs": sum(p.total_kgs or 0 for p in rows),
                    "totalPrice": sum(p.total_price or 0 for p in rows),
                    "directDelivery": _kg_and_amount(rows, DeliveryType.DIRECT_DELIVERY),
                    "siteCollection": _kg_and_amount(rows, DeliveryType.SITE_COLLECTION),
                },
            }
        )

    def grand(path):
        total = 0.0
        for entry in cws_data:
            value = entry["totals"]
            for key in path:
                value = value[key]
            total += value
        return total

    return {
        "date": to_iso(day),
        "cwsData": cws_data,
        "grandTotals": {
            "totalKgs": grand(("totalKgs",)),
            "totalPrice": grand(("totalPrice",)),
            "directDelivery": {
                "kgs": grand(("directDelivery", "kgs")),
                "amount": grand(("directDelivery", "amount")),
            },
            "siteCollection": {
                "kgs": grand(("siteCollection", "kgs")),
                "amount": grand(("siteCollection", "amount")),
            },
        },
    }


def station_aggregates_for_yesterday(today: date | None = None) -> list[dict]:
    """Yesterday's purchases per station, limited to batches that reached processing."""
    today = today or utcnow_naive().date()
    yesterday = today - timedelta(days=1)
    prefixes = _processing_prefixes()

    out = []
    for station in CWS.query.order_by(CWS.id.asc()).all():
        purchases = _purchases_between(yesterday, yesterday, station.id).all()
        matching = _matching_processing(purchases, prefixes)
        totals = _money_totals(matching)
        if totals["totalKgs"] <= 0:
            continue
        out.append(
            {
                "cwsId": station.id,
                "cwsName": station.name,
                "cwsCode": station.code,
                **totals,
                "purchaseDate": to_iso(yesterday),
            }
        )
    return out


def station_aggregates_in_range(start, end) -> dict:
    start_day, end_day = _require_range(start, end)
    prefixes = _processing_prefixes()
    date_range = {"start": to_iso(start_day), "end": to_iso(end_day)}

    data = []
    for station in CWS.query.order_by(CWS.id.asc()).all():
        purchases = _purchases_between(start_day, end_day, station.id).all()
        matching = _matching_processing(purchases, prefixes)
        totals = _money_totals(matching)
        if totals["totalKgs"] <= 0:
            continue
        data.append(
            {
                "cwsId": station.id,
                "cwsName": station.name,
                "cwsCode": station.code,
                **totals,
                "deliveryTypeBreakdown": _breakdown(matching, lambda p: p.delivery_type.value),
                "gradeBreakdown": _breakdown(matching, lambda p: p.grade),
                "numberOfPurchases": len(matching),
                "dateRange": date_range,
            }
        )

    return {"data": data, "overallTotals": _overall(data), "dateRange": date_range}


def station_aggregates_all_time() -> dict:
    data = []
    for station in CWS.query.order_by(CWS.id.asc()).all():
        purchases = Purchase.query.filter_by(cws_id=station.id).all()
        totals = _money_totals(purchases)
        if totals["totalKgs"] <= 0:
            continue
        data.append(
            {
                "cwsId": station.id,
                "cwsName": station.name,
                "cwsCode": station.code,
                **totals,
                "deliveryTypeBreakdown": _breakdown(purchases, lambda p: p.delivery_type.value),
                "gradeBreakdown": _breakdown(purchases, lambda p: p.grade),
                "numberOfPurchases": len(purchases),
            }
        )
    return {"data": data, "overallTotals": _overall(data)}


# =========================================================
# Bagging-off / outturn reports
# =========================================================
def _completed_processing(cws_id=None, start=None, end=None) -> list[Processing]:
    q = Processing.query.filter(Processing.status == ProcessingStatus.COMPLETED)
    if cws_id is not None:
        q = q.filter(Processing.cws_id == cws_id)
    start_dt, end_dt = parse_datetime(start), parse_datetime(end)
    if start_dt is not None:
        q = q.filter(Processing.end_date >= start_dt)
    if end_dt is not None:
        q = q.filter(Processing.end_date <= end_dt)
    return q.order_by(Processing.end_date.desc(), Processing.id.desc()).all()


def _completed_bagging_offs(processing: Processing) -> list[BaggingOff]:
    return [b for b in processing.bagging_offs if b.status == ProcessingStatus.COMPLETED.value]


def _processing_info(p: Processing, **extra) -> dict:
    info = {
        "id": p.id,
        "batchNo": p.batch_no,
        "processingType": p.processing_type.value,
        "totalKgs": p.total_kgs,
        "grade": p.grade,
        "startDate": to_iso(p.start_date),
        "endDate": to_iso(p.end_date),
        "status": p.status.value,
        "notes": p.notes,
    }
    info.update(extra)
    return info


def completed_lot_report() -> dict:
    processings = _completed_processing()
    if not processings:
        return {"message": "No completed processing records found", "reports": []}

    lots: dict[str, list[Processing]] = {}
    for p in processings:
        lots.setdefault(lot_prefix(p.batch_no), []).append(p)

    overall_in = overall_out = 0.0
    non_natural_in = non_natural_out = 0.0
    reports = []

    for prefix, members in lots.items():
        first = members[0]
        is_natural = any(p.processing_type == ProcessingType.NATURAL for p in members)
        lot_type = ProcessingType.NATURAL.value if is_natural else first.processing_type.value

        lot_in = lot_out = 0.0
        output_by_type: dict = defaultdict(float)
        grades: dict = defaultdict(float)
        records = []

        for p in members:
            lot_in += p.total_kgs or 0
            for record in _completed_bagging_offs(p):
                kgs = float(record.total_output_kgs or 0)
                lot_out += kgs
                output_by_type[record.processing_type.value] += kgs
                for grade, value in (record.output_kgs or {}).items():
                    grades[grade] += float(value or 0)
                data = record.to_dict(include_processing=False)
                data["processingInfo"] = p.to_dict(include_cws=False)
                records.append(data)

        overall_in += lot_in
        overall_out += lot_out
        if not is_natural:
            non_natural_in += lot_in
            non_natural_out += lot_out

        lot_outturn = outturn(lot_out, lot_in)
        reports.append(
            {
                "batchInfo": {
                    "batchNo": prefix,
                    "relatedBatches": [p.batch_no for p in members],
                    "station": first.cws.name if first.cws else "Unknown",
                    "processingType": lot_type,
                    "startDate": to_iso(first.start_date),
                    "endDate": to_iso(first.end_date),
                    "status": first.status.value,
                    "totalInputKgs": lot_in,
                    "totalOutputKgs": lot_out,
                    "outturn": lot_outturn,
                    "processingInfo": {
                        "id": first.id,
                        "batchNo": first.batch_no,
                        "processingType": lot_type,
                        "totalKgs": lot_in,
                        "grade": first.grade,
                        "status": first.status.value,
                        "notes": first.notes,
                    },
                },
                "metrics": {
                    "inputKgs": lot_in,
                    "totalOutputKgs": lot_out,
                    "outturn": lot_outturn,
                    "outputByType": dict(output_by_type),
                    "gradeBreakdown": dict(grades),
                },
                "baggingOffRecords": records,
            }
        )

    return {
        "totalRecords": len(reports),
        "overallMetrics": {
            "totalInputKgs": overall_in,
            "totalOutputKgs": overall_out,
            "overallOutturn": outturn(overall_out, overall_in),
            "totalNonNaturalInputKgs": non_natural_in,
            "totalNonNaturalOutputKgs": non_natural_out,
            "overallNonNaturalOutturn": outturn(non_natural_out, non_natural_in),
        },
        "reports": reports,
    }


def _new_station_summary(station_id, station_name) -> dict:
    return {
        "stationId": station_id,
        "stationName": station_name,
        "totalInputKgs": 0.0,
        "totalOutputKgs": 0.0,
        "naturalInputKgs": 0.0,
        "naturalOutputKgs": 0.0,
        "nonNaturalInputKgs": 0.0,
        "nonNaturalOutputKgs": 0.0,
        "outturn": 0,
        "processingTypes": defaultdict(float),
        "gradeBreakdown": defaultdict(float),
        "processingDetails": [],
    }


def outturn_summary(cws_id=None, start=None, end=None) -> dict:
    processings = _completed_processing(cws_id, start, end)

    natural_bases = {
        batch_base(p.batch_no) for p in processings if p.processing_type == ProcessingType.NATURAL
    }

    stations: dict = {}
    batches: dict = {}
    totals = defaultdict(float)

    for p in processings:
        base = batch_base(p.batch_no)
        treat_natural = p.processing_type == ProcessingType.NATURAL or base in natural_bases
        input_kgs = p.total_kgs or 0
        station_name = p.cws.name if p.cws else "Unknown"

        station = stations.setdefault(p.cws_id, _new_station_summary(p.cws_id, station_name))
        station["processingDetails"].append(_processing_info(p, treatedAsNatural=treat_natural))

        batch = {
            "batchNo": p.batch_no,
            "batchPrefix": base,
            "stationId": p.cws_id,
            "stationName": station_name,
            "processingInfo": _processing_info(p, treatedAsNatural=treat_natural),
            "inputKgs": input_kgs,
            "outputKgs": 0.0,
            "grades": defaultdict(float),
            "outturn": 0,
            "baggingOffSummary": [],
        }
        batches[p.batch_no] = batch

        batch_out = 0.0
        for record in _completed_bagging_offs(p):
            kgs = float(record.total_output_kgs or 0)
            batch_out += kgs
            batch["baggingOffSummary"].append(
                {
                    "id": record.id,
                    "date": to_iso(record.date),
                    "processingType": record.processing_type.value,
                    "outputKgs": dict(record.output_kgs or {}),
                    "totalOutputKgs": record.total_output_kgs,
                    "status": record.status,
                }
            )
            station["processingTypes"][record.processing_type.value] += kgs
            for grade, value in (record.output_kgs or {}).items():
                batch["grades"][grade] += float(value or 0)
                station["gradeBreakdown"][grade] += float(value or 0)

        batch["outputKgs"] = batch_out
        batch["outturn"] = outturn(batch_out, input_kgs)
        batch["grades"] = dict(batch["grades"])

        side = "natural" if treat_natural else "nonNatural"
        station["totalInputKgs"] += input_kgs
        station["totalOutputKgs"] += batch_out
        station[f"{side}InputKgs"] += input_kgs
        station[f"{side}OutputKgs"] += batch_out
        totals["totalInputKgs"] += input_kgs
        totals["totalOutputKgs"] += batch_out
        totals[f"{side}InputKgs"] += input_kgs
        totals[f"{side}OutputKgs"] += batch_out

    for station in stations.values():
        # Station outturn excludes Natural lots.
        station["outturn"] = outturn(station["nonNaturalOutputKgs"], station["nonNaturalInputKgs"])
        station["processingTypes"] = dict(station["processingTypes"])
        station["gradeBreakdown"] = dict(station["gradeBreakdown"])
        station["totalProcessings"] = len(station["processingDetails"])
        station["totalBatches"] = len({d["batchNo"] for d in station["processingDetails"]})

    return {
        "overall": {
            "totalInputKgs": totals["totalInputKgs"],
            "totalOutputKgs": totals["totalOutputKgs"],
            "naturalInputKgs": totals["naturalInputKgs"],
            "naturalOutputKgs": totals["naturalOutputKgs"],
            "nonNaturalInputKgs": totals["nonNaturalInputKgs"],
            "nonNaturalOutputKgs": totals["nonNaturalOutputKgs"],
            "overallOutturn": outturn(totals["nonNaturalOutputKgs"], totals["nonNaturalInputKgs"]),
            "totalStations": len(stations),
            "totalBatches": len(batches),
            "totalProcessings": len(processings),
            "dateRange": {
                "startDate": start or "All time",
                "endDate": end or "Present",
            },
        },
        "stationSummaries": list(stations.values()),
        "batchSummaries": list(batches.values()),
    }
