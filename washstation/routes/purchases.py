# washstation/routes/purchases.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..services import purchases, reports
from ..services.reference import get_station

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


# =========================================================
# Ledger
# =========================================================
@purchases_bp.route("", methods=["POST"])
@login_required
def create():
    purchase = purchases.record_purchase(request.get_json(silent=True) or {})
    return jsonify(purchase.to_dict()), 201


@purchases_bp.route("", methods=["GET"])
@login_required
def index():
    return jsonify([p.to_dict() for p in purchases.list_purchases()])


@purchases_bp.route("/cws/<int:cws_id>", methods=["GET"])
@login_required
def for_station(cws_id):
    get_station(cws_id)
    return jsonify([p.to_dict() for p in purchases.list_purchases(cws_id=cws_id)])


# =========================================================
# Reports
# =========================================================
@purchases_bp.route("/grouped", methods=["GET"])
@login_required
def grouped():
    return jsonify(reports.purchases_grouped_by_date())


@purchases_bp.route("/date-range", methods=["GET"])
@login_required
def date_range():
    return jsonify(reports.purchases_in_range(request.args.get("startDate"), request.args.get("endDate")))


@purchases_bp.route("/date/<day>", methods=["GET"])
@login_required
def on_date(day):
    return jsonify(reports.purchases_on_date(day))


@purchases_bp.route("/cws-aggregated", methods=["GET"])
@login_required
def aggregated_yesterday():
    return jsonify(reports.station_aggregates_for_yesterday())


@purchases_bp.route("/cws-aggregated/date-range", methods=["GET"])
@login_required
def aggregated_range():
    return jsonify(
        reports.station_aggregates_in_range(request.args.get("startDate"), request.args.get("endDate"))
    )


@purchases_bp.route("/cws-aggregated-all", methods=["GET"])
@login_required
def aggregated_all():
    return jsonify(reports.station_aggregates_all_time())


# =========================================================
# Single purchase
# =========================================================
@purchases_bp.route("/<int:purchase_id>", methods=["GET"])
@login_required
def detail(purchase_id):
    return jsonify(purchases.get_purchase(purchase_id).to_dict())


@purchases_bp.route("/<int:purchase_id>", methods=["PUT"])
@login_required
def update(purchase_id):
    purchase = purchases.update_purchase(purchase_id, request.get_json(silent=True) or {})
    return jsonify(purchase.to_dict())


@purchases_bp.route("/<int:purchase_id>", methods=["DELETE"])
@login_required
def delete(purchase_id):
    purchases.delete_purchase(purchase_id)
    return jsonify({"message": "Purchase deleted successfully"})
