# washstation/routes/bagging_off.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..services import bagging_off, reports
from ..utils.parsers import parse_int

bagging_off_bp = Blueprint("bagging_off", __name__, url_prefix="/api/bagging-off")


@bagging_off_bp.route("", methods=["POST"])
@login_required
def create():
    rows = bagging_off.reconcile(request.get_json(silent=True) or {})
    # One record reads back as an object, a split report as a list.
    if len(rows) == 1:
        return jsonify(rows[0].to_dict()), 200
    return jsonify([r.to_dict() for r in rows]), 200


@bagging_off_bp.route("", methods=["GET"])
@login_required
def index():
    return jsonify([r.to_dict() for r in bagging_off.list_bagging_offs()])


# =========================================================
# Reports
# =========================================================
@bagging_off_bp.route("/report/completed", methods=["GET"])
@login_required
def completed_report():
    return jsonify(reports.completed_lot_report())


@bagging_off_bp.route("/report/summary", methods=["GET"])
@login_required
def summary_report():
    return jsonify(
        reports.outturn_summary(
            cws_id=parse_int(request.args.get("cwsId")),
            start=request.args.get("startDate"),
            end=request.args.get("endDate"),
        )
    )


# =========================================================
# Lookups
# =========================================================
@bagging_off_bp.route("/batch/<batch_no>", methods=["GET"])
@login_required
def for_batch(batch_no):
    return jsonify([r.to_dict() for r in bagging_off.list_for_batch(batch_no)])


@bagging_off_bp.route("/cws/<int:cws_id>", methods=["GET"])
@login_required
def completed_for_station(cws_id):
    return jsonify([r.to_dict() for r in bagging_off.list_completed_for_station(cws_id)])


@bagging_off_bp.route("/<int:bagging_off_id>", methods=["GET"])
@login_required
def detail(bagging_off_id):
    row = bagging_off.get_bagging_off(bagging_off_id)
    return jsonify(row.to_dict(include_transfers=True))


@bagging_off_bp.route("/<int:bagging_off_id>", methods=["PUT"])
@login_required
def update(bagging_off_id):
    row = bagging_off.update_bagging_off(bagging_off_id, request.get_json(silent=True) or {})
    return jsonify(row.to_dict())


@bagging_off_bp.route("/<int:bagging_off_id>", methods=["DELETE"])
@login_required
def delete(bagging_off_id):
    bagging_off.delete_bagging_off(bagging_off_id)
    return jsonify({"message": "Bagging off record deleted successfully"})
