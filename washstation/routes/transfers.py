# washstation/routes/transfers.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..services import transfers

transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfer")


@transfers_bp.route("", methods=["POST"])
@login_required
def create():
    row = transfers.create_transfer(request.get_json(silent=True) or {})
    return jsonify(row.to_dict()), 201


@transfers_bp.route("", methods=["GET"])
@login_required
def index():
    return jsonify([t.to_dict() for t in transfers.list_transfers()])


@transfers_bp.route("/batch/<batch_no>", methods=["GET"])
@login_required
def for_batch(batch_no):
    return jsonify([t.to_dict() for t in transfers.list_for_batch(batch_no)])


@transfers_bp.route("/cws/<int:cws_id>", methods=["GET"])
@login_required
def for_station(cws_id):
    rows = transfers.list_for_station(
        cws_id,
        start=request.args.get("startDate"),
        end=request.args.get("endDate"),
    )
    return jsonify([t.to_dict() for t in rows])


@transfers_bp.route("/bagging-off/<int:bagging_off_id>", methods=["GET"])
@login_required
def for_bagging_off(bagging_off_id):
    return jsonify([t.to_dict(include_bagging_off=False) for t in transfers.list_for_bagging_off(bagging_off_id)])


@transfers_bp.route("/<int:transfer_id>", methods=["PUT"])
@login_required
def update(transfer_id):
    row = transfers.update_transfer(transfer_id, request.get_json(silent=True) or {})
    return jsonify(row.to_dict())
