# washstation/routes/wet_transfers.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..services import wet_transfers
from ..utils.parsers import parse_int

wet_transfers_bp = Blueprint("wet_transfers", __name__, url_prefix="/api/wet-transfer")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


# =========================================================
# Lifecycle
# =========================================================
@wet_transfers_bp.route("", methods=["POST"])
@login_required
def create():
    row = wet_transfers.create_wet_transfer(_payload())
    return jsonify(row.to_dict()), 201


@wet_transfers_bp.route("/receive", methods=["POST"])
@login_required
def receive():
    return jsonify(wet_transfers.receive_wet_transfer(_payload()).to_dict())


@wet_transfers_bp.route("/reject", methods=["POST"])
@login_required
def reject():
    return jsonify(wet_transfers.reject_wet_transfer(_payload()).to_dict())


@wet_transfers_bp.route("/<int:transfer_id>", methods=["PUT"])
@login_required
def update(transfer_id):
    return jsonify(wet_transfers.update_wet_transfer(transfer_id, _payload()).to_dict())


@wet_transfers_bp.route("/<int:transfer_id>", methods=["DELETE"])
@login_required
def delete(transfer_id):
    wet_transfers.delete_wet_transfer(transfer_id)
    return jsonify({"message": "Wet transfer deleted successfully"})


# =========================================================
# Queries
# =========================================================
@wet_transfers_bp.route("", methods=["GET"])
@login_required
def index():
    return jsonify([t.to_dict() for t in wet_transfers.list_wet_transfers()])


@wet_transfers_bp.route("/source/<int:cws_id>", methods=["GET"])
@login_required
def from_station(cws_id):
    return jsonify([t.to_dict() for t in wet_transfers.list_from_station(cws_id)])


@wet_transfers_bp.route("/destination/<int:cws_id>", methods=["GET"])
@login_required
def to_station(cws_id):
    return jsonify([t.to_dict() for t in wet_transfers.list_to_station(cws_id)])


@wet_transfers_bp.route("/batch/<batch_no>", methods=["GET"])
@login_required
def by_batch(batch_no):
    return jsonify([t.to_dict() for t in wet_transfers.search_by_batch(batch_no)])


@wet_transfers_bp.route("/summary/<int:cws_id>", methods=["GET"])
@login_required
def summary(cws_id):
    return jsonify(wet_transfers.station_summary(cws_id))


@wet_transfers_bp.route("/recent/<int:cws_id>", methods=["GET"])
@login_required
def recent(cws_id):
    limit = parse_int(request.args.get("limit")) or 5
    return jsonify(wet_transfers.recent_for_station(cws_id, limit=limit))


@wet_transfers_bp.route("/<int:transfer_id>", methods=["GET"])
@login_required
def detail(transfer_id):
    return jsonify(wet_transfers.get_wet_transfer(transfer_id).to_dict())
