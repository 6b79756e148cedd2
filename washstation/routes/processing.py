# washstation/routes/processing.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..errors import MissingRequiredFields
from ..services import processing
from ..services.reference import get_station

processing_bp = Blueprint("processing", __name__, url_prefix="/api/processing")


@processing_bp.route("", methods=["POST"])
@login_required
def start():
    row = processing.start_processing(request.get_json(silent=True) or {})
    return jsonify(row.to_dict()), 201


@processing_bp.route("/batch/<batch_no>", methods=["GET"])
@login_required
def for_batch(batch_no):
    return jsonify([p.to_dict() for p in processing.list_for_batch(batch_no)])


@processing_bp.route("/cws/<int:cws_id>", methods=["GET"])
@login_required
def for_station(cws_id):
    get_station(cws_id)
    rows = processing.list_for_station(
        cws_id,
        status=request.args.get("status"),
        processing_type=request.args.get("processingType"),
    )
    return jsonify([p.to_dict(include_cws=False) for p in rows])


@processing_bp.route("/stats/<int:cws_id>", methods=["GET"])
@login_required
def stats(cws_id):
    return jsonify(processing.station_stats(cws_id))


@processing_bp.route("/<int:processing_id>/status", methods=["PUT"])
@login_required
def set_status(processing_id):
    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        raise MissingRequiredFields(["status"])
    row = processing.set_status(processing_id, data["status"], notes=data.get("notes"))
    return jsonify(row.to_dict())
