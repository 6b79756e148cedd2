# washstation/routes/cws.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..services import reference
from ..utils.guards import admin_required

cws_bp = Blueprint("cws", __name__, url_prefix="/api/cws")


@cws_bp.route("", methods=["POST"])
@admin_required
def create():
    station = reference.create_station(request.get_json(silent=True) or {})
    return jsonify(station.to_dict()), 201


@cws_bp.route("", methods=["GET"])
@login_required
def index():
    return jsonify(reference.list_stations())


@cws_bp.route("/<int:cws_id>", methods=["GET"])
@login_required
def detail(cws_id):
    return jsonify(reference.station_detail(cws_id))


@cws_bp.route("/<int:cws_id>", methods=["PUT"])
@admin_required
def update(cws_id):
    station = reference.update_station(cws_id, request.get_json(silent=True) or {})
    return jsonify(station.to_dict())


@cws_bp.route("/<int:cws_id>", methods=["DELETE"])
@admin_required
def delete(cws_id):
    reference.delete_station(cws_id)
    return jsonify({"message": "CWS deleted successfully"})
