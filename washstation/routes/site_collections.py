# washstation/routes/site_collections.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..services import reference

site_collections_bp = Blueprint("site_collections", __name__, url_prefix="/api/site-collections")


@site_collections_bp.route("", methods=["POST"])
@login_required
def create():
    site = reference.create_site_collection(request.get_json(silent=True) or {})
    return jsonify(site.to_dict()), 201


@site_collections_bp.route("", methods=["GET"])
@login_required
def index():
    return jsonify(reference.list_site_collections())


@site_collections_bp.route("/cws/<int:cws_id>", methods=["GET"])
@login_required
def for_station(cws_id):
    return jsonify(reference.site_collections_for_station(cws_id))


@site_collections_bp.route("/<int:site_id>", methods=["GET"])
@login_required
def detail(site_id):
    return jsonify(reference.site_collection_detail(site_id))


@site_collections_bp.route("/<int:site_id>", methods=["PUT"])
@login_required
def update(site_id):
    site = reference.update_site_collection(site_id, request.get_json(silent=True) or {})
    return jsonify(site.to_dict())


@site_collections_bp.route("/<int:site_id>", methods=["DELETE"])
@login_required
def delete(site_id):
    reference.delete_site_collection(site_id)
    return jsonify({"message": "Site collection deleted successfully"})
