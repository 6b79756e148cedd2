# washstation/routes/pricing.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..services import pricing
from ..utils.guards import admin_required

pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")


def _dump(row):
    return row.to_dict() if row is not None else None


@pricing_bp.route("/global", methods=["POST"])
@admin_required
def record_global():
    row = pricing.record_global_fees(request.get_json(silent=True) or {})
    return jsonify(row.to_dict()), 201


@pricing_bp.route("/global", methods=["GET"])
@login_required
def current_global():
    return jsonify(_dump(pricing.current_global_fees()))


@pricing_bp.route("/cws-pricing", methods=["POST"])
@admin_required
def record_cws():
    row = pricing.record_cws_pricing(request.get_json(silent=True) or {})
    return jsonify(row.to_dict()), 201


@pricing_bp.route("/cws-pricing/<int:cws_id>", methods=["GET"])
@login_required
def current_cws(cws_id):
    return jsonify(_dump(pricing.current_cws_pricing(cws_id)))


@pricing_bp.route("/site-fees", methods=["POST"])
@admin_required
def record_site():
    row = pricing.record_site_fees(request.get_json(silent=True) or {})
    return jsonify(row.to_dict()), 201


@pricing_bp.route("/site-fees/<int:site_collection_id>", methods=["GET"])
@login_required
def current_site(site_collection_id):
    return jsonify(_dump(pricing.current_site_fees(site_collection_id)))
