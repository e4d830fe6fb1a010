"""Lease routes (tenant side)."""

from flask import Blueprint, jsonify

from services.auth import get_current_user, login_required
from services.leases import get_lease, list_leases_for_tenant

leases_bp = Blueprint("leases", __name__, url_prefix="/api/leases")


@leases_bp.route("", methods=["GET"])
@login_required
def index():
    return jsonify(list_leases_for_tenant(get_current_user().id))


@leases_bp.route("/<int:lease_id>", methods=["GET"])
@login_required
def detail(lease_id):
    return jsonify(get_lease(get_current_user().id, lease_id))
