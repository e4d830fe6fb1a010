"""Lease invitation routes."""

from flask import Blueprint, jsonify, request

from errors import ValidationError
from services.auth import get_current_user, login_required
from services.invitations import (
    LeaseTerms,
    create_invitation,
    get_invitation_details,
    invitation_to_dict,
    redeem_invitation,
)
from utils import safe_int

invitations_bp = Blueprint("invitations", __name__, url_prefix="/api/invitations")


@invitations_bp.route("", methods=["POST"])
@login_required
def invite():
    data = request.get_json(silent=True) or {}
    property_id = safe_int(data.get("property_id"))
    if property_id <= 0:
        raise ValidationError("property_id is required")
    invitation = create_invitation(
        get_current_user().id,
        property_id,
        data.get("email"),
        terms=LeaseTerms.from_dict(data.get("terms")),
    )
    return jsonify(invitation_to_dict(invitation)), 201


@invitations_bp.route("/<token>", methods=["GET"])
def details(token):
    return jsonify(get_invitation_details(token))


@invitations_bp.route("/<token>/accept", methods=["POST"])
@login_required
def accept(token):
    lease = redeem_invitation(token, get_current_user().id)
    return jsonify({"status": "accepted", "lease_id": lease.id})
