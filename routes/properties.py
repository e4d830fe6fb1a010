"""Property routes (owner side)."""

from flask import Blueprint, jsonify, request

from errors import ValidationError
from services.auth import get_current_user, login_required
from services.leases import list_leases_for_property
from services.properties import (
    create_property,
    delete_property,
    get_property,
    list_properties,
    property_to_dict,
    update_property,
)
from services.solvency import list_checks_for_property

properties_bp = Blueprint("properties", __name__, url_prefix="/api/properties")

_TERM_FIELDS = (
    "name", "details", "rent_amount", "charges_amount", "deposit_amount",
    "is_furnished", "seasonal_price_per_night",
)


@properties_bp.route("", methods=["GET"])
@login_required
def index():
    props = list_properties(get_current_user().id)
    return jsonify([property_to_dict(p) for p in props])


@properties_bp.route("", methods=["POST"])
@login_required
def create():
    data = request.get_json(silent=True) or {}
    terms = {key: data[key] for key in _TERM_FIELDS if key in data}
    prop = create_property(
        get_current_user().id, data.get("address"), data.get("rental_type"), **terms
    )
    return jsonify(property_to_dict(prop)), 201


@properties_bp.route("/<int:property_id>", methods=["GET"])
@login_required
def detail(property_id):
    return jsonify(property_to_dict(get_property(get_current_user().id, property_id)))


@properties_bp.route("/<int:property_id>", methods=["PATCH"])
@login_required
def edit(property_id):
    data = request.get_json(silent=True) or {}
    fields = {key: data[key] for key in (*_TERM_FIELDS, "address") if key in data}
    if not fields:
        raise ValidationError("nothing to update")
    prop = update_property(get_current_user().id, property_id, **fields)
    return jsonify(property_to_dict(prop))


@properties_bp.route("/<int:property_id>", methods=["DELETE"])
@login_required
def delete(property_id):
    delete_property(get_current_user().id, property_id)
    return "", 204


@properties_bp.route("/<int:property_id>/leases", methods=["GET"])
@login_required
def leases(property_id):
    return jsonify(list_leases_for_property(get_current_user().id, property_id))


@properties_bp.route("/<int:property_id>/checks", methods=["GET"])
@login_required
def checks(property_id):
    return jsonify(list_checks_for_property(get_current_user().id, property_id))
