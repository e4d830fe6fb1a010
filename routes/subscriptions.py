"""Subscription routes."""

from flask import Blueprint, jsonify, request

from services.auth import get_current_user, login_required
from services.subscriptions import (
    PLAN_CATALOG,
    cancel_subscription,
    get_subscription,
    increase_limit,
    plan_price,
    subscribe,
    subscription_to_dict,
)
from utils import safe_int

subscriptions_bp = Blueprint("subscriptions", __name__, url_prefix="/api/subscriptions")


@subscriptions_bp.route("/plans", methods=["GET"])
def plans():
    return jsonify([
        {
            "plan_type": plan.slug,
            "max_properties": plan.max_properties,
            "monthly_price": str(plan_price(plan, "monthly")),
            "yearly_price": str(plan_price(plan, "yearly")),
            "included_credits": plan.included_credits,
        }
        for plan in PLAN_CATALOG.values()
    ])


@subscriptions_bp.route("", methods=["GET"])
@login_required
def current():
    return jsonify({"subscription": subscription_to_dict(get_subscription(get_current_user().id))})


@subscriptions_bp.route("", methods=["POST"])
@login_required
def create():
    data = request.get_json(silent=True) or {}
    sub = subscribe(
        get_current_user().id, data.get("plan"), data.get("frequency") or "monthly"
    )
    return jsonify({"subscription": subscription_to_dict(sub)}), 201


@subscriptions_bp.route("/limit", methods=["POST"])
@login_required
def raise_limit():
    data = request.get_json(silent=True) or {}
    sub = increase_limit(get_current_user().id, safe_int(data.get("additional_slots")))
    return jsonify({"subscription": subscription_to_dict(sub)})


@subscriptions_bp.route("", methods=["DELETE"])
@login_required
def cancel():
    sub = cancel_subscription(get_current_user().id)
    return jsonify({"subscription": subscription_to_dict(sub)})
