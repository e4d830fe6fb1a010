"""Solvency check and credit routes."""

from flask import Blueprint, jsonify, request

from errors import ValidationError
from extensions import csrf
from services.auth import get_current_user, login_required
from services.solvency import (
    cancel_check,
    check_to_dict,
    consume_credit,
    get_check_by_token,
    get_global_balance,
    list_checks_for_owner,
    purchase_credits,
    record_check_result,
)
from utils import safe_int

solvency_bp = Blueprint("solvency", __name__, url_prefix="/api/solvency")


@solvency_bp.route("/checks", methods=["POST"])
@login_required
def start_check():
    data = request.get_json(silent=True) or {}
    property_id = safe_int(data.get("property_id"))
    if property_id <= 0:
        raise ValidationError("property_id is required")
    check = consume_credit(
        get_current_user().id,
        property_id,
        data.get("candidate_email"),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        phone=data.get("phone"),
    )
    return jsonify(check_to_dict(check)), 201


@solvency_bp.route("/checks", methods=["GET"])
@login_required
def checks():
    return jsonify(list_checks_for_owner(get_current_user().id))


@solvency_bp.route("/checks/<int:check_id>/cancel", methods=["POST"])
@login_required
def cancel(check_id):
    return jsonify(check_to_dict(cancel_check(get_current_user().id, check_id)))


@solvency_bp.route("/credits", methods=["GET"])
@login_required
def balance():
    return jsonify({"balance": get_global_balance(get_current_user().id)})


@solvency_bp.route("/credits", methods=["POST"])
@login_required
def buy_credits():
    data = request.get_json(silent=True) or {}
    user_id = get_current_user().id
    added = purchase_credits(user_id, data.get("pack_type"))
    return jsonify({"credits_added": added, "balance": get_global_balance(user_id)}), 201


@solvency_bp.route("/public/<token>", methods=["GET"])
def public_check(token):
    return jsonify(get_check_by_token(token))


@solvency_bp.route("/callback/<token>", methods=["POST"])
@csrf.exempt
def open_banking_callback(token):
    """Result push from the open-banking provider."""
    data = request.get_json(silent=True) or {}
    transactions = data.get("transactions")
    if not isinstance(transactions, list):
        raise ValidationError("transactions must be a list")
    check = record_check_result(token, transactions)
    return jsonify({"status": check.status, "score_result": check.score_result})
