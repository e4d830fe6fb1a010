"""Authentication routes."""

from flask import Blueprint, jsonify, request, session
from flask_wtf.csrf import generate_csrf

from extensions import limiter
from services.accounts import authenticate, register
from services.auth import get_current_user, login_required, login_user
from services.context import get_full_auth_response, switch_context

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.route("/csrf", methods=["GET"])
def csrf_token():
    """Hand the CSRF token to API clients; they echo it in ``X-CSRFToken``."""
    return jsonify({"csrf_token": generate_csrf()})


@auth_bp.route("/register", methods=["POST"])
@limiter.limit("5 per minute")
def register_account():
    data = request.get_json(silent=True) or {}
    user = register(
        data.get("email"),
        data.get("password"),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        phone=data.get("phone"),
        invite_token=data.get("invite_token") or None,
    )
    login_user(user)
    return jsonify(get_full_auth_response(user.id).to_dict()), 201


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    data = request.get_json(silent=True) or {}
    user = authenticate(data.get("email"), data.get("password"))
    login_user(user)
    return jsonify(get_full_auth_response(user.id).to_dict())


@auth_bp.route("/logout", methods=["POST"])
def logout():
    session.clear()
    return jsonify({"status": "logged_out"})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(get_full_auth_response(get_current_user().id).to_dict())


@auth_bp.route("/switch-context", methods=["POST"])
@login_required
def switch():
    data = request.get_json(silent=True) or {}
    response = switch_context(get_current_user().id, data.get("context"))
    return jsonify(response.to_dict())
