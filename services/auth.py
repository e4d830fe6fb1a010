"""Session authentication helpers for the JSON API."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Optional

from flask import g, jsonify, session

from models import User
from services.accounts import get_user

logger = logging.getLogger(__name__)


def get_current_user() -> Optional[User]:
    """Return the currently logged-in user from ``flask.g``."""
    return getattr(g, "current_user", None)


def load_current_user() -> None:
    """Populate ``g.current_user`` from the session cookie.

    Provisional users cannot hold a session; a stale id clears it.
    """
    g.current_user = None
    user_id = session.get("user_id")
    if not user_id:
        return
    user = get_user(user_id)
    if user is None or user.is_provisional:
        session.clear()
        return
    g.current_user = user


def login_user(user: User) -> None:
    session.clear()
    session["user_id"] = user.id
    session.permanent = True
    g.current_user = user


def login_required(f):
    """Decorator that answers 401 if user is not authenticated."""

    @wraps(f)
    def decorated(*args, **kwargs):
        if not get_current_user():
            return jsonify({"error": "authentication required", "kind": "authentication"}), 401
        return f(*args, **kwargs)

    return decorated
