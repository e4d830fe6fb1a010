"""Registration and credential checks."""

from __future__ import annotations

import logging
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from errors import AuthenticationError, ConflictError, ValidationError
from models import CONTEXT_OWNER, CONTEXT_TENANT, User
from services.audit import log_action
from services.invitations import link_invitation
from services.store import Store
from services.uow import run_in_transaction
from utils import normalise_email, require_text

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _normalise_email(email: Optional[str]) -> str:
    email = normalise_email(email)
    if not email or "@" not in email:
        raise ValidationError("a valid email is required")
    return email


def register(
    email: str,
    password: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
    invite_token: Optional[str] = None,
) -> User:
    """Create an account, or promote the provisional row for *email*.

    With *invite_token* the invitation is accepted in the same transaction
    and the user starts in the tenant context.  A failing invitation rolls
    the whole registration back.
    """
    email = _normalise_email(email)
    require_text(first_name=first_name, last_name=last_name, phone=phone,
                 invite_token=invite_token)
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    password_hash = generate_password_hash(password)

    def work(store: Store) -> User:
        user = store.get_user_by_email(email, for_update=True)
        if user is not None and not user.is_provisional:
            raise ConflictError(f"user with email {email} already exists")

        if user is not None:
            logger.info("Promoting provisional user %s", user.id)
            user.password_hash = password_hash
            user.is_provisional = False
            user.first_name = first_name or user.first_name
            user.last_name = last_name or user.last_name
            user.phone_number = phone or user.phone_number
            store.flush()
        else:
            user = store.add(
                User(
                    email=email,
                    password_hash=password_hash,
                    first_name=first_name,
                    last_name=last_name,
                    phone_number=phone,
                    is_provisional=False,
                    last_context_used=CONTEXT_OWNER,
                )
            )

        if invite_token:
            link_invitation(store, invite_token, user)
            user.last_context_used = CONTEXT_TENANT

        log_action(store, user.id, "register", "user", user.id,
                   "with invitation" if invite_token else "")
        return user

    user = run_in_transaction(work)
    logger.info("User %s registered", user.id)
    return user


def authenticate(email: str, password: str) -> User:
    """Return the user for valid credentials, else raise AuthenticationError."""
    email = normalise_email(email)
    user = run_in_transaction(lambda store: store.get_user_by_email(email))
    if (
        user is None
        or user.is_provisional
        or not user.password_hash
        or not isinstance(password, str)
        or not check_password_hash(user.password_hash, password)
    ):
        logger.warning("Failed login attempt")
        raise AuthenticationError("invalid credentials")
    return user


def get_user(user_id: int) -> Optional[User]:
    return run_in_transaction(lambda store: store.get_user(user_id))
