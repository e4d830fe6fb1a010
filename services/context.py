"""Acting context (owner or tenant) and the capabilities behind it.

Anyone may act as an owner.  Acting as a tenant requires at least one lease
or seasonal booking.  The last context a user chose is stored on the user
row and honoured while the matching capability holds.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from errors import CapabilityError, NotFoundError, ValidationError
from models import CONTEXT_NONE, CONTEXT_OWNER, CONTEXT_TENANT, VALID_CONTEXTS, User
from services.store import Store
from services.subscriptions import subscription_to_dict
from services.uow import run_in_transaction

logger = logging.getLogger(__name__)


@dataclass
class Capabilities:
    can_act_as_owner: bool = True
    can_act_as_tenant: bool = False


@dataclass
class AuthResponse:
    user: dict
    current_context: str
    capabilities: Capabilities
    profile: dict

    def to_dict(self) -> dict:
        return {
            "user": self.user,
            "current_context": self.current_context,
            "capabilities": asdict(self.capabilities),
            "user_profile": self.profile,
        }


def compute_capabilities(store: Store, user_id: int) -> Capabilities:
    tenancies = store.count_leases_by_tenant(user_id) + store.count_bookings_by_tenant(user_id)
    return Capabilities(can_act_as_owner=True, can_act_as_tenant=tenancies > 0)


def resolve_context(preference: Optional[str], caps: Capabilities) -> str:
    """Pick the current context from the stored preference and capabilities."""
    if preference == CONTEXT_OWNER and caps.can_act_as_owner:
        return CONTEXT_OWNER
    if preference == CONTEXT_TENANT and caps.can_act_as_tenant:
        return CONTEXT_TENANT
    if caps.can_act_as_owner:
        return CONTEXT_OWNER
    if caps.can_act_as_tenant:
        return CONTEXT_TENANT
    return CONTEXT_NONE


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone_number": user.phone_number,
        "is_provisional": bool(user.is_provisional),
    }


def _build_auth_response(store: Store, user: User) -> AuthResponse:
    caps = compute_capabilities(store, user.id)
    return AuthResponse(
        user=user_to_dict(user),
        current_context=resolve_context(user.last_context_used, caps),
        capabilities=caps,
        profile={
            "subscription": subscription_to_dict(store.get_subscription(user.id)),
            "credit_balance": store.credit_balance(user.id),
        },
    )


def get_full_auth_response(user_id: int) -> AuthResponse:
    """Capabilities, current context and profile, read in one transaction."""

    def work(store: Store) -> AuthResponse:
        user = store.get_user(user_id)
        if user is None:
            raise NotFoundError("user not found")
        return _build_auth_response(store, user)

    return run_in_transaction(work)


def switch_context(user_id: int, target: str) -> AuthResponse:
    """Persist *target* as the user's preferred context.

    Switching to tenant needs the tenant capability.  The returned state is
    read in a fresh transaction after the change commits.
    """
    if not isinstance(target, str) or target not in VALID_CONTEXTS:
        raise ValidationError(f"invalid context: {target}", allowed=sorted(VALID_CONTEXTS))

    def work(store: Store) -> None:
        user = store.get_user_for_update(user_id)
        if user is None:
            raise NotFoundError("user not found")
        if target == CONTEXT_TENANT and not compute_capabilities(store, user_id).can_act_as_tenant:
            raise CapabilityError(f"user cannot act as {target}", context=target)
        user.last_context_used = target

    run_in_transaction(work)
    logger.info("User %s switched context to %s", user_id, target)
    return get_full_auth_response(user_id)
