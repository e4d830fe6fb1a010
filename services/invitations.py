"""Lease invitations: single-use tokens that link a tenant to a lease.

An invitation is redeemed either by an existing account
(:func:`redeem_invitation`) or while registering
(:func:`services.accounts.register`).  Both paths go through
:func:`link_invitation` inside the caller's transaction, so the lease write
and the status change to ``accepted`` commit together or not at all.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from flask import current_app

from errors import InvalidStateError, NotFoundError, ValidationError
from mailer import MailerError, send_invitation
from models import (
    CONTEXT_TENANT,
    INVITATION_ACCEPTED,
    INVITATION_EXPIRED,
    INVITATION_PENDING,
    Lease,
    LeaseInvitation,
    User,
)
from services.audit import log_action
from services.properties import owned_active_property
from services.store import Store
from services.uow import run_in_transaction
from utils import (
    as_utc,
    generate_token,
    normalise_email,
    require_text,
    parse_date,
    safe_int,
    to_amount,
    utc_now,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass
class LeaseTerms:
    """Custom terms for the draft lease attached to an invitation."""

    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    rent_amount: Optional[Decimal] = None
    charges_amount: Optional[Decimal] = None
    deposit_amount: Optional[Decimal] = None
    payment_day: int = 5
    special_clauses: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["LeaseTerms"]:
        if not data:
            return None
        if not isinstance(data, dict):
            raise ValidationError("terms must be an object")
        clauses = data.get("special_clauses") or []
        if not isinstance(clauses, list):
            raise ValidationError("special_clauses must be a list")
        terms = cls(
            start_date=parse_date(data.get("start_date")),
            end_date=parse_date(data.get("end_date")),
            rent_amount=to_amount(data.get("rent_amount")),
            charges_amount=to_amount(data.get("charges_amount")),
            deposit_amount=to_amount(data.get("deposit_amount")),
            payment_day=safe_int(data.get("payment_day"), 5),
            special_clauses=list(clauses),
        )
        for key in ("start_date", "end_date", "rent_amount", "charges_amount", "deposit_amount"):
            if data.get(key) not in (None, "") and getattr(terms, key) is None:
                raise ValidationError(f"{key} is not valid")
        return terms

    def validate(self) -> None:
        if not 1 <= self.payment_day <= 31:
            raise ValidationError("payment_day must be between 1 and 31")
        for name in ("rent_amount", "charges_amount", "deposit_amount"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValidationError(f"{name} must not be negative")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError("end_date must not be before start_date")


def ensure_provisional_user(store: Store, email: str, first_name=None, last_name=None,
                            phone=None) -> User:
    """Return the user behind *email*, creating a provisional one if needed.

    Provisional users have no password and default to the tenant context;
    registering with the same email later promotes the row.
    """
    require_text(first_name=first_name, last_name=last_name, phone=phone)
    user = store.get_user_by_email(email)
    if user is not None:
        return user
    return store.add(
        User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone_number=phone,
            is_provisional=True,
            last_context_used=CONTEXT_TENANT,
        )
    )


def create_invitation(
    owner_id: int,
    property_id: int,
    tenant_email: str,
    terms: Optional[LeaseTerms] = None,
) -> LeaseInvitation:
    """Invite *tenant_email* to the owner's property.

    With *terms* a draft lease is written now and claimed on redemption;
    without them the lease is built from the property defaults later.
    """
    email = normalise_email(tenant_email)
    if not email or "@" not in email:
        raise ValidationError("a valid tenant email is required")
    if terms is not None:
        terms.validate()
    ttl_days = current_app.config["LEDGER_CONFIG"].invitation_ttl_days

    def work(store: Store) -> LeaseInvitation:
        prop = owned_active_property(store, owner_id, property_id)
        lease_id = None
        if terms is not None:
            lease = store.add(
                Lease(
                    property_id=prop.id,
                    tenant_id=None,
                    start_date=terms.start_date or datetime.date.today(),
                    end_date=terms.end_date,
                    rent_amount=_first(terms.rent_amount, prop.rent_amount),
                    charges_amount=_first(terms.charges_amount, prop.charges_amount),
                    deposit_amount=_first(terms.deposit_amount, prop.deposit_amount),
                    payment_day=terms.payment_day,
                    special_clauses=terms.special_clauses,
                    lease_status="draft",
                )
            )
            lease_id = lease.id

        ensure_provisional_user(store, email)
        invitation = store.add(
            LeaseInvitation(
                property_id=prop.id,
                lease_id=lease_id,
                owner_id=owner_id,
                tenant_email=email,
                token=generate_token(),
                status=INVITATION_PENDING,
                expires_at=utc_now() + datetime.timedelta(days=ttl_days),
            )
        )
        log_action(store, owner_id, "create_invitation", "lease_invitation", invitation.id,
                   f"property={prop.id}")
        return invitation

    invitation = run_in_transaction(work)
    logger.info("Invitation %s created for property %s", invitation.id, property_id)

    app_cfg = current_app.config["APP_CONFIG"]
    link = f"{app_cfg.frontend_url}/register?token={invitation.token}"
    try:
        send_invitation(current_app.config["EMAIL_CONFIG"], email, link)
    except MailerError as exc:
        logger.warning("Could not email invitation %s: %s", invitation.id, exc)
    return invitation


def _first(*values) -> Decimal:
    for value in values:
        if value is not None:
            return value
    return ZERO


def link_invitation(store: Store, token: str, user: User) -> Lease:
    """Accept the invitation behind *token* for *user* in the current transaction.

    Raises NotFoundError for an unknown token, InvalidStateError with reason
    ``not_pending`` or ``expired`` otherwise.  The invitation row stays
    locked until the caller's transaction ends.
    """
    invitation = store.get_invitation_by_token(token, for_update=True)
    if invitation is None:
        raise NotFoundError("invalid invitation token", reason="invalid")
    if invitation.status == INVITATION_EXPIRED:
        raise InvalidStateError("invitation expired", reason="expired")
    if invitation.status != INVITATION_PENDING:
        raise InvalidStateError("invitation is not pending", reason="not_pending")
    if as_utc(invitation.expires_at) <= utc_now():
        raise InvalidStateError("invitation expired", reason="expired")

    if invitation.lease_id:
        lease = store.get_lease(invitation.lease_id, for_update=True)
        if lease is None or lease.tenant_id is not None:
            raise InvalidStateError("draft lease already claimed", reason="not_pending")
        lease.tenant_id = user.id
    else:
        prop = store.get_property(invitation.property_id)
        lease = store.add(
            Lease(
                property_id=prop.id,
                tenant_id=user.id,
                start_date=datetime.date.today(),
                rent_amount=_first(prop.rent_amount),
                charges_amount=_first(prop.charges_amount),
                deposit_amount=_first(prop.deposit_amount),
                lease_status="draft",
            )
        )
        invitation.lease_id = lease.id

    invitation.status = INVITATION_ACCEPTED
    invitation.accepted_by_id = user.id
    invitation.accepted_at = utc_now()
    store.flush()
    log_action(store, user.id, "accept_invitation", "lease_invitation", invitation.id,
               f"lease={lease.id}")
    return lease


def redeem_invitation(token: str, user_id: int) -> Lease:
    """Accept an invitation as an already registered user."""

    def work(store: Store) -> Lease:
        user = store.get_user_for_update(user_id)
        if user is None:
            raise NotFoundError("user not found")
        return link_invitation(store, token, user)

    lease = run_in_transaction(work)
    logger.info("User %s accepted an invitation, lease %s", user_id, lease.id)
    return lease


def get_invitation_details(token: str) -> dict:
    """Public landing data for a still redeemable invitation."""

    def work(store: Store) -> dict:
        invitation = store.get_invitation_by_token(token)
        if invitation is None:
            raise NotFoundError("invitation not found", reason="invalid")
        if invitation.status != INVITATION_PENDING:
            raise InvalidStateError("invitation invalid or expired", reason="not_pending")
        if as_utc(invitation.expires_at) <= utc_now():
            raise InvalidStateError("invitation expired", reason="expired")
        prop = store.get_property(invitation.property_id)
        owner = store.get_user(invitation.owner_id)
        lease = store.get_lease(invitation.lease_id) if invitation.lease_id else None
        rent = lease.rent_amount if lease else prop.rent_amount
        deposit = lease.deposit_amount if lease else prop.deposit_amount
        return {
            "email": invitation.tenant_email,
            "property_address": prop.address,
            "rent_amount": str(_first(rent)),
            "deposit_amount": str(_first(deposit)),
            "owner_name": owner.full_name if owner else "",
            "expires_at": as_utc(invitation.expires_at).isoformat(),
        }

    return run_in_transaction(work)


def expire_stale_invitations() -> int:
    """Mark pending invitations past their expiry as expired; returns the count."""

    def work(store: Store) -> int:
        stale = store.list_stale_invitations_for_update(utc_now())
        for invitation in stale:
            invitation.status = INVITATION_EXPIRED
        return len(stale)

    count = run_in_transaction(work)
    if count:
        logger.info("Expired %s stale invitations", count)
    return count


def invitation_to_dict(invitation: LeaseInvitation) -> dict:
    return {
        "id": invitation.id,
        "property_id": invitation.property_id,
        "lease_id": invitation.lease_id,
        "tenant_email": invitation.tenant_email,
        "token": invitation.token,
        "status": invitation.status,
        "expires_at": as_utc(invitation.expires_at).isoformat(),
    }
