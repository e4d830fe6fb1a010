"""Property management with plan quota enforcement.

Only long-term rentals count against ``Subscription.max_properties_limit``;
seasonal properties are unconstrained.  The quota check and the insert run
in one transaction that holds the subscription row lock, so concurrent
creations for the same owner are serialised.
"""

from __future__ import annotations

import logging
from typing import Optional

from flask import current_app

from errors import AccessDeniedError, QuotaExceededError, SubscriptionRequiredError, ValidationError
from models import RENTAL_LONG_TERM, TX_INITIAL_FREE, VALID_RENTAL_TYPES, Property
from services.audit import log_action
from services.store import Store
from services.uow import run_in_transaction
from utils import require_text, to_amount, utc_now

logger = logging.getLogger(__name__)

_MONEY_FIELDS = ("rent_amount", "charges_amount", "deposit_amount", "seasonal_price_per_night")
_UPDATABLE_FIELDS = {"name", "address", "details", "is_furnished", *_MONEY_FIELDS}


def _ledger_config():
    return current_app.config["LEDGER_CONFIG"]


def _clean_terms(terms: dict) -> dict:
    """Validate optional property attributes and coerce money to Decimal."""
    cleaned = {}
    for key, value in terms.items():
        if key not in _UPDATABLE_FIELDS:
            raise ValidationError(f"unknown property field: {key}")
        if key in _MONEY_FIELDS and value is not None:
            amount = to_amount(value)
            if amount is None or amount < 0:
                raise ValidationError(f"{key} must be a non-negative amount")
            value = amount
        elif key == "address":
            if not isinstance(value, str) or not value.strip():
                raise ValidationError("address is required")
            value = value.strip()
        elif key == "name":
            require_text(name=value)
        elif key == "details" and value is not None and not isinstance(value, dict):
            raise ValidationError("details must be an object")
        elif key == "is_furnished":
            value = bool(value)
        cleaned[key] = value
    return cleaned


def owned_active_property(store: Store, owner_id: int, property_id: int, lock: bool = False) -> Property:
    """Load a property the caller owns; absent, foreign and deleted look the same."""
    prop = store.get_property_for_update(property_id) if lock else store.get_property(property_id)
    if prop is None or prop.owner_id != owner_id or not prop.is_active:
        raise AccessDeniedError("property not found or access denied")
    return prop


def create_property(owner_id: int, address: str, rental_type: str, **terms) -> Property:
    """Create a property after checking the owner's plan quota.

    The first long-term property on the entry plan also earns the one-time
    wallet bonus, stamped on the user row so it is never granted twice.
    """
    if not isinstance(rental_type, str) or rental_type not in VALID_RENTAL_TYPES:
        raise ValidationError(
            f"invalid rental type: {rental_type}", allowed=sorted(VALID_RENTAL_TYPES)
        )
    cleaned = _clean_terms({"address": address, **terms})
    ledger = _ledger_config()

    def work(store: Store) -> Property:
        sub = store.get_active_subscription(owner_id, for_update=True)
        if sub is None:
            raise SubscriptionRequiredError(owner_id)

        long_term_count = 0
        if rental_type == RENTAL_LONG_TERM:
            long_term_count = store.count_active_long_term_properties(owner_id)
            if long_term_count >= sub.max_properties_limit:
                logger.warning(
                    "Quota exceeded for user %s: %s/%s long-term properties",
                    owner_id, long_term_count, sub.max_properties_limit,
                )
                raise QuotaExceededError(sub.max_properties_limit, long_term_count)

        prop = store.add(
            Property(
                owner_id=owner_id,
                rental_type=rental_type,
                vacancy_credits=ledger.initial_vacancy_credits,
                is_active=True,
                **cleaned,
            )
        )

        if (
            rental_type == RENTAL_LONG_TERM
            and long_term_count == 0
            and sub.plan_type == ledger.initial_bonus_plan
            and ledger.initial_bonus_credits > 0
        ):
            user = store.get_user_for_update(owner_id)
            if user.initial_bonus_granted_at is None and not store.has_received_bonus(owner_id):
                store.append_credit_transaction(
                    owner_id,
                    ledger.initial_bonus_credits,
                    TX_INITIAL_FREE,
                    "Welcome bonus for first property",
                )
                user.initial_bonus_granted_at = utc_now()
                logger.info(
                    "Granted %s initial credits to user %s",
                    ledger.initial_bonus_credits, owner_id,
                )

        log_action(store, owner_id, "create_property", "property", prop.id, rental_type)
        return prop

    prop = run_in_transaction(work)
    logger.info("Property %s (%s) created by user %s", prop.id, rental_type, owner_id)
    return prop


def list_properties(owner_id: int) -> list[Property]:
    return run_in_transaction(lambda store: store.list_active_properties(owner_id))


def get_property(owner_id: int, property_id: int) -> Property:
    return run_in_transaction(lambda store: owned_active_property(store, owner_id, property_id))


def update_property(owner_id: int, property_id: int, **fields) -> Property:
    """Edit descriptive fields and default lease terms of a property."""
    cleaned = _clean_terms(fields)
    if not cleaned:
        raise ValidationError("nothing to update")

    def work(store: Store) -> Property:
        prop = owned_active_property(store, owner_id, property_id, lock=True)
        for key, value in cleaned.items():
            setattr(prop, key, value)
        log_action(store, owner_id, "update_property", "property", prop.id,
                   ",".join(sorted(cleaned)))
        return prop

    return run_in_transaction(work)


def delete_property(owner_id: int, property_id: int) -> None:
    """Soft-delete a property; its slot is freed for the quota."""

    def work(store: Store) -> None:
        prop = owned_active_property(store, owner_id, property_id, lock=True)
        prop.is_active = False
        log_action(store, owner_id, "delete_property", "property", prop.id)

    run_in_transaction(work)
    logger.info("Property %s deleted by user %s", property_id, owner_id)


def property_to_dict(prop: Property) -> dict:
    def money(value) -> Optional[str]:
        return str(value) if value is not None else None

    return {
        "id": prop.id,
        "owner_id": prop.owner_id,
        "name": prop.name,
        "address": prop.address,
        "rental_type": prop.rental_type,
        "details": prop.details or {},
        "rent_amount": money(prop.rent_amount),
        "charges_amount": money(prop.charges_amount),
        "deposit_amount": money(prop.deposit_amount),
        "is_furnished": bool(prop.is_furnished),
        "seasonal_price_per_night": money(prop.seasonal_price_per_night),
        "vacancy_credits": prop.vacancy_credits,
        "is_active": prop.is_active,
        "created_at": prop.created_at.isoformat() if prop.created_at else None,
    }
