"""Subscription plans and property quota entitlement."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from errors import (
    InvalidStateError,
    NotFoundError,
    SubscriptionRequiredError,
    ValidationError,
)
from models import TX_PLAN_PURCHASE, VALID_FREQUENCIES, Payment, Subscription
from services.audit import log_action
from services.store import Store
from services.uow import run_in_transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Plan:
    slug: str
    max_properties: int
    monthly_price: Decimal
    included_credits: int
    upgradable: bool


PLAN_CATALOG = {
    "discovery": Plan("discovery", 1, Decimal("0.00"), 0, upgradable=False),
    "serenity": Plan("serenity", 1, Decimal("9.90"), 20, upgradable=True),
    "premium": Plan("premium", 5, Decimal("29.90"), 30, upgradable=True),
}

# Yearly billing charges ten months.
YEARLY_PRICE_MONTHS = 10
_PERIOD_DAYS = {"monthly": 30, "yearly": 365}


def plan_price(plan: Plan, frequency: str) -> Decimal:
    """Return the amount recorded for one billing period of *plan*."""
    if frequency == "yearly":
        return plan.monthly_price * YEARLY_PRICE_MONTHS
    return plan.monthly_price


def _require_plan(plan_type: str) -> Plan:
    plan = None
    if isinstance(plan_type, str):
        plan = PLAN_CATALOG.get(plan_type.strip().lower())
    if plan is None:
        raise ValidationError(
            f"unknown plan: {plan_type}", allowed=sorted(PLAN_CATALOG)
        )
    return plan


def subscribe(user_id: int, plan_type: str, frequency: str = "monthly") -> Subscription:
    """Put *user_id* on *plan_type*, replacing any current subscription.

    The property limit is reset to the plan's allowance.  A non-free plan
    records a payment, and a plan with bundled credits adds them to the
    global wallet.
    """
    plan = _require_plan(plan_type)
    if isinstance(frequency, str) or frequency is None:
        frequency = (frequency or "monthly").strip().lower()
    if not isinstance(frequency, str) or frequency not in VALID_FREQUENCIES:
        raise ValidationError(
            f"unknown billing frequency: {frequency}", allowed=sorted(VALID_FREQUENCIES)
        )

    def work(store: Store) -> Subscription:
        if store.get_user_for_update(user_id) is None:
            raise NotFoundError("user not found")

        today = datetime.date.today()
        sub = store.get_subscription(user_id, for_update=True)
        if sub is None:
            sub = Subscription(user_id=user_id)
            store.add(sub, flush=False)
        sub.plan_type = plan.slug
        sub.frequency = frequency
        sub.status = "active"
        sub.start_date = today
        sub.end_date = today + datetime.timedelta(days=_PERIOD_DAYS[frequency])
        sub.max_properties_limit = plan.max_properties
        store.flush()

        price = plan_price(plan, frequency)
        if price > 0:
            store.add(
                Payment(
                    user_id=user_id,
                    amount=price,
                    related_entity_type="subscription",
                    related_entity_id=sub.id,
                )
            )
        if plan.included_credits:
            store.append_credit_transaction(
                user_id,
                plan.included_credits,
                TX_PLAN_PURCHASE,
                f"Purchase of {plan.slug} plan ({frequency})",
            )
        log_action(store, user_id, "subscribe", "subscription", sub.id,
                   f"plan={plan.slug} frequency={frequency}")
        return sub

    sub = run_in_transaction(work)
    logger.info("User %s subscribed to %s (%s)", user_id, plan.slug, frequency)
    return sub


def increase_limit(user_id: int, additional_slots: int) -> Subscription:
    """Buy extra long-term property slots on an upgradable plan."""
    if additional_slots is None or additional_slots < 1:
        raise ValidationError("additional_slots must be at least 1")

    def work(store: Store) -> Subscription:
        sub = store.get_active_subscription(user_id, for_update=True)
        if sub is None:
            raise SubscriptionRequiredError(user_id)
        plan = PLAN_CATALOG.get(sub.plan_type)
        if plan is None or not plan.upgradable:
            raise InvalidStateError(
                f"plan {sub.plan_type} does not allow extra properties",
                reason="plan_not_upgradable",
            )
        sub.max_properties_limit = sub.max_properties_limit + additional_slots
        log_action(store, user_id, "increase_limit", "subscription", sub.id,
                   f"+{additional_slots} -> {sub.max_properties_limit}")
        return sub

    sub = run_in_transaction(work)
    logger.info(
        "User %s property limit raised by %s to %s",
        user_id, additional_slots, sub.max_properties_limit,
    )
    return sub


def get_subscription(user_id: int) -> Optional[Subscription]:
    """Return the user's active subscription, or None."""
    return run_in_transaction(lambda store: store.get_active_subscription(user_id))


def cancel_subscription(user_id: int) -> Subscription:
    """Cancel the active subscription; existing properties are kept."""

    def work(store: Store) -> Subscription:
        sub = store.get_active_subscription(user_id, for_update=True)
        if sub is None:
            raise SubscriptionRequiredError(user_id)
        sub.status = "cancelled"
        sub.end_date = datetime.date.today()
        log_action(store, user_id, "cancel_subscription", "subscription", sub.id)
        return sub

    sub = run_in_transaction(work)
    logger.info("User %s cancelled subscription %s", user_id, sub.id)
    return sub


def subscription_to_dict(sub: Optional[Subscription]) -> Optional[dict]:
    if sub is None:
        return None
    return {
        "id": sub.id,
        "plan_type": sub.plan_type,
        "frequency": sub.frequency,
        "status": sub.status,
        "start_date": sub.start_date.isoformat() if sub.start_date else None,
        "end_date": sub.end_date.isoformat() if sub.end_date else None,
        "max_properties_limit": sub.max_properties_limit,
    }
