"""Solvency checks and the two-tier credit wallet.

Each check costs one credit.  Credits come from the property's own
``vacancy_credits`` pool first and from the owner's global wallet (the sum of
their ledger rows) second.  The source is recorded on the check so that a
cancellation refunds the exact pool it was taken from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from flask import current_app

from errors import (
    AccessDeniedError,
    InsufficientCreditsError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from mailer import MailerError, send_check_request
from models import (
    CHECK_APPROVED,
    CHECK_CANCELLED,
    CHECK_PENDING,
    CHECK_REJECTED,
    SOURCE_GLOBAL,
    SOURCE_PROPERTY,
    TX_CHECK_USAGE,
    TX_PACK_PURCHASE,
    TX_REFUND,
    Payment,
    SolvencyCheck,
)
from services.audit import log_action
from services.invitations import ensure_provisional_user
from services.properties import owned_active_property
from services.store import Store
from services.uow import run_in_transaction
from utils import generate_token, normalise_email, to_amount, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreditPack:
    slug: str
    credits: int
    price: Decimal


CREDIT_PACKS = {
    "pack_20": CreditPack("pack_20", 20, Decimal("19.90")),
    "pack_50": CreditPack("pack_50", 50, Decimal("44.90")),
}

# Months of bank history the open-banking provider sends.
INCOME_HISTORY_MONTHS = 3
# Average monthly income must cover this many months of rent.
RENT_COVERAGE_RATIO = 3


def consume_credit(
    owner_id: int,
    property_id: int,
    candidate_email: str,
    *,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
) -> SolvencyCheck:
    """Spend one credit and open a pending solvency check for a candidate.

    Raises :class:`InsufficientCreditsError` with both balances when the
    property pool and the global wallet are empty; nothing is written then.
    """
    email = normalise_email(candidate_email)
    if not email or "@" not in email:
        raise ValidationError("a valid candidate email is required")

    def work(store: Store) -> SolvencyCheck:
        prop = owned_active_property(store, owner_id, property_id, lock=True)

        if prop.vacancy_credits > 0:
            prop.vacancy_credits = prop.vacancy_credits - 1
            source = SOURCE_PROPERTY
        else:
            # The owner row lock serialises every wallet spend for this owner.
            store.get_user_for_update(owner_id)
            balance = store.credit_balance(owner_id)
            if balance <= 0:
                raise InsufficientCreditsError(prop.vacancy_credits, balance)
            store.append_credit_transaction(
                owner_id, -1, TX_CHECK_USAGE, f"Solvency check for property {prop.id}"
            )
            source = SOURCE_GLOBAL

        candidate = ensure_provisional_user(store, email, first_name, last_name, phone)
        check = store.add(
            SolvencyCheck(
                initiator_owner_id=owner_id,
                candidate_id=candidate.id,
                candidate_email=email,
                token=generate_token(),
                property_id=prop.id,
                status=CHECK_PENDING,
                credit_source=source,
            )
        )
        log_action(store, owner_id, "consume_credit", "solvency_check", check.id,
                   f"source={source}")
        return check

    check = run_in_transaction(work)
    logger.info(
        "Solvency check %s opened on property %s by user %s (source=%s)",
        check.id, property_id, owner_id, check.credit_source,
    )
    _notify_candidate(check)
    return check


def _notify_candidate(check: SolvencyCheck) -> None:
    app_cfg = current_app.config["APP_CONFIG"]
    link = f"{app_cfg.frontend_url}/check/{check.token}"
    try:
        send_check_request(current_app.config["EMAIL_CONFIG"], check.candidate_email, link)
    except MailerError as exc:
        logger.warning("Could not email solvency check %s: %s", check.id, exc)


def cancel_check(owner_id: int, check_id: int) -> SolvencyCheck:
    """Cancel a pending check and refund its credit to where it came from."""

    def work(store: Store) -> SolvencyCheck:
        check = store.get_check_for_update(check_id)
        if check is None:
            raise NotFoundError("solvency check not found")
        if check.initiator_owner_id != owner_id:
            raise AccessDeniedError("only the initiating owner can cancel this check")
        if check.status != CHECK_PENDING:
            raise InvalidStateError(
                f"check is already {check.status}", reason="already_processed"
            )

        check.status = CHECK_CANCELLED
        check.processed_at = utc_now()
        if check.credit_source == SOURCE_PROPERTY:
            prop = store.get_property_for_update(check.property_id)
            prop.vacancy_credits = prop.vacancy_credits + 1
        else:
            store.append_credit_transaction(
                owner_id, 1, TX_REFUND, f"Refund for cancelled check {check.id}",
                check_id=check.id,
            )
        log_action(store, owner_id, "cancel_check", "solvency_check", check.id,
                   f"refund={check.credit_source}")
        return check

    check = run_in_transaction(work)
    logger.info("Solvency check %s cancelled, credit refunded to %s", check.id, check.credit_source)
    return check


def purchase_credits(owner_id: int, pack_type: str) -> int:
    """Record a credit pack purchase and return the number of credits added."""
    pack = CREDIT_PACKS.get(pack_type) if isinstance(pack_type, str) else None
    if pack is None:
        raise ValidationError(f"unknown pack type: {pack_type}", allowed=sorted(CREDIT_PACKS))

    def work(store: Store) -> int:
        if store.get_user_for_update(owner_id) is None:
            raise NotFoundError("user not found")
        tx = store.append_credit_transaction(
            owner_id, pack.credits, TX_PACK_PURCHASE, f"Purchase of {pack.slug}"
        )
        store.add(
            Payment(
                user_id=owner_id,
                amount=pack.price,
                related_entity_type="credit_pack",
                related_entity_id=tx.id,
            )
        )
        log_action(store, owner_id, "purchase_credits", "credit_transaction", tx.id, pack.slug)
        return pack.credits

    added = run_in_transaction(work)
    logger.info("User %s purchased %s (%s credits)", owner_id, pack.slug, added)
    return added


def get_global_balance(user_id: int) -> int:
    return run_in_transaction(lambda store: store.credit_balance(user_id))


def list_checks_for_owner(owner_id: int) -> list[dict]:
    def work(store: Store) -> list[dict]:
        return [check_to_dict(c) for c in store.list_checks_by_owner(owner_id)]

    return run_in_transaction(work)


def list_checks_for_property(owner_id: int, property_id: int) -> list[dict]:
    def work(store: Store) -> list[dict]:
        owned_active_property(store, owner_id, property_id)
        return [check_to_dict(c) for c in store.list_checks_by_property(property_id)]

    return run_in_transaction(work)


def get_check_by_token(token: str) -> dict:
    """Landing data shown to the candidate who follows the check link."""

    def work(store: Store) -> dict:
        check = store.get_check_by_token(token)
        if check is None:
            raise NotFoundError("check not found")
        candidate = store.get_user(check.candidate_id) if check.candidate_id else None
        prop = store.get_property(check.property_id)
        data = check_to_dict(check)
        data.update(
            candidate_first_name=candidate.first_name if candidate else None,
            candidate_last_name=candidate.last_name if candidate else None,
            property_name=prop.name,
            property_address=prop.address,
            property_rent=str(prop.rent_amount) if prop.rent_amount is not None else None,
        )
        return data

    return run_in_transaction(work)


def record_check_result(token: str, transactions: Iterable[dict]) -> SolvencyCheck:
    """Score a check from the candidate's bank transactions.

    Approved when average monthly inflow over the history window is at
    least three times the property rent.  The score is that average,
    truncated to whole currency units.
    """
    inflow = Decimal("0")
    for tx in transactions or []:
        amount = to_amount(tx.get("amount") if isinstance(tx, dict) else None)
        if amount is None:
            raise ValidationError("every transaction needs a numeric amount")
        if amount > 0:
            inflow += amount
    average = inflow / INCOME_HISTORY_MONTHS

    def work(store: Store) -> SolvencyCheck:
        check = store.get_check_by_token(token, for_update=True)
        if check is None:
            raise NotFoundError("check not found")
        if check.status != CHECK_PENDING:
            raise InvalidStateError(
                f"check is already {check.status}", reason="already_processed"
            )
        prop = store.get_property(check.property_id)
        rent = prop.rent_amount or Decimal("0")
        check.status = CHECK_APPROVED if average >= rent * RENT_COVERAGE_RATIO else CHECK_REJECTED
        check.score_result = int(average)
        check.processed_at = utc_now()
        log_action(store, None, "record_check_result", "solvency_check", check.id, check.status)
        return check

    check = run_in_transaction(work)
    logger.info("Solvency check %s processed: %s", check.id, check.status)
    return check


def check_to_dict(check: SolvencyCheck) -> dict:
    return {
        "id": check.id,
        "property_id": check.property_id,
        "initiator_owner_id": check.initiator_owner_id,
        "candidate_id": check.candidate_id,
        "candidate_email": check.candidate_email,
        "status": check.status,
        "credit_source": check.credit_source,
        "score_result": check.score_result,
        "report_url": check.report_url,
        "processed_at": check.processed_at.isoformat() if check.processed_at else None,
        "created_at": check.created_at.isoformat() if check.created_at else None,
    }
