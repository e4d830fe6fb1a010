"""Transaction-scoped persistence gateway.

A :class:`Store` wraps the session opened by
:func:`services.uow.run_in_transaction`.  Lookups return ``None`` for
missing rows; the service layer decides which error that means.  Methods
ending in ``_for_update`` take a write-intent row lock (``SELECT ... FOR
UPDATE``) that is held until the transaction ends.
"""

from __future__ import annotations

import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import (
    INVITATION_PENDING,
    RENTAL_LONG_TERM,
    TX_INITIAL_FREE,
    AuditLog,
    CreditTransaction,
    Lease,
    LeaseInvitation,
    Property,
    SeasonalBooking,
    SolvencyCheck,
    Subscription,
    User,
)


class Store:
    def __init__(self, session: Session):
        self.session = session

    def _one(self, stmt, for_update: bool = False):
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.scalars(stmt).first()

    def add(self, obj, flush: bool = True):
        """Stage *obj* for insert; flushing assigns its primary key."""
        self.session.add(obj)
        if flush:
            self.session.flush()
        return obj

    def flush(self) -> None:
        self.session.flush()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_user_for_update(self, user_id: int) -> Optional[User]:
        """Lock the user row; it guards the wallet and the one-time bonus."""
        return self._one(select(User).where(User.id == user_id), for_update=True)

    def get_user_by_email(self, email: str, for_update: bool = False) -> Optional[User]:
        stmt = select(User).where(User.email == email.strip().lower())
        return self._one(stmt, for_update=for_update)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    def get_property(self, property_id: int) -> Optional[Property]:
        return self.session.get(Property, property_id)

    def get_property_for_update(self, property_id: int) -> Optional[Property]:
        return self._one(select(Property).where(Property.id == property_id), for_update=True)

    def count_active_properties(self, owner_id: int, rental_type: Optional[str] = None) -> int:
        stmt = (
            select(func.count())
            .select_from(Property)
            .where(Property.owner_id == owner_id, Property.is_active.is_(True))
        )
        if rental_type:
            stmt = stmt.where(Property.rental_type == rental_type)
        return self.session.scalar(stmt) or 0

    def count_active_long_term_properties(self, owner_id: int) -> int:
        return self.count_active_properties(owner_id, RENTAL_LONG_TERM)

    def list_active_properties(self, owner_id: int) -> list[Property]:
        stmt = (
            select(Property)
            .where(Property.owner_id == owner_id, Property.is_active.is_(True))
            .order_by(Property.created_at.desc(), Property.id.desc())
        )
        return list(self.session.scalars(stmt))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def get_subscription(self, user_id: int, for_update: bool = False) -> Optional[Subscription]:
        """Return the user's subscription row in any status."""
        stmt = select(Subscription).where(Subscription.user_id == user_id)
        return self._one(stmt, for_update=for_update)

    def get_active_subscription(
        self, user_id: int, for_update: bool = False
    ) -> Optional[Subscription]:
        stmt = select(Subscription).where(
            Subscription.user_id == user_id, Subscription.status == "active"
        )
        return self._one(stmt, for_update=for_update)

    # ------------------------------------------------------------------
    # Credit ledger
    # ------------------------------------------------------------------

    def credit_balance(self, user_id: int) -> int:
        """Global wallet balance, derived from the ledger."""
        stmt = select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
            CreditTransaction.user_id == user_id
        )
        return int(self.session.scalar(stmt) or 0)

    def append_credit_transaction(
        self,
        user_id: int,
        amount: int,
        transaction_type: str,
        description: str = "",
        check_id: Optional[int] = None,
    ) -> CreditTransaction:
        return self.add(
            CreditTransaction(
                user_id=user_id,
                amount=amount,
                transaction_type=transaction_type,
                description=description,
                check_id=check_id,
            )
        )

    def has_received_bonus(self, user_id: int) -> bool:
        stmt = (
            select(CreditTransaction.id)
            .where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.transaction_type == TX_INITIAL_FREE,
            )
            .limit(1)
        )
        return self.session.scalar(stmt) is not None

    def list_credit_transactions(self, user_id: int) -> list[CreditTransaction]:
        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.id)
        )
        return list(self.session.scalars(stmt))

    # ------------------------------------------------------------------
    # Solvency checks
    # ------------------------------------------------------------------

    def get_check_for_update(self, check_id: int) -> Optional[SolvencyCheck]:
        return self._one(select(SolvencyCheck).where(SolvencyCheck.id == check_id), for_update=True)

    def get_check_by_token(self, token: str, for_update: bool = False) -> Optional[SolvencyCheck]:
        return self._one(select(SolvencyCheck).where(SolvencyCheck.token == token), for_update)

    def list_checks_by_owner(self, owner_id: int) -> list[SolvencyCheck]:
        stmt = (
            select(SolvencyCheck)
            .where(SolvencyCheck.initiator_owner_id == owner_id)
            .order_by(SolvencyCheck.created_at.desc(), SolvencyCheck.id.desc())
        )
        return list(self.session.scalars(stmt))

    def list_checks_by_property(self, property_id: int) -> list[SolvencyCheck]:
        stmt = (
            select(SolvencyCheck)
            .where(SolvencyCheck.property_id == property_id)
            .order_by(SolvencyCheck.created_at.desc(), SolvencyCheck.id.desc())
        )
        return list(self.session.scalars(stmt))

    # ------------------------------------------------------------------
    # Invitations & leases
    # ------------------------------------------------------------------

    def get_invitation_by_token(
        self, token: str, for_update: bool = False
    ) -> Optional[LeaseInvitation]:
        stmt = select(LeaseInvitation).where(LeaseInvitation.token == token)
        return self._one(stmt, for_update=for_update)

    def list_stale_invitations_for_update(self, now: datetime.datetime) -> list[LeaseInvitation]:
        stmt = (
            select(LeaseInvitation)
            .where(
                LeaseInvitation.status == INVITATION_PENDING,
                LeaseInvitation.expires_at < now,
            )
            .with_for_update()
        )
        return list(self.session.scalars(stmt))

    def get_lease(self, lease_id: int, for_update: bool = False) -> Optional[Lease]:
        return self._one(select(Lease).where(Lease.id == lease_id), for_update=for_update)

    def list_leases_by_tenant(self, tenant_id: int) -> list[Lease]:
        stmt = select(Lease).where(Lease.tenant_id == tenant_id).order_by(Lease.start_date.desc())
        return list(self.session.scalars(stmt).unique())

    def list_leases_by_property(self, property_id: int) -> list[Lease]:
        stmt = (
            select(Lease).where(Lease.property_id == property_id).order_by(Lease.start_date.desc())
        )
        return list(self.session.scalars(stmt).unique())

    def count_leases_by_tenant(self, tenant_id: int) -> int:
        stmt = select(func.count()).select_from(Lease).where(Lease.tenant_id == tenant_id)
        return self.session.scalar(stmt) or 0

    def count_bookings_by_tenant(self, tenant_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(SeasonalBooking)
            .where(SeasonalBooking.tenant_id == tenant_id)
        )
        return self.session.scalar(stmt) or 0

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def add_audit_entry(self, entry: AuditLog) -> None:
        """Stage an audit row; it commits or rolls back with the change."""
        self.session.add(entry)
