"""SQLAlchemy models and ledger vocabularies."""

from __future__ import annotations

from extensions import db
from utils import utc_now

# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------

CONTEXT_OWNER = "owner"
CONTEXT_TENANT = "tenant"
CONTEXT_NONE = "none"
VALID_CONTEXTS = {CONTEXT_OWNER, CONTEXT_TENANT}

RENTAL_LONG_TERM = "long_term"
RENTAL_SEASONAL = "seasonal"
VALID_RENTAL_TYPES = {RENTAL_LONG_TERM, RENTAL_SEASONAL}

VALID_FREQUENCIES = {"monthly", "yearly"}

TX_PLAN_PURCHASE = "plan_purchase"
TX_PACK_PURCHASE = "pack_purchase"
TX_CHECK_USAGE = "check_usage"
TX_INITIAL_FREE = "initial_free"
TX_REFUND = "refund"

CHECK_PENDING = "pending"
CHECK_APPROVED = "approved"
CHECK_REJECTED = "rejected"
CHECK_CANCELLED = "cancelled"

SOURCE_PROPERTY = "property"
SOURCE_GLOBAL = "global"

INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"
INVITATION_EXPIRED = "expired"


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------

class User(db.Model):
    """A person; owner or tenant is decided per request, not per row.

    Provisional rows are created when someone is invited (or vetted) before
    registering. Registration promotes the same row so leases and checks
    already pointing at it stay valid.
    """
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255))  # NULL while provisional
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    phone_number = db.Column(db.String(30))
    is_provisional = db.Column(db.Boolean, nullable=False, default=False)
    last_context_used = db.Column(db.String(20), default=CONTEXT_OWNER)
    initial_bonus_granted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


# ---------------------------------------------------------------------------
# Subscription
# ---------------------------------------------------------------------------

class Subscription(db.Model):
    """The user's current plan; re-subscribing rewrites this row."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), unique=True, nullable=False)
    plan_type = db.Column(db.String(20), nullable=False)
    frequency = db.Column(db.String(20), default="monthly")
    status = db.Column(db.String(20), nullable=False, default="active")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date)
    max_properties_limit = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)


# ---------------------------------------------------------------------------
# Property
# ---------------------------------------------------------------------------

class Property(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    name = db.Column(db.String(200))
    address = db.Column(db.Text, nullable=False)
    rental_type = db.Column(db.String(20), nullable=False)
    details = db.Column(db.JSON)
    rent_amount = db.Column(db.Numeric(10, 2, asdecimal=True))
    charges_amount = db.Column(db.Numeric(10, 2, asdecimal=True), default=0)
    deposit_amount = db.Column(db.Numeric(10, 2, asdecimal=True))
    is_furnished = db.Column(db.Boolean, default=False)
    seasonal_price_per_night = db.Column(db.Numeric(10, 2, asdecimal=True))
    vacancy_credits = db.Column(db.Integer, nullable=False, default=20)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)

    __table_args__ = (
        db.CheckConstraint("vacancy_credits >= 0", name="ck_property_credits_non_negative"),
        db.Index("ix_property_owner_type_active", "owner_id", "rental_type", "is_active"),
    )


# ---------------------------------------------------------------------------
# Credit ledger
# ---------------------------------------------------------------------------

class CreditTransaction(db.Model):
    """Append-only wallet movement. A user's balance is SUM(amount)."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    transaction_type = db.Column(db.String(30), nullable=False)
    description = db.Column(db.Text)
    check_id = db.Column(db.Integer, db.ForeignKey("solvency_check.id"))
    created_at = db.Column(db.DateTime, default=utc_now)


class SolvencyCheck(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    initiator_owner_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    candidate_id = db.Column(db.Integer, db.ForeignKey("user.id"))
    candidate_email = db.Column(db.String(255), nullable=False)
    token = db.Column(db.String(128), unique=True, nullable=False)
    property_id = db.Column(db.Integer, db.ForeignKey("property.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=CHECK_PENDING)
    credit_source = db.Column(db.String(20), nullable=False)
    score_result = db.Column(db.Integer)
    report_url = db.Column(db.String(255))
    processed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utc_now)


# ---------------------------------------------------------------------------
# Leases & invitations
# ---------------------------------------------------------------------------

class Lease(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey("property.id"), nullable=False, index=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("user.id"), index=True)  # NULL for drafts
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date)
    rent_amount = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)
    charges_amount = db.Column(db.Numeric(10, 2, asdecimal=True), default=0)
    deposit_amount = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)
    payment_day = db.Column(db.Integer, default=5)
    special_clauses = db.Column(db.JSON)
    lease_status = db.Column(db.String(30), nullable=False, default="draft")
    created_at = db.Column(db.DateTime, default=utc_now)

    property = db.relationship("Property", lazy="joined", innerjoin=True)


class LeaseInvitation(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey("property.id"), nullable=False)
    lease_id = db.Column(db.Integer, db.ForeignKey("lease.id"))
    owner_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    tenant_email = db.Column(db.String(255), nullable=False)
    token = db.Column(db.String(128), unique=True, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=INVITATION_PENDING)
    expires_at = db.Column(db.DateTime, nullable=False)
    accepted_by_id = db.Column(db.Integer, db.ForeignKey("user.id"))
    accepted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utc_now)

    __table_args__ = (
        db.Index("ix_lease_invitation_status_expiry", "status", "expires_at"),
    )


class SeasonalBooking(db.Model):
    """Holiday stay; counts toward the guest's tenant capability."""
    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey("property.id"), nullable=False)
    tenant_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    check_in_date = db.Column(db.Date, nullable=False)
    check_out_date = db.Column(db.Date, nullable=False)
    total_amount = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)
    booking_status = db.Column(db.String(30), default="confirmed")
    created_at = db.Column(db.DateTime, default=utc_now)


# ---------------------------------------------------------------------------
# Payments & audit
# ---------------------------------------------------------------------------

class Payment(db.Model):
    """Money recorded for a plan or credit pack. Nothing is charged."""
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)
    currency = db.Column(db.String(10), default="EUR")
    related_entity_type = db.Column(db.String(40), nullable=False)
    related_entity_id = db.Column(db.Integer)
    status = db.Column(db.String(30), default="recorded")
    created_at = db.Column(db.DateTime, default=utc_now)


class AuditLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"))
    action = db.Column(db.String(80), nullable=False)
    entity_type = db.Column(db.String(80), nullable=False)
    entity_id = db.Column(db.Integer)
    details = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utc_now)

    __table_args__ = (
        db.Index("ix_audit_log_created_at", "created_at"),
        db.Index("ix_audit_log_entity", "entity_type", "entity_id"),
    )
