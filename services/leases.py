"""Read access to leases for tenants and property owners."""

from __future__ import annotations

from errors import AccessDeniedError
from models import Lease
from services.properties import owned_active_property
from services.store import Store
from services.uow import run_in_transaction


def lease_to_dict(lease: Lease) -> dict:
    def money(value):
        return str(value) if value is not None else None

    prop = lease.property
    return {
        "id": lease.id,
        "property_id": lease.property_id,
        "property_name": prop.name if prop else None,
        "property_address": prop.address if prop else None,
        "tenant_id": lease.tenant_id,
        "start_date": lease.start_date.isoformat() if lease.start_date else None,
        "end_date": lease.end_date.isoformat() if lease.end_date else None,
        "rent_amount": money(lease.rent_amount),
        "charges_amount": money(lease.charges_amount),
        "deposit_amount": money(lease.deposit_amount),
        "payment_day": lease.payment_day,
        "special_clauses": lease.special_clauses or [],
        "lease_status": lease.lease_status,
    }


def list_leases_for_tenant(tenant_id: int) -> list[dict]:
    def work(store: Store) -> list[dict]:
        return [lease_to_dict(lease) for lease in store.list_leases_by_tenant(tenant_id)]

    return run_in_transaction(work)


def list_leases_for_property(owner_id: int, property_id: int) -> list[dict]:
    def work(store: Store) -> list[dict]:
        owned_active_property(store, owner_id, property_id)
        return [lease_to_dict(lease) for lease in store.list_leases_by_property(property_id)]

    return run_in_transaction(work)


def get_lease(user_id: int, lease_id: int) -> dict:
    """A lease is visible to its tenant and to the owner of its property."""

    def work(store: Store) -> dict:
        lease = store.get_lease(lease_id)
        if lease is None or (
            lease.tenant_id != user_id and lease.property.owner_id != user_id
        ):
            raise AccessDeniedError("lease not found or access denied")
        return lease_to_dict(lease)

    return run_in_transaction(work)
