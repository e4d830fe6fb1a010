"""Audit logging service."""

from __future__ import annotations

from typing import Optional

from models import AuditLog
from services.store import Store


def log_action(
    store: Store,
    user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int],
    details: str = "",
) -> None:
    """Record an audit log entry.

    NOTE: This does NOT commit; the entry belongs to *store*'s transaction
    and disappears with it on rollback.
    """
    store.add_audit_entry(
        AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )
    )
