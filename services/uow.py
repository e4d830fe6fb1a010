"""Unit of work: one database transaction per multi-step operation."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from errors import ConflictError, InfrastructureError
from extensions import db
from services.store import Store

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_in_transaction(work: Callable[[Store], T]) -> T:
    """Run *work* against a transaction-scoped :class:`Store`.

    Commits when *work* returns and rolls back on any exception, including
    ``KeyboardInterrupt`` and other ``BaseException`` subclasses.  Database
    failures are re-raised as domain errors: integrity violations become
    :class:`ConflictError`, anything else from the driver becomes
    :class:`InfrastructureError`.

    The session is private to this call and never shared with
    ``db.session``; returned objects stay readable after it closes.
    """
    session = Session(bind=db.engine, expire_on_commit=False)
    try:
        result = work(Store(session))
        session.commit()
        return result
    except IntegrityError as exc:
        session.rollback()
        logger.warning("Transaction rolled back on integrity violation: %s", exc.orig)
        raise ConflictError("conflicting write, the resource already exists") from exc
    except DBAPIError as exc:
        session.rollback()
        logger.error("Transaction rolled back on database failure: %s", exc.orig)
        raise InfrastructureError("persistence failure, retry may help") from exc
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()
