"""
dispatch_transactor.py — The one serializable unit of work per dispatch

Re-validates the requested inquiries, stamps them, and writes the batch
with its line links in a single transaction at DISPATCH_ISOLATION_LEVEL.
Either everything commits or nothing does.

Business Rules:
- Any snapshot the session already holds is committed away first so the
  re-check sees current state
- Requested inquiries are re-selected under the eligibility predicate
  (FOR UPDATE where the database supports it); if even one is gone the
  whole dispatch fails with TransactionConflictError
- to_supplier stamps to_supplier_date; to_customer moves the inquiry to
  SUBMITTED and stamps offer_submission_date
- The batch starts with both delivery flags false; only the fan-out
  outcome sets them
- Serialization failures, deadlocks and unique violations on
  (inquiry_id, direction) roll back and surface as TransactionConflictError

Called by: services/dispatch_service.py
Depends on: services/eligibility.py, services/status_registry.py, models
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import DispatchError, NoEligibleItemsError, TransactionConflictError
from ..models import BatchLineLink, DispatchBatch, DispatchDirection
from .eligibility import eligible_query
from .status_registry import get_status_registry


@dataclass
class DispatchIntent:
    direction: DispatchDirection
    counterparty_id: int
    inquiry_ids: list[int]
    user_id: int
    site_id: int | None = None
    pr_number_and_name: str | None = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _begin_isolated(db: Session) -> None:
    if db.in_transaction():
        db.commit()
    db.connection(execution_options={"isolation_level": settings.dispatch_isolation_level})


def commit_dispatch(db: Session, intent: DispatchIntent) -> int:
    """Lock, stamp and record the batch. Returns the new batch id."""
    direction = DispatchDirection(intent.direction)
    registry = get_status_registry(db)
    requested = set(intent.inquiry_ids)
    if not requested:
        raise NoEligibleItemsError()

    try:
        _begin_isolated(db)

        inquiries = (
            eligible_query(
                db,
                direction,
                intent.counterparty_id,
                inquiry_ids=list(requested),
                site_id=intent.site_id,
                pr_number_and_name=intent.pr_number_and_name,
                registry=registry,
            )
            .with_for_update()
            .all()
        )
        if {inq.id for inq in inquiries} != requested:
            stale = sorted(requested - {inq.id for inq in inquiries})
            logger.warning("Dispatch {} conflict: inquiries {} no longer eligible", direction.value, stale)
            raise TransactionConflictError()

        for inq in inquiries:
            if direction == DispatchDirection.TO_SUPPLIER:
                inq.to_supplier_date = intent.now
            else:
                inq.status_id = registry.submitted_id
                inq.offer_submission_date = intent.now
            inq.updated_by_id = intent.user_id

        batch = DispatchBatch(
            direction=direction.value,
            counterparty_id=intent.counterparty_id,
            site_id=intent.site_id,
            pr_number_and_name=intent.pr_number_and_name,
            email_sent=False,
            message_sent=False,
            created_by_id=intent.user_id,
            updated_by_id=intent.user_id,
            created_at=intent.now,
            updated_at=intent.now,
        )
        db.add(batch)
        db.flush()
        for inq in inquiries:
            db.add(BatchLineLink(batch_id=batch.id, inquiry_id=inq.id, direction=direction.value))
        db.commit()
    except (IntegrityError, OperationalError) as e:
        db.rollback()
        logger.warning("Dispatch {} rolled back: {}", direction.value, e.__class__.__name__)
        raise TransactionConflictError() from e
    except DispatchError:
        db.rollback()
        raise

    logger.info(
        "Dispatch batch {} committed: {} {} inquiries for counterparty {}",
        batch.id,
        len(inquiries),
        direction.value,
        intent.counterparty_id,
    )
    return batch.id
