"""Reclaim preview artifacts nobody linked to a batch.

Attachments with no batch_id older than ATTACHMENT_GRACE_DAYS are removed:
blob first, then the row. A blob that fails to delete keeps its row so the
next sweep retries it.
"""

from datetime import datetime, timedelta, timezone

from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import StorageError
from ..models import Attachment
from .storage import ObjectStorage


def sweep_orphaned_attachments(
    db: Session,
    storage: ObjectStorage,
    grace_days: int | None = None,
    now: datetime | None = None,
) -> dict:
    grace_days = settings.attachment_grace_days if grace_days is None else grace_days
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=grace_days)

    orphans = (
        db.query(Attachment)
        .filter(Attachment.batch_id.is_(None), Attachment.created_at < cutoff)
        .order_by(Attachment.id)
        .all()
    )
    deleted, failed = 0, 0
    for att in orphans:
        try:
            storage.delete(att.storage_key)
        except StorageError as e:
            failed += 1
            logger.warning("Orphaned attachment {} ({}) kept: {}", att.id, att.storage_key, e)
            continue
        db.delete(att)
        deleted += 1
    db.commit()

    if orphans:
        logger.info("Attachment sweep: {} deleted, {} failed (cutoff {})", deleted, failed, cutoff.date())
    return {"deleted": deleted, "failed": failed}
