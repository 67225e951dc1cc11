"""
test_attachment_cleanup.py — Tests for services/attachment_cleanup.py

Called by: pytest
Depends on: tradedesk/services/attachment_cleanup.py, conftest.py
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from tradedesk.exceptions import StorageError
from tradedesk.models import Attachment, DispatchBatch
from tradedesk.services.attachment_cleanup import sweep_orphaned_attachments

NOW = datetime(2026, 4, 1, tzinfo=timezone.utc)


def _attachment(db, storage, key, age_days, batch_id=None):
    url = storage.put(key, b"blob")
    att = Attachment(
        filename=key.rsplit("/", 1)[-1],
        storage_key=key,
        url=url,
        batch_id=batch_id,
        created_at=NOW - timedelta(days=age_days),
    )
    db.add(att)
    db.commit()
    return att


def test_old_previews_are_removed(db_session, storage, supplier, test_user):
    batch = DispatchBatch(direction="to_supplier", counterparty_id=supplier.id, created_by_id=test_user.id)
    db_session.add(batch)
    db_session.commit()
    old = _attachment(db_session, storage, "documents/a/old.pdf", 45)
    recent = _attachment(db_session, storage, "documents/b/recent.pdf", 3)
    linked = _attachment(db_session, storage, "documents/c/linked.pdf", 90, batch_id=batch.id)

    stats = sweep_orphaned_attachments(db_session, storage, grace_days=30, now=NOW)

    assert stats == {"deleted": 1, "failed": 0}
    remaining = {a.id for a in db_session.query(Attachment)}
    assert remaining == {recent.id, linked.id}
    assert old.id not in remaining
    assert storage.get("documents/c/linked.pdf") == b"blob"


def test_failed_blob_delete_keeps_row(db_session, storage):
    _attachment(db_session, storage, "documents/a/old.pdf", 45)
    broken = MagicMock()
    broken.delete.side_effect = StorageError("bucket unreachable")

    stats = sweep_orphaned_attachments(db_session, broken, grace_days=30, now=NOW)

    assert stats == {"deleted": 0, "failed": 1}
    assert db_session.query(Attachment).count() == 1


def test_nothing_to_sweep(db_session, storage):
    assert sweep_orphaned_attachments(db_session, storage, now=NOW) == {"deleted": 0, "failed": 0}
