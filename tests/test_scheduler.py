"""
test_scheduler.py — Tests for the background tick loop

_scheduler_tick() opens its own SessionLocal(), so we patch
tradedesk.database.SessionLocal to hand back the test DB session with
close() disabled.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from tradedesk import scheduler
from tradedesk.models import Attachment

# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture()
def scheduler_db(db_session: Session, storage):
    original_close = db_session.close
    db_session.close = lambda: None
    with patch("tradedesk.database.SessionLocal", return_value=db_session), patch(
        "tradedesk.services.storage.get_storage", return_value=storage
    ):
        yield db_session
    db_session.close = original_close


@pytest.fixture(autouse=True)
def _reset_last_sweep():
    scheduler._last_attachment_sweep = datetime.min.replace(tzinfo=timezone.utc)
    yield
    scheduler._last_attachment_sweep = datetime.min.replace(tzinfo=timezone.utc)


def _orphan(db, storage, age_days, now):
    key = f"documents/{age_days}/preview.pdf"
    db.add(
        Attachment(
            filename="preview.pdf",
            storage_key=key,
            url=storage.put(key, b"x"),
            created_at=now - timedelta(days=age_days),
        )
    )
    db.commit()


# ── Tick ───────────────────────────────────────────────────────────────


async def test_first_tick_sweeps(scheduler_db, storage):
    now = datetime.now(timezone.utc)
    _orphan(scheduler_db, storage, 60, now)

    await scheduler._scheduler_tick(now)

    assert scheduler_db.query(Attachment).count() == 0
    assert scheduler._last_attachment_sweep == now


async def test_tick_waits_for_interval(scheduler_db, storage):
    now = datetime.now(timezone.utc)
    scheduler._last_attachment_sweep = now - timedelta(hours=1)
    _orphan(scheduler_db, storage, 60, now)

    await scheduler._scheduler_tick(now)

    assert scheduler_db.query(Attachment).count() == 1


async def test_sweep_error_is_logged_not_raised(scheduler_db):
    with patch(
        "tradedesk.services.attachment_cleanup.sweep_orphaned_attachments",
        side_effect=RuntimeError("boom"),
    ):
        await scheduler._scheduler_tick(datetime.now(timezone.utc))

    assert scheduler._last_attachment_sweep == datetime.min.replace(tzinfo=timezone.utc)
