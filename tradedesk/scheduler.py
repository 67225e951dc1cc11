"""Background scheduler — housekeeping for the dispatch workflow.

Runs on a 5-minute tick loop. Each tick checks what needs to run:
  - Attachment sweep: every CLEANUP_INTERVAL_HOURS — deletes preview
    artifacts that were never linked to a batch
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

log = logging.getLogger("tradedesk.scheduler")

TICK_SECONDS = 300

_last_attachment_sweep = datetime.min.replace(tzinfo=timezone.utc)


async def start_scheduler():
    """Launch the background scheduler loop. Call once on app startup."""
    from .config import settings

    log.info(
        f"Background scheduler started — attachment sweep every {settings.cleanup_interval_hours}h"
    )

    # Let the app finish booting before the first tick
    await asyncio.sleep(10)

    while True:
        try:
            await _scheduler_tick()
        except Exception as e:
            log.error(f"Scheduler tick error: {e}")
        await asyncio.sleep(TICK_SECONDS)


async def _scheduler_tick(now: datetime | None = None):
    """Check what tasks need to run this tick."""
    global _last_attachment_sweep
    from .config import settings
    from .database import SessionLocal
    from .services.attachment_cleanup import sweep_orphaned_attachments
    from .services.storage import get_storage

    now = now or datetime.now(timezone.utc)
    if now - _last_attachment_sweep < timedelta(hours=settings.cleanup_interval_hours):
        return

    db = SessionLocal()
    try:
        stats = await asyncio.get_running_loop().run_in_executor(
            None, sweep_orphaned_attachments, db, get_storage()
        )
        _last_attachment_sweep = now
        log.info(f"Attachment sweep done: {stats}")
    except Exception as e:
        log.error(f"Attachment sweep error: {e}")
        db.rollback()
    finally:
        db.close()
