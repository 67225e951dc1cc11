"""Stored results for create/resend calls that carry an idempotency key.

Only successful, non-preview results are stored. A repeat with the same key
and operation gets the stored result back without regenerating or sending.
"""

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import DispatchRequest


def lookup(db: Session, key: str | None, operation: str) -> dict | None:
    if not key:
        return None
    row = db.query(DispatchRequest).filter_by(key=key, operation=operation).first()
    if row:
        logger.info("Idempotent replay of {} for key {}", operation, key)
        return row.response
    return None


def remember(db: Session, key: str | None, operation: str, response: dict, user_id: int | None = None) -> None:
    if not key or not response.get("success"):
        return
    db.add(DispatchRequest(key=key, operation=operation, response=response, created_by_id=user_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Idempotency key {} already stored, keeping the first result", key)
