"""
dependencies.py — Shared FastAPI Dependencies

Authentication and the injectable collaborators of the dispatch workflow
(object storage, mail and WhatsApp senders). Tests override these through
app.dependency_overrides.

Business Rules:
- get_user returns None if not logged in (non-throwing)
- require_user raises 401 if not logged in, 403 if deactivated

Called by: routers/dispatch.py
Depends on: models, database, services/storage.py, services/mail_sender.py, services/whatsapp.py
"""

import logging

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .database import get_db
from .models import User
from .services.mail_sender import MailSender, get_mail_sender
from .services.storage import ObjectStorage, get_storage
from .services.whatsapp import MessageSender, get_message_sender

log = logging.getLogger("tradedesk.dependencies")


# ── Authentication ────────────────────────────────────────────────────


def get_user(request: Request, db: Session) -> User | None:
    """Return current user from session, or None if not logged in."""
    uid = request.session.get("user_id")
    if not uid:
        return None
    try:
        return db.get(User, int(uid))
    except (TypeError, ValueError):
        request.session.clear()
        return None


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency: raises 401 if no authenticated user, 403 if deactivated."""
    user = get_user(request, db)
    if not user:
        raise HTTPException(401, "Not authenticated")
    if not user.is_active:
        request.session.clear()
        raise HTTPException(403, "Account deactivated — contact admin")
    return user


# ── Collaborators ─────────────────────────────────────────────────────


def storage_dep() -> ObjectStorage:
    return get_storage()


def mail_sender_dep() -> MailSender:
    return get_mail_sender()


def message_sender_dep() -> MessageSender:
    return get_message_sender()
