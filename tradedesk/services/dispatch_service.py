"""
dispatch_service.py — Create, preview, resend and browse dispatch batches

Orchestrates the workflow for both directions:

  create:  select eligible -> render in memory -> commit (serializable)
           -> upload + register attachments -> fan-out -> record outcome
  preview: select eligible -> render -> upload + register (no batch)
  resend:  load original lines -> render -> upload + register -> fan-out
           -> append resend history

Business Rules:
- No eligible inquiries -> {success: false, message: "No inquiries"}
- A conflicting concurrent dispatch fails the whole request with the
  conflict message; nothing is committed and nothing is uploaded
- Preview never touches inquiries or batches
- Resend never changes line links or inquiry state; supplier resends skip
  lines already answered, closed or cancelled
- Batch delivery flags reflect what actually happened, not what was asked

Called by: routers/dispatch.py
Depends on: eligibility, document_service, dispatch_transactor, notifications,
            idempotency, storage
"""

from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import and_, exists, func
from sqlalchemy.orm import Session, joinedload, selectinload

from ..exceptions import NoEligibleItemsError, NotFoundError, TransactionConflictError
from ..models import (
    Attachment,
    BatchLineLink,
    DispatchBatch,
    DispatchDirection,
    Inquiry,
    ResendHistoryEntry,
    User,
)
from ..schemas.dispatch import CreateDispatchRequest, ResendDispatchRequest
from . import idempotency
from .directions import profile_for
from .dispatch_transactor import DispatchIntent, commit_dispatch
from .document_service import generate_documents, register_artifacts
from .eligibility import eligible_inquiries, resend_clauses, serialize_eligible
from .mail_sender import MailSender
from .notifications import FanOutRequest, fan_out
from .status_registry import get_status_registry
from .storage import ObjectStorage
from .whatsapp import MessageSender


def _failure(message: str) -> dict:
    return {"success": False, "message": message}


def _counterparty_name(db: Session, direction: DispatchDirection, counterparty_id: int) -> str:
    party = db.get(profile_for(direction).counterparty_model, counterparty_id)
    return party.name if party else ""


async def create_dispatch(
    db: Session,
    direction: DispatchDirection | str,
    req: CreateDispatchRequest,
    user: User,
    storage: ObjectStorage,
    mail_sender: MailSender,
    message_sender: MessageSender,
) -> dict:
    """CreateDispatch (or its preview) for one counterparty."""
    try:
        return await _create(db, direction, req, user, storage, mail_sender, message_sender)
    except (NoEligibleItemsError, TransactionConflictError) as e:
        return _failure(e.message)


async def _create(db, direction, req, user, storage, mail_sender, message_sender) -> dict:
    direction = DispatchDirection(direction)
    operation = f"create:{direction.value}"

    if not req.preview:
        stored = idempotency.lookup(db, req.idempotency_key, operation)
        if stored is not None:
            return stored

    inquiries = eligible_inquiries(
        db,
        direction,
        req.counterparty_id,
        inquiry_ids=req.inquiry_ids,
        site_id=req.site_id,
        pr_number_and_name=req.pr_number_and_name,
    )
    if not inquiries:
        raise NoEligibleItemsError()

    now = datetime.now(timezone.utc)
    counterparty_name = _counterparty_name(db, direction, req.counterparty_id)
    documents = await generate_documents(
        direction,
        inquiries,
        counterparty_name=counterparty_name,
        timezone_offset_minutes=req.timezone_offset_minutes,
        storage=storage,
        now=now,
    )

    if req.preview:
        spreadsheet_url, pdf_url = register_artifacts(db, storage, documents)
        logger.info("Preview {} for counterparty {}: {} rows", direction.value, req.counterparty_id, len(inquiries))
        return {"success": True, "spreadsheetUrl": spreadsheet_url, "pdfUrl": pdf_url}

    batch_id = commit_dispatch(
        db,
        DispatchIntent(
            direction=direction,
            counterparty_id=req.counterparty_id,
            inquiry_ids=[inq.id for inq in inquiries],
            user_id=user.id,
            site_id=req.site_id,
            pr_number_and_name=req.pr_number_and_name,
            now=now,
        ),
    )

    spreadsheet_url, pdf_url = register_artifacts(db, storage, documents, batch_id=batch_id)

    result = await fan_out(
        db,
        FanOutRequest(
            direction=direction,
            batch_id=batch_id,
            user=user,
            inquiries=inquiries,
            counterparty_name=counterparty_name,
            documents=documents,
            spreadsheet_url=spreadsheet_url,
            pdf_url=pdf_url,
            email=req.email,
            message=req.message,
            external_emails=[str(e) for e in req.external_emails],
            external_numbers=req.external_numbers,
            remarks=req.remarks,
        ),
        mail_sender,
        message_sender,
    )

    batch = db.get(DispatchBatch, batch_id)
    batch.email_sent = result.email_sent
    batch.message_sent = result.message_sent
    db.commit()

    response = {
        "success": True,
        "spreadsheetUrl": spreadsheet_url,
        "pdfUrl": pdf_url,
        "batchId": batch_id,
        "emailSent": result.email_sent,
        "messageSent": result.message_sent,
    }
    idempotency.remember(db, req.idempotency_key, operation, response, user.id)
    return response


def batch_inquiries(db: Session, batch: DispatchBatch, *, only_resendable: bool = False) -> list[Inquiry]:
    """The batch's original lines in insertion order."""
    q = (
        db.query(Inquiry)
        .join(BatchLineLink, BatchLineLink.inquiry_id == Inquiry.id)
        .filter(BatchLineLink.batch_id == batch.id)
    )
    if only_resendable:
        q = q.filter(*resend_clauses(get_status_registry(db)))
    return (
        q.options(
            joinedload(Inquiry.representative),
            joinedload(Inquiry.site),
            joinedload(Inquiry.sales_unit),
            joinedload(Inquiry.purchase_unit),
        )
        .order_by(Inquiry.created_at.asc(), Inquiry.id.asc())
        .all()
    )


async def resend_dispatch(
    db: Session,
    direction: DispatchDirection | str,
    req: ResendDispatchRequest,
    user: User,
    storage: ObjectStorage,
    mail_sender: MailSender,
    message_sender: MessageSender,
) -> dict:
    """Regenerate the batch's documents and deliver them again."""
    try:
        return await _resend(db, direction, req, user, storage, mail_sender, message_sender)
    except NoEligibleItemsError as e:
        return _failure(e.message)


async def _resend(db, direction, req, user, storage, mail_sender, message_sender) -> dict:
    direction = DispatchDirection(direction)
    operation = f"resend:{direction.value}"

    stored = idempotency.lookup(db, req.idempotency_key, operation)
    if stored is not None:
        return stored

    batch = db.get(DispatchBatch, req.batch_id)
    if not batch or batch.direction != direction.value:
        raise NotFoundError("DispatchBatch", req.batch_id)

    inquiries = batch_inquiries(
        db, batch, only_resendable=direction == DispatchDirection.TO_SUPPLIER
    )
    if not inquiries:
        raise NoEligibleItemsError()

    now = datetime.now(timezone.utc)
    counterparty_name = _counterparty_name(db, direction, batch.counterparty_id)
    documents = await generate_documents(
        direction,
        inquiries,
        counterparty_name=counterparty_name,
        timezone_offset_minutes=req.timezone_offset_minutes,
        storage=storage,
        now=now,
    )
    spreadsheet_url, pdf_url = register_artifacts(db, storage, documents, batch_id=batch.id)

    result = await fan_out(
        db,
        FanOutRequest(
            direction=direction,
            batch_id=batch.id,
            user=user,
            inquiries=inquiries,
            counterparty_name=counterparty_name,
            documents=documents,
            spreadsheet_url=spreadsheet_url,
            pdf_url=pdf_url,
            email=req.email,
            message=req.message,
            external_emails=[str(e) for e in req.external_emails],
            external_numbers=req.external_numbers,
            resend=True,
        ),
        mail_sender,
        message_sender,
    )

    db.add(
        ResendHistoryEntry(
            batch_id=batch.id,
            email_sent=result.email_sent,
            message_sent=result.message_sent,
            created_by_id=user.id,
            created_at=now,
        )
    )
    batch.last_resend_at = now
    batch.updated_by_id = user.id
    db.commit()
    logger.info("Batch {} resent by user {} ({} lines)", batch.id, user.id, len(inquiries))

    response = {
        "success": True,
        "spreadsheetUrl": spreadsheet_url,
        "pdfUrl": pdf_url,
        "batchId": batch.id,
        "emailSent": result.email_sent,
        "messageSent": result.message_sent,
    }
    idempotency.remember(db, req.idempotency_key, operation, response, user.id)
    return response


# ── Browsing ────────────────────────────────────────────────────────


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def _awaiting_offer(registry):
    return exists().where(
        and_(
            BatchLineLink.batch_id == DispatchBatch.id,
            BatchLineLink.inquiry_id == Inquiry.id,
            *resend_clauses(registry),
        )
    )


def list_batches(
    db: Session,
    direction: DispatchDirection | str,
    counterparty_id: int | None = None,
    created_by_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    show_fulfilled: bool = False,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """Newest-first page of batches for one direction."""
    direction = DispatchDirection(direction)
    q = db.query(DispatchBatch).filter(DispatchBatch.direction == direction.value)
    if counterparty_id is not None:
        q = q.filter(DispatchBatch.counterparty_id == counterparty_id)
    if created_by_id is not None:
        q = q.filter(DispatchBatch.created_by_id == created_by_id)
    if start is not None:
        q = q.filter(DispatchBatch.created_at >= start)
    if end is not None:
        q = q.filter(DispatchBatch.created_at <= end)
    if direction == DispatchDirection.TO_SUPPLIER and not show_fulfilled:
        q = q.filter(_awaiting_offer(get_status_registry(db)))

    total = q.count()
    page, limit = max(1, page), max(1, min(limit, 100))
    batches = (
        q.options(
            selectinload(DispatchBatch.lines),
            selectinload(DispatchBatch.resend_history),
            joinedload(DispatchBatch.created_by),
        )
        .order_by(DispatchBatch.created_at.desc(), DispatchBatch.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    model = profile_for(direction).counterparty_model
    party_ids = {b.counterparty_id for b in batches}
    names = (
        dict(db.query(model.id, model.name).filter(model.id.in_(party_ids)).all())
        if party_ids
        else {}
    )

    return {
        "items": [
            {
                "id": b.id,
                "direction": b.direction,
                "counterparty": {"id": b.counterparty_id, "name": names.get(b.counterparty_id)},
                "pr_number_and_name": b.pr_number_and_name,
                "email_sent": b.email_sent,
                "message_sent": b.message_sent,
                "line_count": len(b.lines),
                "resend_count": len(b.resend_history),
                "last_resend_at": _iso(b.last_resend_at),
                "created_by": b.created_by.name if b.created_by else None,
                "created_at": _iso(b.created_at),
            }
            for b in batches
        ],
        "total": total,
        "page": page,
        "limit": limit,
    }


def get_batch(db: Session, batch_id: int) -> dict:
    batch = db.get(DispatchBatch, batch_id)
    if not batch:
        raise NotFoundError("DispatchBatch", batch_id)

    direction = DispatchDirection(batch.direction)
    lines = batch_inquiries(db, batch)
    attachments = (
        db.query(Attachment)
        .filter(Attachment.batch_id == batch.id)
        .order_by(Attachment.id.desc())
        .all()
    )
    resend_count = (
        db.query(func.count(ResendHistoryEntry.id))
        .filter(ResendHistoryEntry.batch_id == batch.id)
        .scalar()
    )

    return {
        "id": batch.id,
        "direction": batch.direction,
        "counterparty": {
            "id": batch.counterparty_id,
            "name": _counterparty_name(db, direction, batch.counterparty_id),
        },
        "site": {"id": batch.site.id, "name": batch.site.name} if batch.site else None,
        "pr_number_and_name": batch.pr_number_and_name,
        "email_sent": batch.email_sent,
        "message_sent": batch.message_sent,
        "last_resend_at": _iso(batch.last_resend_at),
        "created_by": batch.created_by.name if batch.created_by else None,
        "created_at": _iso(batch.created_at),
        "lines": [
            {
                **serialize_eligible(inq),
                "purchase_unit": inq.purchase_unit.name if inq.purchase_unit else None,
                "estimated_delivery_days": inq.estimated_delivery_days,
                "gst_rate": inq.gst_rate,
                "hsn_code": inq.hsn_code,
                "to_supplier_date": _iso(inq.to_supplier_date),
                "supplier_offer_date": _iso(inq.supplier_offer_date),
                "offer_submission_date": _iso(inq.offer_submission_date),
            }
            for inq in lines
        ],
        "resend_count": resend_count,
        "resend_history": [
            {
                "id": h.id,
                "email_sent": h.email_sent,
                "message_sent": h.message_sent,
                "created_by": h.created_by.name if h.created_by else None,
                "created_at": _iso(h.created_at),
            }
            for h in batch.resend_history
        ],
        "attachments": [
            {"id": a.id, "filename": a.filename, "url": a.url, "created_at": _iso(a.created_at)}
            for a in attachments
        ],
    }
