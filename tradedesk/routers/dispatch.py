"""
routers/dispatch.py — Dispatch API for both directions

Mounted under /api/dispatch/{direction} with direction "to-supplier" or
"to-customer". Create and resend return {success, ...} payloads; domain
errors that are not part of that contract (NotFoundError, StorageError,
StatusConfigurationError) are mapped to HTTP errors in main.py.

Called by: main.py (router registration)
Depends on: services/dispatch_service.py, services/eligibility.py,
            services/inquiry_service.py, dependencies.py
"""

import enum
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import mail_sender_dep, message_sender_dep, require_user, storage_dep
from ..exceptions import NotFoundError
from ..models import DispatchDirection, User
from ..rate_limit import limiter
from ..schemas.dispatch import (
    CreateDispatchRequest,
    DispatchResponse,
    ResendDispatchRequest,
    SupplierOfferUpdate,
)
from ..services import dispatch_service, eligibility, inquiry_service

router = APIRouter(prefix="/api/dispatch/{direction}", tags=["dispatch"])


class DirectionPath(str, enum.Enum):
    TO_SUPPLIER = "to-supplier"
    TO_CUSTOMER = "to-customer"

    @property
    def direction(self) -> DispatchDirection:
        return DispatchDirection(self.value.replace("-", "_"))


def _customer_only(direction: DirectionPath) -> None:
    if direction.direction != DispatchDirection.TO_CUSTOMER:
        raise HTTPException(404, "Only available for to-customer")


def _supplier_only(direction: DirectionPath) -> None:
    if direction.direction != DispatchDirection.TO_SUPPLIER:
        raise HTTPException(404, "Only available for to-supplier")


# ── Dispatch ──────────────────────────────────────────────────────────


@router.post("/create", response_model=DispatchResponse, response_model_exclude_none=True)
@limiter.limit(settings.rate_limit_dispatch)
async def create_dispatch(
    direction: DirectionPath,
    body: CreateDispatchRequest,
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    storage=Depends(storage_dep),
    mail_sender=Depends(mail_sender_dep),
    message_sender=Depends(message_sender_dep),
):
    """Preview or send eligible inquiries to one supplier/customer."""
    return await dispatch_service.create_dispatch(
        db, direction.direction, body, user, storage, mail_sender, message_sender
    )


@router.post("/resend", response_model=DispatchResponse, response_model_exclude_none=True)
@limiter.limit(settings.rate_limit_dispatch)
async def resend_dispatch(
    direction: DirectionPath,
    body: ResendDispatchRequest,
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    storage=Depends(storage_dep),
    mail_sender=Depends(mail_sender_dep),
    message_sender=Depends(message_sender_dep),
):
    """Regenerate and redeliver a previously sent batch."""
    return await dispatch_service.resend_dispatch(
        db, direction.direction, body, user, storage, mail_sender, message_sender
    )


# ── Selection helpers ─────────────────────────────────────────────────


@router.get("/ready")
async def ready_counterparties(
    direction: DirectionPath,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return {"items": eligibility.ready_counterparties(db, direction.direction)}


@router.get("/eligible")
async def eligible_inquiries(
    direction: DirectionPath,
    counterparty_id: int = Query(..., alias="counterpartyId"),
    site_id: int | None = Query(None, alias="siteId"),
    pr_number_and_name: str | None = Query(None, alias="prNumberAndName"),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    inquiries = eligibility.eligible_inquiries(
        db,
        direction.direction,
        counterparty_id,
        site_id=site_id,
        pr_number_and_name=pr_number_and_name,
    )
    return {"items": [eligibility.serialize_eligible(i) for i in inquiries], "total": len(inquiries)}


@router.get("/sites")
async def eligible_sites(
    direction: DirectionPath,
    customer_id: int = Query(..., alias="customerId"),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    _customer_only(direction)
    return {"items": eligibility.eligible_sites(db, customer_id)}


@router.get("/pr-numbers")
async def eligible_pr_numbers(
    direction: DirectionPath,
    customer_id: int = Query(..., alias="customerId"),
    site_id: int | None = Query(None, alias="siteId"),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    _customer_only(direction)
    return {"items": eligibility.eligible_pr_numbers(db, customer_id, site_id)}


@router.get("/counterparties/{counterparty_id}/contacts")
async def counterparty_contacts(
    direction: DirectionPath,
    counterparty_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return eligibility.counterparty_contacts(db, direction.direction, counterparty_id)


# ── Batches ───────────────────────────────────────────────────────────


@router.get("/batches")
async def list_batches(
    direction: DirectionPath,
    counterparty_id: int | None = Query(None, alias="counterpartyId"),
    created_by_id: int | None = Query(None, alias="createdById"),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    show_fulfilled: bool = Query(False, alias="showFulfilled"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return dispatch_service.list_batches(
        db,
        direction.direction,
        counterparty_id=counterparty_id,
        created_by_id=created_by_id,
        start=start,
        end=end,
        show_fulfilled=show_fulfilled,
        page=page,
        limit=limit,
    )


@router.get("/batches/{batch_id}")
async def get_batch(
    direction: DirectionPath,
    batch_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    batch = dispatch_service.get_batch(db, batch_id)
    if batch["direction"] != direction.direction.value:
        raise NotFoundError("DispatchBatch", batch_id)
    return batch


@router.put("/batches/{batch_id}/supplier-offer")
async def record_supplier_offer(
    direction: DirectionPath,
    batch_id: int,
    body: SupplierOfferUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    _supplier_only(direction)
    completed = inquiry_service.record_supplier_offer(db, batch_id, body.lines, user.id)
    return {"ok": True, "completed": completed}
