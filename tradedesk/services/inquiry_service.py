"""
inquiry_service.py — Capture a supplier's answers against a sent batch

Business Rules:
- Only inquiries that are lines of the given to_supplier batch can be
  updated; anything else rejects the whole update (NotFoundError)
- Fields the client leaves out keep their stored value
- supplier_offer_date is stamped when purchase description, purchase unit
  and supplier price are all present (a zero price counts) and one of them
  was part of the update, or no offer date exists yet; it is never cleared here
- All lines are written in one transaction

Called by: routers/dispatch.py
Depends on: models, schemas/dispatch.py
"""

from datetime import datetime, timezone

from loguru import logger
from sqlalchemy.orm import Session

from ..exceptions import NotFoundError
from ..models import BatchLineLink, DispatchBatch, DispatchDirection, Inquiry, Unit
from ..schemas.dispatch import SupplierOfferLine

_OFFER_FIELDS = (
    "purchase_description",
    "purchase_unit_id",
    "supplier_price",
    "estimated_delivery_days",
    "gst_rate",
    "hsn_code",
)
_QUOTE_FIELDS = {"purchase_description", "purchase_unit_id", "supplier_price"}


def _offer_complete(inq: Inquiry) -> bool:
    return bool(inq.purchase_description) and inq.purchase_unit_id is not None and inq.supplier_price is not None


def record_supplier_offer(
    db: Session, batch_id: int, lines: list[SupplierOfferLine], user_id: int
) -> list[int]:
    """Write the offer fields; returns ids of inquiries whose offer is now complete."""
    batch = db.get(DispatchBatch, batch_id)
    if not batch or batch.direction != DispatchDirection.TO_SUPPLIER.value:
        raise NotFoundError("DispatchBatch", batch_id)

    linked = {
        inquiry_id
        for (inquiry_id,) in db.query(BatchLineLink.inquiry_id).filter(BatchLineLink.batch_id == batch_id)
    }
    for line in lines:
        if line.id not in linked:
            raise NotFoundError("Inquiry", line.id)
        if line.purchase_unit_id is not None and not db.get(Unit, line.purchase_unit_id):
            raise NotFoundError("Unit", line.purchase_unit_id)

    now = datetime.now(timezone.utc)
    completed = []
    for line in lines:
        inq = db.get(Inquiry, line.id)
        changes = line.model_dump(include=set(_OFFER_FIELDS), exclude_unset=True)
        for name, value in changes.items():
            setattr(inq, name, value)
        inq.updated_by_id = user_id
        if _offer_complete(inq) and (inq.supplier_offer_date is None or _QUOTE_FIELDS & changes.keys()):
            inq.supplier_offer_date = now
            completed.append(inq.id)
    db.commit()

    logger.info(
        "Supplier offer recorded on batch {}: {} lines, {} complete", batch_id, len(lines), len(completed)
    )
    return completed
