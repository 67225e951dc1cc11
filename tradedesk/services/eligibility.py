"""
eligibility.py — Which inquiries can be dispatched right now

Evaluates the direction-specific eligibility predicate against current
store state. Nothing is cached: the create path re-runs the same predicate
inside the serializable unit of work (dispatch_transactor.py).

Business Rules:
- to_supplier: status open, no result, not deleted, never sent to a
  supplier, no supplier offer yet, not linked to a to_supplier batch
- to_customer: status open, no result, not deleted, not linked to a
  to_customer batch, supplier round-trip complete (to_supplier_date,
  supplier_offer_date, supplier_price, customer_price, margin all set)
  and offer_submission_date unset
- Line order is insertion order (created_at, then id)

Called by: services/dispatch_service.py, services/dispatch_transactor.py, routers/dispatch.py
Depends on: models, services/status_registry.py, services/directions.py
"""

from sqlalchemy import and_, exists, func
from sqlalchemy.orm import Session, joinedload

from ..exceptions import NotFoundError
from ..models import BatchLineLink, DispatchDirection, Inquiry, Site
from .directions import counterparty_attr, profile_for
from .status_registry import StatusRegistry, get_status_registry

_GROUPING_LIMIT = 500


def _not_linked(direction: DispatchDirection):
    return ~exists().where(
        and_(
            BatchLineLink.inquiry_id == Inquiry.id,
            BatchLineLink.direction == direction.value,
        )
    )


def eligibility_clauses(direction: DispatchDirection | str, registry: StatusRegistry) -> list:
    """The predicate shared by selection, grouping and re-validation."""
    direction = DispatchDirection(direction)
    clauses = [
        Inquiry.status_id == registry.open_id,
        Inquiry.result_id.is_(None),
        Inquiry.deleted_at.is_(None),
        _not_linked(direction),
    ]
    if direction == DispatchDirection.TO_SUPPLIER:
        clauses += [
            Inquiry.to_supplier_date.is_(None),
            Inquiry.supplier_offer_date.is_(None),
        ]
    else:
        clauses += [
            Inquiry.to_supplier_date.isnot(None),
            Inquiry.supplier_offer_date.isnot(None),
            Inquiry.supplier_price.isnot(None),
            Inquiry.customer_price.isnot(None),
            Inquiry.margin.isnot(None),
            Inquiry.offer_submission_date.is_(None),
        ]
    return clauses


def resend_clauses(registry: StatusRegistry) -> list:
    """Lines of a to_supplier batch that are still worth resending."""
    return [
        Inquiry.status_id == registry.open_id,
        Inquiry.result_id.is_(None),
        Inquiry.supplier_offer_date.is_(None),
    ]


def eligible_query(
    db: Session,
    direction: DispatchDirection | str,
    counterparty_id: int,
    *,
    inquiry_ids: list[int] | None = None,
    site_id: int | None = None,
    pr_number_and_name: str | None = None,
    registry: StatusRegistry | None = None,
):
    direction = DispatchDirection(direction)
    registry = registry or get_status_registry(db)
    q = db.query(Inquiry).filter(
        counterparty_attr(direction) == counterparty_id,
        *eligibility_clauses(direction, registry),
    )
    if inquiry_ids is not None:
        q = q.filter(Inquiry.id.in_(inquiry_ids))
    if direction == DispatchDirection.TO_CUSTOMER:
        if site_id is not None:
            q = q.filter(Inquiry.site_id == site_id)
        if pr_number_and_name is not None:
            q = q.filter(Inquiry.pr_number_and_name == pr_number_and_name)
    return q.order_by(Inquiry.created_at.asc(), Inquiry.id.asc())


def eligible_inquiries(
    db: Session,
    direction: DispatchDirection | str,
    counterparty_id: int,
    *,
    inquiry_ids: list[int] | None = None,
    site_id: int | None = None,
    pr_number_and_name: str | None = None,
) -> list[Inquiry]:
    """Eligible inquiries for one counterparty, with everything documents need loaded."""
    return (
        eligible_query(
            db,
            direction,
            counterparty_id,
            inquiry_ids=inquiry_ids,
            site_id=site_id,
            pr_number_and_name=pr_number_and_name,
        )
        .options(
            joinedload(Inquiry.representative),
            joinedload(Inquiry.site),
            joinedload(Inquiry.sales_unit),
            joinedload(Inquiry.purchase_unit),
            joinedload(Inquiry.supplier),
            joinedload(Inquiry.customer),
        )
        .all()
    )


def ready_counterparties(db: Session, direction: DispatchDirection | str) -> list[dict]:
    """Counterparties with at least one eligible inquiry — the operator's worklist."""
    direction = DispatchDirection(direction)
    registry = get_status_registry(db)
    party_col = counterparty_attr(direction)
    grouped = (
        db.query(party_col, func.count(Inquiry.id))
        .filter(party_col.isnot(None), *eligibility_clauses(direction, registry))
        .group_by(party_col)
        .all()
    )
    counts = {party_id: count for party_id, count in grouped}
    if not counts:
        return []

    model = profile_for(direction).counterparty_model
    parties = (
        db.query(model)
        .filter(model.id.in_(counts.keys()), model.deleted_at.is_(None))
        .order_by(model.name)
        .all()
    )
    return [{"id": p.id, "name": p.name, "count": counts.get(p.id, 0)} for p in parties]


def eligible_sites(db: Session, customer_id: int) -> list[dict]:
    registry = get_status_registry(db)
    site_ids = [
        sid
        for (sid,) in db.query(Inquiry.site_id)
        .filter(
            Inquiry.customer_id == customer_id,
            Inquiry.site_id.isnot(None),
            *eligibility_clauses(DispatchDirection.TO_CUSTOMER, registry),
        )
        .group_by(Inquiry.site_id)
        .order_by(Inquiry.site_id)
        .limit(_GROUPING_LIMIT)
        .all()
    ]
    if not site_ids:
        return []
    sites = db.query(Site).filter(Site.id.in_(site_ids)).order_by(Site.name).all()
    return [{"id": s.id, "name": s.name} for s in sites]


def eligible_pr_numbers(db: Session, customer_id: int, site_id: int | None = None) -> list[str]:
    registry = get_status_registry(db)
    q = db.query(Inquiry.pr_number_and_name).filter(
        Inquiry.customer_id == customer_id,
        Inquiry.pr_number_and_name.isnot(None),
        *eligibility_clauses(DispatchDirection.TO_CUSTOMER, registry),
    )
    if site_id is not None:
        q = q.filter(Inquiry.site_id == site_id)
    rows = (
        q.group_by(Inquiry.pr_number_and_name)
        .order_by(Inquiry.pr_number_and_name)
        .limit(_GROUPING_LIMIT)
        .all()
    )
    return [pr for (pr,) in rows if pr]


def counterparty_contacts(db: Session, direction: DispatchDirection | str, counterparty_id: int) -> dict:
    """Known addresses and numbers for the operator to pick external recipients from."""
    direction = DispatchDirection(direction)
    model = profile_for(direction).counterparty_model
    party = db.get(model, counterparty_id)
    if not party:
        raise NotFoundError(model.__name__, counterparty_id)

    if direction == DispatchDirection.TO_SUPPLIER:
        emails = [party.email, party.email2, party.email3]
        numbers = [
            party.whatsapp,
            party.mobile,
            party.alternate_mobile,
            party.accounts_contact_mobile,
            party.logistic_contact_mobile,
            party.purchase_contact_mobile,
        ]
    else:
        emails = [party.contact_email, party.contact_email2, party.contact_email3]
        numbers = [party.contact_mobile]

    return {
        "id": party.id,
        "name": party.name,
        "emails": list(dict.fromkeys(e for e in emails if e)),
        "numbers": list(dict.fromkeys(n for n in numbers if n)),
    }


def serialize_eligible(inq: Inquiry) -> dict:
    return {
        "id": inq.id,
        "item_code": inq.item_code,
        "site": {"id": inq.site.id, "name": inq.site.name} if inq.site else None,
        "pr_number_and_name": inq.pr_number_and_name,
        "sales_description": inq.sales_description,
        "sales_unit": inq.sales_unit.name if inq.sales_unit else None,
        "quantity": float(inq.quantity) if inq.quantity is not None else None,
        "size": inq.size,
        "purchase_description": inq.purchase_description,
        "supplier_price": float(inq.supplier_price) if inq.supplier_price is not None else None,
        "customer_price": float(inq.customer_price) if inq.customer_price is not None else None,
        "margin": float(inq.margin) if inq.margin is not None else None,
        "representative": inq.representative.name if inq.representative else None,
        "created_at": inq.created_at.isoformat() if inq.created_at else None,
    }
