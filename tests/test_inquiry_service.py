"""
test_inquiry_service.py — Tests for services/inquiry_service.py

Supplier answers are written only onto lines of a to_supplier batch, and
the offer date is stamped once the offer is complete.

Called by: pytest
Depends on: tradedesk/services/inquiry_service.py, conftest.py
"""

from decimal import Decimal

import pytest

from tradedesk.exceptions import NotFoundError
from tradedesk.models import BatchLineLink, DispatchBatch, Inquiry
from tradedesk.schemas.dispatch import SupplierOfferLine
from tradedesk.services.inquiry_service import record_supplier_offer


@pytest.fixture()
def sent_batch(db_session, make_inquiry, supplier, test_user):
    inquiries = [make_inquiry(), make_inquiry()]
    batch = DispatchBatch(direction="to_supplier", counterparty_id=supplier.id, created_by_id=test_user.id)
    db_session.add(batch)
    db_session.flush()
    for inq in inquiries:
        db_session.add(BatchLineLink(batch_id=batch.id, inquiry_id=inq.id, direction="to_supplier"))
    db_session.commit()
    return batch, inquiries


def test_complete_offer_is_stamped(db_session, sent_batch, units, test_user):
    batch, (a, b) = sent_batch
    lines = [
        SupplierOfferLine(
            id=a.id,
            purchase_description="Cast steel gate valve",
            purchase_unit_id=units["nos"].id,
            supplier_price=Decimal("1450.50"),
            estimated_delivery_days=21,
            gst_rate="18",
            hsn_code="84818030",
        ),
        SupplierOfferLine(id=b.id, purchase_description="Partial answer"),
    ]

    completed = record_supplier_offer(db_session, batch.id, lines, test_user.id)

    assert completed == [a.id]
    a_row, b_row = db_session.get(Inquiry, a.id), db_session.get(Inquiry, b.id)
    assert a_row.supplier_offer_date is not None
    assert a_row.supplier_price == Decimal("1450.50")
    assert a_row.hsn_code == "84818030"
    assert a_row.updated_by_id == test_user.id
    assert b_row.supplier_offer_date is None
    assert b_row.purchase_description == "Partial answer"


def test_inquiry_outside_batch_rejects_all(db_session, sent_batch, make_inquiry, units, test_user):
    batch, (a, _) = sent_batch
    outsider = make_inquiry()
    lines = [
        SupplierOfferLine(id=a.id, purchase_description="ok"),
        SupplierOfferLine(id=outsider.id, purchase_description="nope"),
    ]
    with pytest.raises(NotFoundError):
        record_supplier_offer(db_session, batch.id, lines, test_user.id)
    assert db_session.get(Inquiry, a.id).purchase_description is None


def test_unknown_unit(db_session, sent_batch, test_user):
    batch, (a, _) = sent_batch
    with pytest.raises(NotFoundError):
        record_supplier_offer(db_session, batch.id, [SupplierOfferLine(id=a.id, purchase_unit_id=999)], test_user.id)


def test_customer_batch_is_not_a_supplier_batch(db_session, customer, test_user):
    batch = DispatchBatch(direction="to_customer", counterparty_id=customer.id, created_by_id=test_user.id)
    db_session.add(batch)
    db_session.commit()
    with pytest.raises(NotFoundError):
        record_supplier_offer(db_session, batch.id, [SupplierOfferLine(id=1)], test_user.id)


def test_hsn_code_length_validated():
    with pytest.raises(ValueError):
        SupplierOfferLine(id=1, hsn_code="123456789")


def test_partial_update_keeps_stored_answers(db_session, sent_batch, units, test_user):
    batch, (a, _) = sent_batch
    full = SupplierOfferLine(
        id=a.id,
        purchase_description="Cast steel gate valve",
        purchase_unit_id=units["nos"].id,
        supplier_price=Decimal("1450.50"),
    )
    record_supplier_offer(db_session, batch.id, [full], test_user.id)
    stamped = db_session.get(Inquiry, a.id).supplier_offer_date

    completed = record_supplier_offer(
        db_session, batch.id, [SupplierOfferLine.model_validate({"id": a.id, "estimatedDeliveryDays": 30})], test_user.id
    )

    row = db_session.get(Inquiry, a.id)
    assert completed == []
    assert row.estimated_delivery_days == 30
    assert row.supplier_price == Decimal("1450.50")
    assert row.purchase_description == "Cast steel gate valve"
    assert row.purchase_unit_id == units["nos"].id
    assert row.supplier_offer_date == stamped


def test_zero_price_completes_offer(db_session, sent_batch, units, test_user):
    batch, (a, _) = sent_batch
    line = SupplierOfferLine(
        id=a.id, purchase_description="Free sample", purchase_unit_id=units["nos"].id, supplier_price=Decimal("0")
    )

    assert record_supplier_offer(db_session, batch.id, [line], test_user.id) == [a.id]
    assert db_session.get(Inquiry, a.id).supplier_offer_date is not None
