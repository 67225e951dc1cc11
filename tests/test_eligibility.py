"""
test_eligibility.py — Tests for services/eligibility.py

Covers: to_supplier and to_customer predicates, exclusion of linked /
deleted / closed inquiries, insertion ordering, ready counterparties,
customer grouping keys and counterparty contacts.

Called by: pytest
Depends on: tradedesk/services/eligibility.py, conftest.py
"""

from datetime import datetime, timezone

import pytest

from tradedesk.exceptions import NotFoundError
from tradedesk.models import BatchLineLink, DispatchBatch, DispatchDirection, Site, Supplier
from tradedesk.services.eligibility import (
    counterparty_contacts,
    eligible_inquiries,
    eligible_pr_numbers,
    eligible_sites,
    ready_counterparties,
)

SUP = DispatchDirection.TO_SUPPLIER
CUS = DispatchDirection.TO_CUSTOMER


def _link(db, inquiry, direction, user):
    batch = DispatchBatch(
        direction=direction.value,
        counterparty_id=inquiry.supplier_id if direction == SUP else inquiry.customer_id,
        created_by_id=user.id,
    )
    db.add(batch)
    db.flush()
    db.add(BatchLineLink(batch_id=batch.id, inquiry_id=inquiry.id, direction=direction.value))
    db.commit()
    return batch


# ── to_supplier ──────────────────────────────────────────────────────


def test_open_unsent_inquiry_is_eligible_for_supplier(db_session, make_inquiry, supplier):
    inq = make_inquiry()
    assert [i.id for i in eligible_inquiries(db_session, SUP, supplier.id)] == [inq.id]


def test_supplier_exclusions(db_session, make_inquiry, supplier, statuses, lost_result, test_user):
    ok = make_inquiry()
    make_inquiry(to_supplier_date=datetime(2026, 1, 5, tzinfo=timezone.utc))
    make_inquiry(supplier_offer_date=datetime(2026, 1, 5, tzinfo=timezone.utc))
    make_inquiry(status_id=statuses["cancelled"].id)
    make_inquiry(result_id=lost_result.id)
    make_inquiry(deleted_at=datetime(2026, 1, 5, tzinfo=timezone.utc))
    linked = make_inquiry()
    _link(db_session, linked, SUP, test_user)

    assert [i.id for i in eligible_inquiries(db_session, SUP, supplier.id)] == [ok.id]


def test_link_in_other_direction_does_not_exclude(db_session, make_inquiry, supplier, test_user):
    inq = make_inquiry()
    _link(db_session, inq, CUS, test_user)
    assert [i.id for i in eligible_inquiries(db_session, SUP, supplier.id)] == [inq.id]


def test_other_supplier_inquiries_not_returned(db_session, make_inquiry, supplier):
    other = Supplier(name="Audco")
    db_session.add(other)
    db_session.commit()
    make_inquiry(supplier_id=other.id)
    assert eligible_inquiries(db_session, SUP, supplier.id) == []


def test_ordered_by_insertion_not_id(db_session, make_inquiry, supplier):
    later = make_inquiry(created_at=datetime(2026, 4, 1, tzinfo=timezone.utc))
    earlier = make_inquiry(created_at=datetime(2026, 2, 1, tzinfo=timezone.utc))
    assert [i.id for i in eligible_inquiries(db_session, SUP, supplier.id)] == [earlier.id, later.id]


def test_inquiry_ids_restrict_selection(db_session, make_inquiry, supplier):
    a = make_inquiry()
    make_inquiry()
    result = eligible_inquiries(db_session, SUP, supplier.id, inquiry_ids=[a.id, 99999])
    assert [i.id for i in result] == [a.id]


# ── to_customer ──────────────────────────────────────────────────────


def test_offered_inquiry_is_eligible_for_customer(db_session, make_offered_inquiry, make_inquiry, customer):
    ready = make_offered_inquiry()
    make_inquiry()  # never went to a supplier
    make_offered_inquiry(customer_price=None)
    make_offered_inquiry(margin=None)
    make_offered_inquiry(offer_submission_date=datetime(2026, 3, 9, tzinfo=timezone.utc))
    assert [i.id for i in eligible_inquiries(db_session, CUS, customer.id)] == [ready.id]


def test_customer_filters_by_site_and_pr(db_session, make_offered_inquiry, customer, site):
    other_site = Site(customer_id=customer.id, name="Kalinganagar")
    db_session.add(other_site)
    db_session.commit()
    a = make_offered_inquiry(site_id=site.id, pr_number_and_name="PR-100 Pumps")
    make_offered_inquiry(site_id=site.id, pr_number_and_name="PR-200 Valves")
    make_offered_inquiry(site_id=other_site.id, pr_number_and_name="PR-100 Pumps")

    result = eligible_inquiries(
        db_session, CUS, customer.id, site_id=site.id, pr_number_and_name="PR-100 Pumps"
    )
    assert [i.id for i in result] == [a.id]


def test_customer_linked_excluded(db_session, make_offered_inquiry, customer, test_user):
    inq = make_offered_inquiry()
    _link(db_session, inq, CUS, test_user)
    assert eligible_inquiries(db_session, CUS, customer.id) == []


# ── Grouping ─────────────────────────────────────────────────────────


def test_ready_counterparties_counts_and_skips_deleted(db_session, make_inquiry, supplier):
    gone = Supplier(name="Zeta Pipes", deleted_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
    alpha = Supplier(name="Alpha Flanges")
    db_session.add_all([gone, alpha])
    db_session.commit()
    make_inquiry()
    make_inquiry()
    make_inquiry(supplier_id=alpha.id)
    make_inquiry(supplier_id=gone.id)

    ready = ready_counterparties(db_session, SUP)
    assert ready == [
        {"id": alpha.id, "name": "Alpha Flanges", "count": 1},
        {"id": supplier.id, "name": "Kirloskar Valves", "count": 2},
    ]


def test_ready_counterparties_empty(db_session, statuses):
    assert ready_counterparties(db_session, CUS) == []


def test_eligible_sites_and_pr_numbers(db_session, make_offered_inquiry, customer, site):
    make_offered_inquiry(site_id=site.id, pr_number_and_name="PR-200 Valves")
    make_offered_inquiry(site_id=site.id, pr_number_and_name="PR-100 Pumps")
    make_offered_inquiry(pr_number_and_name="PR-300 Misc")

    assert eligible_sites(db_session, customer.id) == [{"id": site.id, "name": "Jamshedpur"}]
    assert eligible_pr_numbers(db_session, customer.id) == [
        "PR-100 Pumps",
        "PR-200 Valves",
        "PR-300 Misc",
    ]
    assert eligible_pr_numbers(db_session, customer.id, site.id) == ["PR-100 Pumps", "PR-200 Valves"]


# ── Contacts ─────────────────────────────────────────────────────────


def test_supplier_contacts_deduplicated(db_session, supplier):
    supplier.alternate_mobile = supplier.whatsapp
    db_session.commit()
    contacts = counterparty_contacts(db_session, SUP, supplier.id)
    assert contacts["emails"] == ["sales@kirloskarvalves.com", "quotes@kirloskarvalves.com"]
    assert contacts["numbers"] == ["+91 90000 11111", "+91 90000 22222"]


def test_customer_contacts(db_session, customer):
    contacts = counterparty_contacts(db_session, CUS, customer.id)
    assert contacts == {
        "id": customer.id,
        "name": "Tata Steel",
        "emails": ["purchase@tatasteel.com"],
        "numbers": ["+91 90000 33333"],
    }


def test_contacts_missing_counterparty(db_session):
    with pytest.raises(NotFoundError):
        counterparty_contacts(db_session, SUP, 4242)
