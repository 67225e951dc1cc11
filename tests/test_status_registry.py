"""
test_status_registry.py — Tests for services/status_registry.py

Covers: name resolution (case/whitespace), missing required statuses,
process-level caching and reset.

Called by: pytest
Depends on: tradedesk/services/status_registry.py, conftest.py
"""

import pytest

from tradedesk.exceptions import StatusConfigurationError
from tradedesk.models import InquiryStatus
from tradedesk.services.status_registry import (
    InquiryStatusKind,
    get_status_registry,
    load_status_registry,
    reset_status_registry,
)


def test_resolves_configured_names_case_insensitively(db_session, statuses):
    registry = load_status_registry(db_session)
    assert registry.open_id == statuses["open"].id
    assert registry.submitted_id == statuses["submitted"].id
    assert registry.id_for(InquiryStatusKind.CANCELLED) == statuses["cancelled"].id


def test_kind_for_maps_ids_back(db_session, statuses):
    registry = load_status_registry(db_session)
    assert registry.kind_for(statuses["submitted"].id) == InquiryStatusKind.SUBMITTED
    assert registry.kind_for(99999) is None


def test_surrounding_whitespace_ignored(db_session):
    db_session.add_all([InquiryStatus(name="  OPEN "), InquiryStatus(name="submitted")])
    db_session.commit()
    registry = load_status_registry(db_session)
    assert InquiryStatusKind.OPEN in registry.ids


def test_missing_submitted_raises(db_session):
    db_session.add(InquiryStatus(name="Open"))
    db_session.commit()
    with pytest.raises(StatusConfigurationError, match="submitted"):
        load_status_registry(db_session)


def test_cancelled_is_optional(db_session):
    db_session.add_all([InquiryStatus(name="Open"), InquiryStatus(name="Submitted")])
    db_session.commit()
    registry = load_status_registry(db_session)
    with pytest.raises(StatusConfigurationError):
        registry.id_for(InquiryStatusKind.CANCELLED)


def test_registry_is_cached_until_reset(db_session, statuses):
    first = get_status_registry(db_session)
    assert get_status_registry(db_session) is first
    reset_status_registry()
    assert get_status_registry(db_session) is not first
