"""
status_registry.py — Inquiry workflow statuses as a closed enum

inquiry_statuses rows are identified by display name in the database. The
names are mapped to InquiryStatusKind once (at startup, or lazily on first
use) using the configured names, so the rest of the code never matches
strings.

Business Rules:
- OPEN and SUBMITTED must exist, otherwise dispatch refuses to run
- Name matching is case-insensitive and ignores surrounding whitespace
- The mapping is cached for the process; reset_status_registry() clears it

Called by: main.py lifespan, services/eligibility.py, services/dispatch_transactor.py
Depends on: models.InquiryStatus, config
"""

import enum
from dataclasses import dataclass

from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import StatusConfigurationError
from ..models import InquiryStatus


class InquiryStatusKind(str, enum.Enum):
    OPEN = "open"
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"


_REQUIRED = (InquiryStatusKind.OPEN, InquiryStatusKind.SUBMITTED)


@dataclass(frozen=True)
class StatusRegistry:
    ids: dict

    def id_for(self, kind: InquiryStatusKind) -> int:
        try:
            return self.ids[kind]
        except KeyError:
            raise StatusConfigurationError(
                f'No inquiry "{settings.status_names[kind.value]}" status found'
            ) from None

    def kind_for(self, status_id: int) -> InquiryStatusKind | None:
        for kind, sid in self.ids.items():
            if sid == status_id:
                return kind
        return None

    @property
    def open_id(self) -> int:
        return self.id_for(InquiryStatusKind.OPEN)

    @property
    def submitted_id(self) -> int:
        return self.id_for(InquiryStatusKind.SUBMITTED)


_registry: StatusRegistry | None = None


def load_status_registry(db: Session) -> StatusRegistry:
    """Resolve configured status names to row ids. Raises if a required one is missing."""
    by_name = {
        (row.name or "").strip().lower(): row.id
        for row in db.query(InquiryStatus).all()
    }
    ids = {}
    for kind in InquiryStatusKind:
        configured = settings.status_names[kind.value].strip().lower()
        if configured in by_name:
            ids[kind] = by_name[configured]

    missing = [k for k in _REQUIRED if k not in ids]
    if missing:
        names = ", ".join(f'"{settings.status_names[k.value]}"' for k in missing)
        raise StatusConfigurationError(f"No inquiry status found for {names}")

    logger.info("Inquiry statuses resolved: {}", {k.value: v for k, v in ids.items()})
    return StatusRegistry(ids=ids)


def get_status_registry(db: Session) -> StatusRegistry:
    global _registry
    if _registry is None:
        _registry = load_status_registry(db)
    return _registry


def reset_status_registry() -> None:
    global _registry
    _registry = None
