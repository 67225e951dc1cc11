"""Dispatch batch models — the audit trail of inquiries sent out.

A DispatchBatch is created once by the dispatch transactor together with
its BatchLineLinks and is never deleted. Resends append ResendHistoryEntry
rows and touch last_resend_at; the line links stay as created.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import Base


class DispatchDirection(str, enum.Enum):
    TO_SUPPLIER = "to_supplier"
    TO_CUSTOMER = "to_customer"


class DispatchBatch(Base):
    __tablename__ = "dispatch_batches"
    id = Column(Integer, primary_key=True)
    direction = Column(String(20), nullable=False)  # DispatchDirection value
    counterparty_id = Column(Integer, nullable=False)  # suppliers.id or customers.id

    site_id = Column(Integer, ForeignKey("sites.id"))
    pr_number_and_name = Column(String(255))

    email_sent = Column(Boolean, default=False, nullable=False)
    message_sent = Column(Boolean, default=False, nullable=False)
    last_resend_at = Column(DateTime)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    updated_by_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    lines = relationship(
        "BatchLineLink", back_populates="batch", order_by="BatchLineLink.id"
    )
    resend_history = relationship(
        "ResendHistoryEntry",
        back_populates="batch",
        order_by="desc(ResendHistoryEntry.id)",
    )
    site = relationship("Site")
    created_by = relationship("User", foreign_keys=[created_by_id])
    updated_by = relationship("User", foreign_keys=[updated_by_id])

    __table_args__ = (
        Index("ix_dispatch_batches_dir_party", "direction", "counterparty_id"),
        Index("ix_dispatch_batches_created", "created_at"),
        Index("ix_dispatch_batches_created_by", "created_by_id"),
    )


class BatchLineLink(Base):
    """Join row batch <-> inquiry. One link per inquiry per direction."""

    __tablename__ = "batch_line_links"
    id = Column(Integer, primary_key=True)
    batch_id = Column(
        Integer, ForeignKey("dispatch_batches.id", ondelete="CASCADE"), nullable=False
    )
    inquiry_id = Column(Integer, ForeignKey("inquiries.id"), nullable=False)
    direction = Column(String(20), nullable=False)

    batch = relationship("DispatchBatch", back_populates="lines")
    inquiry = relationship("Inquiry")

    __table_args__ = (
        UniqueConstraint("inquiry_id", "direction", name="uq_batch_line_inquiry_direction"),
        Index("ix_batch_line_links_batch", "batch_id"),
    )


class ResendHistoryEntry(Base):
    """Append-only record of one resend attempt."""

    __tablename__ = "resend_history"
    id = Column(Integer, primary_key=True)
    batch_id = Column(
        Integer, ForeignKey("dispatch_batches.id", ondelete="CASCADE"), nullable=False
    )
    email_sent = Column(Boolean, default=False, nullable=False)
    message_sent = Column(Boolean, default=False, nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    batch = relationship("DispatchBatch", back_populates="resend_history")
    created_by = relationship("User", foreign_keys=[created_by_id])

    __table_args__ = (Index("ix_resend_history_batch", "batch_id", "created_at"),)


class DispatchRequest(Base):
    """Stored result of a create/resend call, keyed by the caller's idempotency key."""

    __tablename__ = "dispatch_requests"
    id = Column(Integer, primary_key=True)
    key = Column(String(128), nullable=False, unique=True)
    operation = Column(String(20), nullable=False)  # create | resend
    response = Column(JSON, nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
