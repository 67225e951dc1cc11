"""Delivery attempt log — one row per email / WhatsApp job."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from .base import Base


class NotificationLog(Base):
    __tablename__ = "notification_logs"
    id = Column(Integer, primary_key=True)
    batch_id = Column(Integer, ForeignKey("dispatch_batches.id"))
    channel = Column(String(20), nullable=False)  # email | message
    recipient = Column(String(1000), nullable=False)
    payload_kind = Column(String(20), nullable=False)  # mail | text | template | document
    succeeded = Column(Boolean, default=False, nullable=False)
    attempts = Column(Integer, default=1, nullable=False)
    error = Column(Text)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("ix_notification_logs_batch", "batch_id", "channel"),)
