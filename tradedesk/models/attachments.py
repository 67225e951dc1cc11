"""Generated artifact metadata (spreadsheets and PDF letters)."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from .base import Base


class Attachment(Base):
    """A blob in object storage. batch_id stays NULL for preview artifacts."""

    __tablename__ = "attachments"
    id = Column(Integer, primary_key=True)
    filename = Column(String(500), nullable=False)
    storage_key = Column(String(500), nullable=False)
    url = Column(Text, nullable=False)
    content_type = Column(String(100))
    size_bytes = Column(Integer)
    batch_id = Column(Integer, ForeignKey("dispatch_batches.id"))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_attachments_batch", "batch_id"),
        Index("ix_attachments_created", "created_at"),
    )
