"""Sourcing inquiry models.

An Inquiry is one line a customer asked us to source. It travels
Open -> (sent to supplier) -> (supplier offer captured) -> (offer sent to
customer, Submitted). Status rows are looked up by name once at startup,
see services/status_registry.py.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import Base


class InquiryStatus(Base):
    __tablename__ = "inquiry_statuses"
    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False, unique=True)


class InquiryResult(Base):
    """Final outcome (won, lost, ...) — once set the inquiry leaves the workflow."""

    __tablename__ = "inquiry_results"
    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False, unique=True)


class Inquiry(Base):
    __tablename__ = "inquiries"
    id = Column(Integer, primary_key=True)
    item_code = Column(String(50))
    status_id = Column(Integer, ForeignKey("inquiry_statuses.id"), nullable=False)
    result_id = Column(Integer, ForeignKey("inquiry_results.id"))

    supplier_id = Column(Integer, ForeignKey("suppliers.id"))
    customer_id = Column(Integer, ForeignKey("customers.id"))
    site_id = Column(Integer, ForeignKey("sites.id"))
    pr_number_and_name = Column(String(255))

    sales_description = Column(Text)
    sales_unit_id = Column(Integer, ForeignKey("units.id"))
    quantity = Column(Numeric(12, 3))
    size = Column(String(255))

    # Filled in from the supplier's answer
    purchase_description = Column(Text)
    purchase_unit_id = Column(Integer, ForeignKey("units.id"))
    supplier_price = Column(Numeric(14, 4))
    estimated_delivery_days = Column(Integer)
    gst_rate = Column(String(20))
    hsn_code = Column(String(8))

    customer_price = Column(Numeric(14, 4))
    margin = Column(Numeric(8, 4))
    customer_currency_symbol = Column(String(10))

    image_key = Column(String(500))
    representative_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    to_supplier_date = Column(DateTime)
    supplier_offer_date = Column(DateTime)
    offer_submission_date = Column(DateTime)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    updated_by_id = Column(Integer, ForeignKey("users.id"))
    deleted_at = Column(DateTime)

    status = relationship("InquiryStatus")
    supplier = relationship("Supplier")
    customer = relationship("Customer")
    site = relationship("Site")
    sales_unit = relationship("Unit", foreign_keys=[sales_unit_id])
    purchase_unit = relationship("Unit", foreign_keys=[purchase_unit_id])
    representative = relationship("User", foreign_keys=[representative_id])
    updated_by = relationship("User", foreign_keys=[updated_by_id])

    __table_args__ = (
        Index("ix_inquiries_supplier_status", "supplier_id", "status_id"),
        Index("ix_inquiries_customer_status", "customer_id", "status_id"),
        Index("ix_inquiries_created", "created_at"),
        Index("ix_inquiries_representative", "representative_id"),
    )
