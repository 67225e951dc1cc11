"""Counterparty master data — suppliers, customers, sites, units.

Read-only from the dispatch workflow's point of view; maintained elsewhere.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from .base import Base


class Supplier(Base):
    __tablename__ = "suppliers"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    email2 = Column(String(255))
    email3 = Column(String(255))
    whatsapp = Column(String(50))
    mobile = Column(String(50))
    alternate_mobile = Column(String(50))
    accounts_contact_mobile = Column(String(50))
    logistic_contact_mobile = Column(String(50))
    purchase_contact_mobile = Column(String(50))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    deleted_at = Column(DateTime)

    __table_args__ = (Index("ix_suppliers_name", "name"),)


class Customer(Base):
    __tablename__ = "customers"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    contact_email = Column(String(255))
    contact_email2 = Column(String(255))
    contact_email3 = Column(String(255))
    contact_mobile = Column(String(50))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    deleted_at = Column(DateTime)

    sites = relationship("Site", back_populates="customer")

    __table_args__ = (Index("ix_customers_name", "name"),)


class Site(Base):
    """Customer site — one of the grouping keys on offers."""

    __tablename__ = "sites"
    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    name = Column(String(255), nullable=False)

    customer = relationship("Customer", back_populates="sites")

    __table_args__ = (Index("ix_sites_customer", "customer_id"),)


class Unit(Base):
    """Unit of measure (NOS, KG, MTR, ...)."""

    __tablename__ = "units"
    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False, unique=True)
