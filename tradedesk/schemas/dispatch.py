"""
schemas/dispatch.py — Request/response models for the dispatch endpoints

Business Rules:
- Wire names are camelCase (counterpartyId, inquiryIds, ...); snake_case is
  accepted too
- inquiryIds must hold at least one id
- External emails must be valid addresses; external numbers are trimmed
  and blanks dropped
- hsnCode on a supplier offer is at most 8 characters

Called by: routers/dispatch.py, services/dispatch_service.py, services/inquiry_service.py
Depends on: pydantic, email-validator
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _DeliveryOptions(_CamelModel):
    email: bool = False
    message: bool = False
    external_emails: list[EmailStr] = Field(default_factory=list)
    external_numbers: list[str] = Field(default_factory=list)
    timezone_offset_minutes: int = 0
    idempotency_key: str | None = Field(default=None, max_length=128)

    @field_validator("external_numbers")
    @classmethod
    def strip_numbers(cls, v: list[str]) -> list[str]:
        return [n.strip() for n in v if n and n.strip()]


class CreateDispatchRequest(_DeliveryOptions):
    """Send (or preview) a batch of eligible inquiries to one counterparty."""
    preview: bool = False
    counterparty_id: int
    inquiry_ids: list[int] = Field(min_length=1)
    remarks: str | None = None
    site_id: int | None = None
    pr_number_and_name: str | None = None


class ResendDispatchRequest(_DeliveryOptions):
    """Regenerate and redeliver an existing batch."""
    batch_id: int


class DispatchResponse(BaseModel):
    success: bool
    message: str | None = None
    spreadsheetUrl: str | None = None
    pdfUrl: str | None = None
    batchId: int | None = None
    emailSent: bool | None = None
    messageSent: bool | None = None


class SupplierOfferLine(_CamelModel):
    id: int
    purchase_description: str | None = None
    purchase_unit_id: int | None = None
    supplier_price: Decimal | None = Field(default=None, ge=0)
    estimated_delivery_days: int | None = Field(default=None, ge=0)
    gst_rate: str | None = Field(default=None, max_length=20)
    hsn_code: str | None = Field(default=None, max_length=8)


class SupplierOfferUpdate(_CamelModel):
    lines: list[SupplierOfferLine] = Field(min_length=1)
