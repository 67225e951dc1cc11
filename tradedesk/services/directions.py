"""Per-direction facts shared by the dispatch services.

to_supplier sends open inquiries to a supplier asking for a quotation;
to_customer sends the priced offer back to the customer.
"""

from dataclasses import dataclass

from ..models import Customer, DispatchDirection, Inquiry, Supplier


@dataclass(frozen=True)
class DirectionProfile:
    direction: DispatchDirection
    counterparty_model: type
    counterparty_column: str  # attribute on Inquiry
    counterparty_label: str  # used in filenames
    subject_kind: str  # first word of the email subject
    letter_template: str


PROFILES = {
    DispatchDirection.TO_SUPPLIER: DirectionProfile(
        direction=DispatchDirection.TO_SUPPLIER,
        counterparty_model=Supplier,
        counterparty_column="supplier_id",
        counterparty_label="Supplier",
        subject_kind="INQUIRY",
        letter_template="quotation_to_supplier.html",
    ),
    DispatchDirection.TO_CUSTOMER: DirectionProfile(
        direction=DispatchDirection.TO_CUSTOMER,
        counterparty_model=Customer,
        counterparty_column="customer_id",
        counterparty_label="Customer",
        subject_kind="OFFER",
        letter_template="offer_to_customer.html",
    ),
}


def profile_for(direction: DispatchDirection | str) -> DirectionProfile:
    return PROFILES[DispatchDirection(direction)]


def counterparty_attr(direction: DispatchDirection | str):
    """The Inquiry column holding the counterparty id for this direction."""
    return getattr(Inquiry, profile_for(direction).counterparty_column)
