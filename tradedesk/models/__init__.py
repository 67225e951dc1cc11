"""Database models — re-exports all models.

Import from here:  from tradedesk.models import Inquiry, DispatchBatch, ...
Or from submodules: from tradedesk.models.dispatch import DispatchBatch
"""

from .base import Base  # noqa: F401

# Staff
from .auth import User  # noqa: F401

# Counterparties & master data
from .parties import Customer, Site, Supplier, Unit  # noqa: F401

# Inquiries
from .inquiries import Inquiry, InquiryResult, InquiryStatus  # noqa: F401

# Dispatch batches & history
from .dispatch import (  # noqa: F401
    BatchLineLink,
    DispatchBatch,
    DispatchDirection,
    DispatchRequest,
    ResendHistoryEntry,
)

# Generated artifacts
from .attachments import Attachment  # noqa: F401

# Delivery log
from .notifications import NotificationLog  # noqa: F401
