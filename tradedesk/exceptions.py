"""Dispatch workflow error taxonomy.

NoEligibleItemsError and TransactionConflictError are expected outcomes: the
dispatch service and transactor raise them, and the public create/resend
entry points turn them into {success: false, message} payloads.
ChannelDeliveryError never leaves the notification fan-out. NotFoundError,
StatusConfigurationError and StorageError propagate to the HTTP layer.
"""


class DispatchError(Exception):
    """Base class for dispatch workflow errors."""

    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NoEligibleItemsError(DispatchError):
    default_message = "No inquiries"


class TransactionConflictError(DispatchError):
    default_message = (
        "These inquiries were just dispatched by someone else. Refresh and try again."
    )


class ChannelDeliveryError(DispatchError):
    default_message = "Delivery failed"

    def __init__(self, message: str | None = None, *, channel: str = "", recipient: str = ""):
        self.channel = channel
        self.recipient = recipient
        super().__init__(message)


class NotFoundError(DispatchError):
    default_message = "Not found"

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class StatusConfigurationError(DispatchError):
    default_message = "Inquiry statuses are not configured"


class StorageError(DispatchError):
    default_message = "Object storage unavailable"
