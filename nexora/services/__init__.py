"""Services package."""

from nexora.services.attachments import (
    AttachmentError,
    AttachmentTooLargeError,
    MalformedAttachmentError,
    UnreadableImageError,
    encode_attachment,
    inspect_attachment,
)
from nexora.services.notifier import (
    ChangeNotifier,
    NullChangeNotifier,
    PollingChangeNotifier,
    Subscription,
    create_notifier,
)
from nexora.services.storage import (
    DuplicateEmailError,
    FinanceGateway,
    InvalidCredentialsError,
    InvalidRecordError,
    LocalFinanceGateway,
    RemoteFinanceGateway,
    StorageError,
    TransportError,
    create_gateway,
)

__all__ = [
    # Attachments
    "AttachmentError",
    "AttachmentTooLargeError",
    "MalformedAttachmentError",
    "UnreadableImageError",
    "encode_attachment",
    "inspect_attachment",
    # Change notification
    "ChangeNotifier",
    "NullChangeNotifier",
    "PollingChangeNotifier",
    "Subscription",
    "create_notifier",
    # Storage
    "DuplicateEmailError",
    "FinanceGateway",
    "InvalidCredentialsError",
    "InvalidRecordError",
    "LocalFinanceGateway",
    "RemoteFinanceGateway",
    "StorageError",
    "TransportError",
    "create_gateway",
]
