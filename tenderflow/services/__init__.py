"""Business logic services."""

from .award_service import (
    AwardOutcome,
    AwardService,
    calculate_standstill_end_date,
    is_standstill_over,
    remaining_standstill_days,
)
from .bid_service import BidService
from .complaint_service import ComplaintService
from .container import Services, build_services, get_operations, get_services
from .contract_service import ContractService
from .document_versioning import DocumentVersioningService
from .email_service import (
    EmailMessage,
    EmailService,
    EmailTransport,
    FunctionRelayTransport,
    ResendTransport,
    TriggerDocumentTransport,
    build_transport,
)
from .notification_service import NotificationService
from .operations import TenderOperations
from .outbox import NotificationOutbox
from .preferences import NotificationPreferenceGate, PreferenceCache
from .reminder_service import ReminderService
from .storage import BlobStorage, LocalBlobStorage
from .tender_service import TenderService

__all__ = [
    "AwardOutcome",
    "AwardService",
    "BidService",
    "BlobStorage",
    "ComplaintService",
    "ContractService",
    "DocumentVersioningService",
    "EmailMessage",
    "EmailService",
    "EmailTransport",
    "FunctionRelayTransport",
    "LocalBlobStorage",
    "NotificationOutbox",
    "NotificationPreferenceGate",
    "NotificationService",
    "PreferenceCache",
    "ReminderService",
    "ResendTransport",
    "Services",
    "TenderOperations",
    "TenderService",
    "TriggerDocumentTransport",
    "build_services",
    "build_transport",
    "calculate_standstill_end_date",
    "get_operations",
    "get_services",
    "is_standstill_over",
    "remaining_standstill_days",
]
