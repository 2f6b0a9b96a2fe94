"""Pydantic schemas for domain entities and API validation."""

from .common import OperationResult
from .complaint import (
    Complaint,
    ComplaintComment,
    ComplaintCreate,
    ComplaintHistoryEntry,
    ComplaintStatus,
)
from .contract import (
    ActorSnapshot,
    Contract,
    ContractChange,
    ContractChangeCreate,
    ContractParty,
    ContractStatus,
    NsTerms,
)
from .document import DocumentChange, DocumentVersion, FileUpload, StoredBlob
from .notification import (
    DeliveryResult,
    DeliveryStatus,
    FanoutReport,
    InAppNotification,
    NotificationPreferences,
    NotificationType,
    OutboxEntry,
    OutboxStatus,
    User,
)
from .tender import (
    AwardedTo,
    AwardLetter,
    AwardLetterStatus,
    Bid,
    BidCreate,
    BidDocument,
    BidStatus,
    ContractStandard,
    Invitation,
    InvitationCreate,
    InvitationStatus,
    NS8405Terms,
    NS8406Terms,
    NS8407Terms,
    Project,
    Question,
    Tender,
    TenderCreate,
    TenderDocument,
    TenderStatus,
)

__all__ = [
    "ActorSnapshot",
    "AwardLetter",
    "AwardLetterStatus",
    "AwardedTo",
    "Bid",
    "BidCreate",
    "BidDocument",
    "BidStatus",
    "Complaint",
    "ComplaintComment",
    "ComplaintCreate",
    "ComplaintHistoryEntry",
    "ComplaintStatus",
    "Contract",
    "ContractChange",
    "ContractChangeCreate",
    "ContractParty",
    "ContractStandard",
    "ContractStatus",
    "DeliveryResult",
    "DeliveryStatus",
    "DocumentChange",
    "DocumentVersion",
    "FanoutReport",
    "FileUpload",
    "InAppNotification",
    "Invitation",
    "InvitationCreate",
    "InvitationStatus",
    "NS8405Terms",
    "NS8406Terms",
    "NS8407Terms",
    "NotificationPreferences",
    "NotificationType",
    "NsTerms",
    "OperationResult",
    "OutboxEntry",
    "OutboxStatus",
    "Project",
    "Question",
    "StoredBlob",
    "Tender",
    "TenderCreate",
    "TenderDocument",
    "TenderStatus",
    "User",
]
