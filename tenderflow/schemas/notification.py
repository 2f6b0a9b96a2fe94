"""Notification, preference and delivery report schemas."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """
    Closed set of notification categories.

    Each member carries the user preference flag that controls it; ``None``
    means the category is never restricted by a per-category toggle.
    """

    def __new__(cls, value: str, preference_key: str | None):
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj.preference_key = preference_key
        return obj

    TENDER_INVITATION = ("tender_invitation", "invitation_notifications")
    NEW_BID = ("new_bid", "bid_notifications")
    DEADLINE_REMINDER = ("tender_deadline_reminder", "deadline_reminder_notifications")
    QUESTION_ASKED = ("question_asked", "question_notifications")
    QUESTION_ANSWERED = ("question_answered", "question_notifications")
    CONTRACT_UPDATED = ("contract_updated", "contract_notifications")
    CONTRACT_SIGNED = ("contract_signed", "contract_notifications")
    TENDER_AWARDED = ("tender_awarded", None)
    BID_REJECTED = ("bid_rejected", None)
    COMPLAINT_SUBMITTED = ("complaint_submitted", None)
    COMPLAINT_STATUS_UPDATE = ("complaint_status_update", None)


class NotificationPreferences(BaseModel):
    """Per-user toggles. Unset means allowed."""

    email_notifications: Optional[bool] = None
    invitation_notifications: Optional[bool] = None
    bid_notifications: Optional[bool] = None
    deadline_reminder_notifications: Optional[bool] = None
    question_notifications: Optional[bool] = None
    contract_notifications: Optional[bool] = None
    project_notifications: Optional[bool] = None

    def allows(self, key: str | None) -> bool:
        if key is None:
            return True
        return getattr(self, key, None) is not False


class User(BaseModel):
    """The parts of a user profile the core reads."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    company_id: Optional[str] = None
    company_name: Optional[str] = None
    role: Optional[str] = None
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)


class InAppNotification(BaseModel):
    id: Optional[str] = None
    user_id: str
    type: NotificationType
    title: str
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    action_url: Optional[str] = None
    read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    SKIPPED = "skipped"  # transport administratively disabled or user opted out
    FAILED = "failed"


@dataclass
class DeliveryResult:
    """Outcome of a single send. Skipped counts as success."""

    status: DeliveryStatus
    error: str | None = None
    message_id: str | None = None

    @property
    def success(self) -> bool:
        return self.status != DeliveryStatus.FAILED

    @classmethod
    def delivered(cls, message_id: str | None = None) -> "DeliveryResult":
        return cls(DeliveryStatus.DELIVERED, message_id=message_id)

    @classmethod
    def skipped(cls) -> "DeliveryResult":
        return cls(DeliveryStatus.SKIPPED)

    @classmethod
    def failed(cls, error: str) -> "DeliveryResult":
        return cls(DeliveryStatus.FAILED, error=error)


@dataclass
class FanoutReport:
    """Per-recipient outcome of a batch send."""

    succeeded: int = 0
    failed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def record(self, recipient: str, result: DeliveryResult, **context) -> None:
        if result.success:
            self.succeeded += 1
        else:
            self.failed += 1
            self.errors.append({"recipient": recipient, "error": result.error, **context})

    def merge(self, other: "FanoutReport") -> None:
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.errors.extend(other.errors)

    def to_dict(self) -> dict[str, Any]:
        return {"succeeded": self.succeeded, "failed": self.failed, "errors": list(self.errors)}


class OutboxStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    DEAD = "dead"


class OutboxEntry(BaseModel):
    """A failed email waiting to be retried."""

    id: Optional[str] = None
    channel: str = "email"
    to: str
    subject: str
    html: str
    event: Optional[str] = None
    attempts: int = 1
    status: OutboxStatus = OutboxStatus.PENDING
    next_attempt_at: datetime
    last_error: Optional[str] = None
    created_at: datetime
    delivered_at: Optional[datetime] = None
