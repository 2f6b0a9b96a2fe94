"""Contract schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from tenderflow.models import generate_id

from .tender import ContractStandard


class ContractStatus(str, Enum):
    """Contract status. signed/amended never go back to draft."""

    DRAFT = "draft"
    PENDING_SIGNATURE = "pending_signature"
    SIGNED = "signed"
    AMENDED = "amended"


class ContractParty(BaseModel):
    company_id: Optional[str] = None
    company_name: str = ""


class NsTerms(BaseModel):
    """Light version of the NS standard terms mirrored into the contract."""

    standard: Optional[ContractStandard] = None
    work_description: str = ""
    price_basis: Optional[str] = None
    payment_terms: str = "30 dager"
    warranty_period: str = "2 år"
    start_date: Optional[datetime] = None
    completion_date: Optional[datetime] = None


class ActorSnapshot(BaseModel):
    """Who signed or changed a contract, frozen at that moment."""

    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    company_id: Optional[str] = None
    company_name: Optional[str] = None


class ContractChange(BaseModel):
    """Audit trail entry. Never edited or removed."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"change_{generate_id()}")
    version: int
    changed_at: datetime
    changed_by: ActorSnapshot
    field: str
    old_value: Any = None
    new_value: Any = None
    reason: str = ""


class ContractChangeCreate(BaseModel):
    """Input for amending a contract."""

    field: str
    old_value: Any = None
    new_value: Any = None
    reason: str = ""


class Contract(BaseModel):
    id: str
    tender_id: Optional[str] = None
    bid_id: Optional[str] = None
    project_id: Optional[str] = None
    contract_standard: Optional[ContractStandard] = None
    status: ContractStatus = ContractStatus.DRAFT
    created_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    signed_by: Optional[ActorSnapshot] = None
    version: int = 1
    changes: list[ContractChange] = Field(default_factory=list)

    customer: ContractParty = Field(default_factory=ContractParty)
    supplier: ContractParty = Field(default_factory=ContractParty)

    title: str = ""
    description: str = ""
    price: Optional[float] = None
    price_structure: Optional[str] = None
    hourly_rate: Optional[float] = None
    estimated_hours: Optional[float] = None
    deadline: Optional[datetime] = None
    ns_terms: NsTerms = Field(default_factory=NsTerms)
