"""Tender, invitation, bid, question and award letter schemas."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tenderflow.models import generate_id


class TenderStatus(str, Enum):
    """Tender lifecycle status."""

    DRAFT = "draft"  # Being prepared, invisible to suppliers
    OPEN = "open"  # Published, accepting questions and bids
    CLOSED = "closed"  # Deadline passed or closed manually
    AWARDED = "awarded"  # Winner chosen, standstill running or over


class InvitationStatus(str, Enum):
    INVITED = "invited"
    VIEWED = "viewed"
    SUBMITTED = "submitted"


class BidStatus(str, Enum):
    SUBMITTED = "submitted"
    AWARDED = "awarded"
    REJECTED = "rejected"


class AwardLetterStatus(str, Enum):
    STANDSTILL = "standstill"
    READY_FOR_SIGNING = "ready_for_signing"
    SIGNED = "signed"


class ContractStandard(str, Enum):
    """Norwegian standard contract forms."""

    NS8405 = "NS 8405"
    NS8406 = "NS 8406"
    NS8407 = "NS 8407"


# ============== Standard specific terms ==============


class NS8405Terms(BaseModel):
    """Execution contract (utførelsesentreprise), full version."""

    standard: Literal["NS 8405"] = "NS 8405"
    entreprisemodell: Optional[str] = None
    faktureringsplan: Optional[str] = None
    dagmulkt_sats: Optional[float] = None
    dagmulkt_maks_prosent: Optional[float] = None
    dagmulkt_startdato: Optional[datetime] = None
    endringsordre_terskel: Optional[float] = None
    garantiperiode_type: Optional[str] = None
    retensjon_prosent: Optional[float] = None
    sikkerhetsstillelse_prosent: Optional[float] = None
    sikkerhetsstillelse_type: Optional[str] = None


class NS8406Terms(BaseModel):
    """Simplified execution contract."""

    standard: Literal["NS 8406"] = "NS 8406"
    prisformat: Optional[str] = None
    standard_betalingsplan: Optional[str] = None
    depositum: Optional[float] = None
    sikkerhetsstillelse_prosent: Optional[float] = None


class NS8407Terms(BaseModel):
    """Design and build contract (totalentreprise)."""

    standard: Literal["NS 8407"] = "NS 8407"
    ytelsesbeskrivelse: Optional[str] = None
    funksjonskrav: Optional[str] = None
    prosjekteringsansvar: Optional[str] = None
    ansvarlig_prosjekterende: Optional[str] = None
    prosjekteringsomfang_prosent: Optional[float] = None
    dagmulkt_sats: Optional[float] = None
    dagmulkt_startdato: Optional[datetime] = None
    retensjon_prosent: Optional[float] = None
    sikkerhetsstillelse_prosent: Optional[float] = None


StandardTerms = Annotated[
    Union[NS8405Terms, NS8406Terms, NS8407Terms],
    Field(discriminator="standard"),
]


# ============== Tender parts ==============


class Invitation(BaseModel):
    """A supplier invited to bid."""

    supplier_id: Optional[str] = None
    company_id: Optional[str] = None
    company_name: str = ""
    org_number: str = ""
    email: str = ""
    invited_at: Optional[datetime] = None
    status: InvitationStatus = InvitationStatus.INVITED
    viewed_at: Optional[datetime] = None

    def matches(self, supplier_id: str | None = None, email: str | None = None) -> bool:
        """Match by supplier id first, then case-insensitive email."""
        if supplier_id and self.supplier_id and self.supplier_id == supplier_id:
            return True
        if email and self.email:
            return self.email.strip().lower() == email.strip().lower()
        return False


class BidDocument(BaseModel):
    id: str = Field(default_factory=lambda: f"bidoc_{generate_id()}")
    name: str
    type: str = "file"
    size: int = 0
    url: Optional[str] = None
    storage_path: Optional[str] = None


class Bid(BaseModel):
    """A supplier's offer. Bids are append-only."""

    id: str = Field(default_factory=lambda: f"bid_{generate_id()}")
    tender_id: str
    supplier_id: Optional[str] = None
    company_id: Optional[str] = None
    company_name: str = ""
    submitted_at: datetime
    price: Optional[float] = None
    price_structure: str = "fastpris"
    hourly_rate: Optional[float] = None
    estimated_hours: Optional[float] = None
    documents: list[BidDocument] = Field(default_factory=list)
    notes: Optional[str] = None
    status: BidStatus = BidStatus.SUBMITTED
    score: Optional[float] = None


class Question(BaseModel):
    id: str = Field(default_factory=lambda: f"qa_{generate_id()}")
    tender_id: str
    question: str
    asked_by: Optional[str] = None
    asked_by_company: str = ""
    asked_at: datetime
    answer: str = ""
    answered_by: Optional[str] = None
    answered_at: Optional[datetime] = None


class TenderDocument(BaseModel):
    """Current state of a logical tender document; history lives in document versions."""

    id: str = Field(default_factory=lambda: f"doc_{generate_id()}")
    name: str
    type: str = "file"
    size: int = 0
    url: Optional[str] = None
    storage_path: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    uploaded_by: Optional[str] = None


class AwardedTo(BaseModel):
    model_config = ConfigDict(frozen=True)

    company_id: Optional[str] = None
    company_name: str = ""
    supplier_id: Optional[str] = None


class AwardLetter(BaseModel):
    """Immutable snapshot of an award decision and its standstill window."""

    model_config = ConfigDict(frozen=True)

    tender_id: str
    bid_id: str
    project_id: Optional[str] = None
    awarded_to: AwardedTo
    awarded_at: datetime
    standstill_start_date: datetime
    standstill_end_date: datetime
    standstill_period_days: int
    contract_standard: Optional[ContractStandard] = None
    price: Optional[float] = None
    price_structure: Optional[str] = None
    status: AwardLetterStatus = AwardLetterStatus.STANDSTILL
    generated_at: datetime


# ============== Tender ==============


class Tender(BaseModel):
    """
    Tender entity.

    Lifecycle:
    1. draft -> created by a sender, invisible to suppliers
    2. open -> published, invitations sent, questions and bids accepted
    3. closed -> deadline passed (sweep) or closed manually; may be reopened
    4. awarded -> a bid has won; standstill window gates the contract
    """

    id: str
    project_id: Optional[str] = None
    title: str
    description: str = ""
    contract_standard: Optional[ContractStandard] = None
    standard_terms: Optional[StandardTerms] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    deadline: Optional[datetime] = None
    publish_date: Optional[datetime] = None
    question_deadline: Optional[datetime] = None
    price: Optional[float] = None
    entrepriseform: Optional[str] = None
    cpv: Optional[str] = None
    evaluation_criteria: list[dict] = Field(default_factory=list)
    status: TenderStatus = TenderStatus.DRAFT

    invited_suppliers: list[Invitation] = Field(default_factory=list)
    invited_supplier_ids: list[str] = Field(default_factory=list)
    bids: list[Bid] = Field(default_factory=list)
    qa: list[Question] = Field(default_factory=list)
    documents: list[TenderDocument] = Field(default_factory=list)

    awarded_bid_id: Optional[str] = None
    awarded_at: Optional[datetime] = None
    standstill_start_date: Optional[datetime] = None
    standstill_end_date: Optional[datetime] = None
    award_letter: Optional[AwardLetter] = None

    def find_bid(self, bid_id: str) -> Bid | None:
        return next((bid for bid in self.bids if bid.id == bid_id), None)

    def find_invitation_for_bid(self, bid: Bid) -> Invitation | None:
        """Invitation matching a bidder by supplier id, then company id."""
        for invitation in self.invited_suppliers:
            if bid.supplier_id and invitation.supplier_id == bid.supplier_id:
                return invitation
        for invitation in self.invited_suppliers:
            if bid.company_id and invitation.company_id == bid.company_id:
                return invitation
        return None


class TenderCreate(BaseModel):
    """Input for creating a tender."""

    project_id: Optional[str] = None
    title: str = ""
    description: str = ""
    contract_standard: Optional[ContractStandard] = None
    standard_terms: Optional[StandardTerms] = None
    deadline: Optional[datetime] = None
    publish_date: Optional[datetime] = None
    question_deadline: Optional[datetime] = None
    price: Optional[float] = None
    entrepriseform: Optional[str] = None
    cpv: Optional[str] = None
    evaluation_criteria: list[dict] = Field(default_factory=list)
    status: TenderStatus = TenderStatus.DRAFT
    invited_suppliers: list[Invitation] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_standard_terms(self):
        """Standard terms must belong to the selected contract standard."""
        if self.standard_terms is None:
            return self
        if self.contract_standard is None or self.standard_terms.standard != self.contract_standard.value:
            raise ValueError("standard_terms do not match contract_standard")
        return self


class InvitationCreate(BaseModel):
    """Input for inviting a supplier."""

    supplier_id: Optional[str] = None
    company_id: Optional[str] = None
    company_name: str = ""
    org_number: str = ""
    email: str = ""


class BidCreate(BaseModel):
    """Input for submitting a bid."""

    price: Optional[float] = None
    price_structure: str = "fastpris"
    hourly_rate: Optional[float] = None
    estimated_hours: Optional[float] = None
    notes: Optional[str] = None


class Project(BaseModel):
    """Owning project; only the fields the award and contract flows read."""

    id: Optional[str] = None
    name: str = ""
    owner_company_id: Optional[str] = None
