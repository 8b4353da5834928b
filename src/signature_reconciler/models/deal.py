"""
DealDraft, Deal, Room and DealInvite models.

DealDraft is the investor's pre-agreement staging record; it is read once and
deleted when the Deal is materialized. Deal is the durable commercial
aggregate, keyed for idempotency by ``current_legal_agreement_id``. Room and
DealInvite are created by the invite fan-out function; this service only
updates their status fields.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PipelineStage(str, Enum):
    """Deal pipeline stages touched by signature reconciliation."""

    NEW_DEALS = 'new_deals'
    CONNECTED_DEALS = 'connected_deals'


class CommissionType(str, Enum):
    """Canonical commission vocabulary on a Deal."""

    PERCENTAGE = 'percentage'
    FLAT_FEE = 'flat_fee'


class InviteStatus(str, Enum):
    """DealInvite lifecycle values this service reads or writes."""

    PENDING_AGENT_SIGNATURE = 'PENDING_AGENT_SIGNATURE'
    LOCKED = 'LOCKED'


class RoomRequestStatus(str, Enum):
    ACCEPTED = 'accepted'
    SIGNED = 'signed'


# =============================================================================
# DealDraft
# =============================================================================


class DealDraft(BaseModel):
    """Investor-entered deal parameters captured before the agreement is signed."""

    model_config = ConfigDict(extra='allow')

    id: str
    investor_profile_id: str | None = None
    selected_agent_ids: list[str] = Field(default_factory=list)

    # Property
    property_address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    county: str | None = None
    property_type: str | None = None
    beds: int | float | None = None
    baths: int | float | None = None
    sqft: int | float | None = None
    year_built: int | None = None
    number_of_stories: int | str | None = None
    has_basement: bool | str | None = None

    # Financials
    purchase_price: int | float | None = None
    earnest_money: int | float | None = None
    closing_date: str | None = None
    contract_date: str | None = None

    # Seller
    seller_name: str | None = None
    number_of_signers: int | str | None = None
    second_signer_name: str | None = None

    # Commission terms
    buyer_commission_type: str | None = None
    buyer_commission_percentage: float | None = None
    buyer_flat_fee: float | None = None
    seller_commission_type: str | None = None
    seller_commission_percentage: float | None = None
    seller_flat_fee: float | None = None
    agreement_length: int | None = None

    special_notes: str | None = None
    contract_url: str | None = None

    # Walkthrough
    walkthrough_scheduled: bool | None = None
    walkthrough_date: str | None = None
    walkthrough_time: str | None = None


# =============================================================================
# Deal
# =============================================================================


class KeyDates(BaseModel):
    closing_date: str | None = None
    contract_date: str | None = None


class PropertyDetails(BaseModel):
    beds: int | float | None = None
    baths: int | float | None = None
    sqft: int | float | None = None
    year_built: int | None = None
    number_of_stories: int | str | None = None
    has_basement: bool | str | None = None


class SellerInfo(BaseModel):
    seller_name: str | None = None
    earnest_money: int | float | None = None
    number_of_signers: int | str | None = None
    second_signer_name: str | None = None


class ProposedTerms(BaseModel):
    """Commission terms proposed to the selected agents."""

    seller_commission_type: str | None = CommissionType.PERCENTAGE.value
    seller_commission_percentage: float | None = None
    seller_flat_fee: float | None = None
    buyer_commission_type: str | None = CommissionType.PERCENTAGE.value
    buyer_commission_percentage: float | None = None
    buyer_flat_fee: float | None = None
    agreement_length: int | None = 180


class ContractDocument(BaseModel):
    url: str
    name: str = 'contract.pdf'
    uploaded_at: datetime


class Deal(BaseModel):
    """
    Durable commercial aggregate, created exactly once per agreement.

    ``current_legal_agreement_id`` is the idempotency key: at most one Deal
    exists for a given agreement. ``locked_agent_id`` is written once, when
    an agent's agreement reaches full signature.
    """

    model_config = ConfigDict(extra='allow')

    id: str | None = Field(default=None, description='Assigned by the entity store on create')

    title: str | None = None
    description: str | None = ''
    property_address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    county: str | None = None
    purchase_price: int | float | None = None
    key_dates: KeyDates = Field(default_factory=KeyDates)
    property_type: str | None = None
    property_details: PropertyDetails = Field(default_factory=PropertyDetails)
    seller_info: SellerInfo = Field(default_factory=SellerInfo)
    proposed_terms: ProposedTerms = Field(default_factory=ProposedTerms)
    contract_document: ContractDocument | None = None

    status: str = 'active'
    pipeline_stage: str = PipelineStage.NEW_DEALS.value
    investor_id: str | None = None
    selected_agent_ids: list[str] = Field(default_factory=list)
    pending_agreement_generation: bool = False
    current_legal_agreement_id: str | None = None

    walkthrough_scheduled: bool | None = False
    walkthrough_date: str | None = None
    walkthrough_time: str | None = None

    # Agent lock (set once, on full signature)
    locked_room_id: str | None = None
    locked_agent_id: str | None = None
    agent_id: str | None = None
    connected_at: datetime | None = None

    @property
    def is_locked(self) -> bool:
        return bool(self.locked_agent_id)

    def to_create_payload(self) -> dict:
        """Store payload for a new Deal (id is assigned by the store)."""
        return self.model_dump(mode='json', exclude={'id'})


# =============================================================================
# Room / DealInvite
# =============================================================================


class Room(BaseModel):
    """Negotiation room shared by the investor and the selected agents."""

    model_config = ConfigDict(extra='allow')

    id: str
    deal_id: str | None = None
    agreement_status: str | None = None
    request_status: str | None = None


class DealInvite(BaseModel):
    """Per-agent invitation to a Deal."""

    model_config = ConfigDict(extra='allow')

    id: str
    deal_id: str | None = None
    agent_profile_id: str | None = None
    room_id: str | None = None
    status: str | None = None
