"""
LegalAgreement model and its closed status vocabularies.

A LegalAgreement is a two-party contract routed through DocuSign. Each signer
role (investor, agent) completes independently; the aggregate ``status`` is
never stored on its own terms but always derived from the two signed-at
timestamps, which is what keeps it monotonic:

    sent -> investor_signed | agent_signed -> fully_signed

``docusign_status`` mirrors the provider and is ``completed`` exactly when
``status`` is ``fully_signed``.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SignerRole(str, Enum):
    """The two signer roles on an agreement."""

    INVESTOR = 'investor'
    AGENT = 'agent'

    @property
    def other(self) -> 'SignerRole':
        return SignerRole.AGENT if self is SignerRole.INVESTOR else SignerRole.INVESTOR


class SignerMode(str, Enum):
    """Which roles are recipients on the agreement's envelope."""

    BOTH = 'both'
    INVESTOR_ONLY = 'investor_only'
    AGENT_ONLY = 'agent_only'


class AgreementStatus(str, Enum):
    """Aggregate signing status. Ordered from least to most signed."""

    SENT = 'sent'
    INVESTOR_SIGNED = 'investor_signed'
    AGENT_SIGNED = 'agent_signed'
    FULLY_SIGNED = 'fully_signed'

    @classmethod
    def from_signatures(cls, investor_signed: bool, agent_signed: bool) -> 'AgreementStatus':
        """Derive the status from which roles have signed."""
        return _STATUS_BY_SIGNATURES[(investor_signed, agent_signed)]

    @classmethod
    def for_role(cls, role: SignerRole) -> 'AgreementStatus':
        """Single-role status for the given signer."""
        return _SINGLE_ROLE_STATUS[role]

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_BY_SIGNATURES: dict[tuple[bool, bool], AgreementStatus] = {
    (False, False): AgreementStatus.SENT,
    (True, False): AgreementStatus.INVESTOR_SIGNED,
    (False, True): AgreementStatus.AGENT_SIGNED,
    (True, True): AgreementStatus.FULLY_SIGNED,
}

_SINGLE_ROLE_STATUS: dict[SignerRole, AgreementStatus] = {
    SignerRole.INVESTOR: AgreementStatus.INVESTOR_SIGNED,
    SignerRole.AGENT: AgreementStatus.AGENT_SIGNED,
}

# investor_signed and agent_signed are incomparable; both sit one step above sent
_STATUS_RANK: dict[AgreementStatus, int] = {
    AgreementStatus.SENT: 0,
    AgreementStatus.INVESTOR_SIGNED: 1,
    AgreementStatus.AGENT_SIGNED: 1,
    AgreementStatus.FULLY_SIGNED: 2,
}


class DocuSignStatus(str, Enum):
    """Provider-mirrored envelope status."""

    SENT = 'sent'
    DELIVERED = 'delivered'
    COMPLETED = 'completed'

    @classmethod
    def for_partial_role(cls, role: SignerRole) -> 'DocuSignStatus':
        """Envelope status while only ``role`` has signed."""
        return _PARTIAL_DOCUSIGN_STATUS[role]


_PARTIAL_DOCUSIGN_STATUS: dict[SignerRole, DocuSignStatus] = {
    SignerRole.INVESTOR: DocuSignStatus.SENT,
    SignerRole.AGENT: DocuSignStatus.DELIVERED,
}


class ExhibitATerms(BaseModel):
    """
    Commission and term overrides embedded in the signed agreement.

    These are authoritative over the originating DealDraft's terms.
    """

    model_config = ConfigDict(extra='allow')

    buyer_commission_type: str | None = None
    buyer_commission_percentage: float | None = None
    buyer_flat_fee: float | None = None
    seller_commission_type: str | None = None
    seller_commission_percentage: float | None = None
    seller_flat_fee: float | None = None
    agreement_length_days: int | None = None
    agreement_length: int | None = None


class LegalAgreement(BaseModel):
    """
    Two-party agreement routed through the e-signature provider.

    Only the fields this service reads or writes are declared; the rest of
    the stored record passes through untouched.
    """

    model_config = ConfigDict(extra='allow')

    id: str = Field(..., description='Agreement identifier')

    # Provider linkage
    docusign_envelope_id: str | None = Field(default=None, description='DocuSign envelope id')
    investor_recipient_id: str | None = Field(
        default=None, description='Recipient id of the investor (defaults to "1")'
    )
    agent_recipient_id: str | None = Field(
        default=None, description='Recipient id of the agent (defaults to "2")'
    )
    signer_mode: SignerMode = Field(
        default=SignerMode.BOTH, description='Which roles are recipients on the envelope'
    )

    # Per-role completion
    investor_signed_at: datetime | None = None
    agent_signed_at: datetime | None = None

    status: AgreementStatus = AgreementStatus.SENT
    docusign_status: DocuSignStatus = DocuSignStatus.SENT

    # Commercial context
    deal_id: str | None = Field(
        default=None,
        description='DealDraft id until the Deal is materialized, then the Deal id',
    )
    investor_profile_id: str | None = None
    agent_profile_id: str | None = None
    room_id: str | None = None
    exhibit_a_terms: ExhibitATerms | None = None

    @field_validator('investor_recipient_id', 'agent_recipient_id', mode='before')
    @classmethod
    def _coerce_recipient_id(cls, value):
        return str(value) if value is not None else value

    def signed_at(self, role: SignerRole) -> datetime | None:
        """Signed-at timestamp for ``role``."""
        if role is SignerRole.INVESTOR:
            return self.investor_signed_at
        return self.agent_signed_at

    def has_signed(self, role: SignerRole) -> bool:
        return self.signed_at(role) is not None

    @property
    def is_fully_signed(self) -> bool:
        return self.investor_signed_at is not None and self.agent_signed_at is not None

    def is_recipient(self, role: SignerRole) -> bool:
        """True when ``role`` is a signer on this agreement's envelope."""
        if self.signer_mode is SignerMode.BOTH:
            return True
        if self.signer_mode is SignerMode.INVESTOR_ONLY:
            return role is SignerRole.INVESTOR
        return role is SignerRole.AGENT

    def recipient_id(self, role: SignerRole) -> str:
        """
        Envelope recipient id for ``role``.

        Dual-signer envelopes default to "1" (investor) and "2" (agent).
        A single-signer envelope has only recipient "1", whatever is stored.
        """
        if self.signer_mode is not SignerMode.BOTH:
            return '1'
        if role is SignerRole.INVESTOR:
            return str(self.investor_recipient_id or '1')
        return str(self.agent_recipient_id or '2')
