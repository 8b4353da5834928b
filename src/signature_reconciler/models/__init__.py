"""
Data models for the signature reconciler.
"""

from .agreement import (
    AgreementStatus,
    DocuSignStatus,
    ExhibitATerms,
    LegalAgreement,
    SignerMode,
    SignerRole,
)
from .deal import (
    CommissionType,
    Deal,
    DealDraft,
    DealInvite,
    InviteStatus,
    PipelineStage,
    ProposedTerms,
    Room,
)
from .outcome import LockResult, ReconcileOutcome, ReconcileStatus, SweepResult
from .provider import (
    DocuSignConnection,
    ProviderSession,
    RecipientSnapshot,
    RecipientStatus,
    TokenGrant,
)

__all__ = [
    'AgreementStatus',
    'DocuSignStatus',
    'ExhibitATerms',
    'LegalAgreement',
    'SignerMode',
    'SignerRole',
    'CommissionType',
    'Deal',
    'DealDraft',
    'DealInvite',
    'InviteStatus',
    'PipelineStage',
    'ProposedTerms',
    'Room',
    'LockResult',
    'ReconcileOutcome',
    'ReconcileStatus',
    'SweepResult',
    'DocuSignConnection',
    'ProviderSession',
    'RecipientSnapshot',
    'RecipientStatus',
    'TokenGrant',
]
