"""
Agreement state-transition rules.

Pure functions: given the stored agreement, the acting role and (optionally)
a provider snapshot, compute the fields that must change. No I/O.

The rules are deterministic and monotone, so two writers applying the same
provider facts in either order converge on the same record:

- a signed-at timestamp is only ever set, never cleared or moved
- ``status`` is derived from the two timestamps and never moves backwards
- ``docusign_status`` is ``completed`` exactly when fully signed
"""

from datetime import datetime
from typing import Any

from ..models.agreement import AgreementStatus, DocuSignStatus, LegalAgreement, SignerRole
from ..models.provider import RecipientSnapshot
from ..utils import ensure_utc

SIGNED_AT_FIELD: dict[SignerRole, str] = {
    SignerRole.INVESTOR: 'investor_signed_at',
    SignerRole.AGENT: 'agent_signed_at',
}


def newly_completed_roles(
    agreement: LegalAgreement,
    snapshot: RecipientSnapshot,
) -> list[SignerRole]:
    """Recipient roles the snapshot shows completed but the agreement has not recorded."""
    return [
        role
        for role in SignerRole
        if agreement.is_recipient(role)
        and not agreement.has_signed(role)
        and snapshot.is_completed(agreement.recipient_id(role))
    ]


def compute_transition(
    agreement: LegalAgreement,
    role: SignerRole,
    snapshot: RecipientSnapshot | None = None,
) -> dict[str, Any]:
    """
    Compute the agreement fields to write after ``role`` is confirmed signed.

    Args:
        agreement: Agreement as currently stored
        role: Acting role whose completion triggered the transition
        snapshot: Provider recipient list, or None when the role's signature
                  is already recorded (no polling happened)

    Returns:
        Delta of changed fields only. Empty when nothing changes.
    """
    signed_at: dict[SignerRole, datetime | None] = {
        r: agreement.signed_at(r) for r in SignerRole
    }

    if snapshot is not None:
        for r in newly_completed_roles(agreement, snapshot):
            signed_at[r] = ensure_utc(snapshot.signed_at(agreement.recipient_id(r)))

    # Transitions are driven by the acting role; without its signature nothing moves
    if signed_at[role] is None:
        return {}

    delta: dict[str, Any] = {}
    for r in SignerRole:
        if agreement.signed_at(r) is None and signed_at[r] is not None:
            delta[SIGNED_AT_FIELD[r]] = signed_at[r]

    investor_signed = signed_at[SignerRole.INVESTOR] is not None
    agent_signed = signed_at[SignerRole.AGENT] is not None

    status = AgreementStatus.from_signatures(investor_signed, agent_signed)
    if status != agreement.status and status.rank >= agreement.status.rank:
        delta['status'] = status

    if status is AgreementStatus.FULLY_SIGNED:
        docusign_status = DocuSignStatus.COMPLETED
    else:
        only_signer = SignerRole.INVESTOR if investor_signed else SignerRole.AGENT
        docusign_status = DocuSignStatus.for_partial_role(only_signer)
    if docusign_status != agreement.docusign_status and (
        agreement.docusign_status is not DocuSignStatus.COMPLETED
    ):
        delta['docusign_status'] = docusign_status

    return delta


def apply_transition(agreement: LegalAgreement, delta: dict[str, Any]) -> LegalAgreement:
    """Local view of ``agreement`` with ``delta`` applied."""
    if not delta:
        return agreement
    return agreement.model_copy(update=delta)
