"""
Result types returned by the reconciliation components.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import PartialSuccessResult


class ReconcileStatus(str, Enum):
    """Status discriminator of a reconcile response."""

    PENDING = 'pending'
    SIGNED = 'signed'
    DEAL_EXISTS = 'deal_exists'
    DEAL_CREATED = 'deal_created'


@dataclass
class ReconcileOutcome:
    """
    Outcome of one reconcile call.

    ``pending`` is an expected, non-error result: the provider webhook will
    finish the job.
    """

    status: ReconcileStatus
    agreement_id: str | None = None
    deal_id: str | None = None
    room_id: str | None = None
    message: str | None = None

    # Best-effort side effects that ran during this call
    side_effects: PartialSuccessResult = field(default_factory=PartialSuccessResult)

    def to_dict(self) -> dict[str, Any]:
        """JSON response body. Absent optional fields are omitted."""
        body: dict[str, Any] = {'status': self.status.value}
        if self.agreement_id is not None:
            body['agreement_id'] = self.agreement_id
        if self.deal_id is not None or self.status in (
            ReconcileStatus.DEAL_EXISTS,
            ReconcileStatus.DEAL_CREATED,
        ):
            body['deal_id'] = self.deal_id
            body['room_id'] = self.room_id
        if self.message:
            body['message'] = self.message
        return body


@dataclass
class LockResult:
    """Outcome of the one-time agent lock on a fully signed agreement."""

    deal_id: str | None
    room_id: str | None
    locked: bool = False
    already_locked: bool = False
    locked_agent_id: str | None = None
    side_effects: PartialSuccessResult = field(default_factory=PartialSuccessResult)


@dataclass
class SweepResult:
    """Aggregate result of reconciling every open agreement once."""

    total: int = 0
    reconciled: int = 0
    unchanged: int = 0
    items: PartialSuccessResult = field(default_factory=PartialSuccessResult)

    def to_dict(self) -> dict[str, Any]:
        return {
            'total': self.total,
            'reconciled': self.reconciled,
            'unchanged': self.unchanged,
            **self.items.to_dict(),
        }
