"""
Entity repositories for the signature reconciler.

Provides:
- AgreementStore: LegalAgreement reads and partial updates
- DealRepository: Deal, DealDraft, Room and DealInvite operations
- ConnectionRepository: the persisted DocuSign OAuth connection

Repositories translate between raw store records and pydantic models. They
never decide anything; the reconciliation components do.
"""

from datetime import datetime
from enum import Enum
from typing import Any

import structlog

from .errors import AgreementNotFoundError, UniqueConstraintError
from .models.agreement import AgreementStatus, LegalAgreement
from .models.deal import Deal, DealDraft, DealInvite, Room
from .models.provider import DocuSignConnection
from .store.base import (
    DEAL,
    DEAL_DRAFT,
    DEAL_INVITE,
    DOCUSIGN_CONNECTION,
    LEGAL_AGREEMENT,
    NEWEST_FIRST,
    ROOM,
    EntityStore,
)

logger = structlog.get_logger(__name__)


def _serialize(fields: dict[str, Any]) -> dict[str, Any]:
    """Render enum and datetime values the way the store keeps them."""
    out: dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            out[key] = value.isoformat()
        elif isinstance(value, Enum):
            out[key] = value.value
        else:
            out[key] = value
    return out


class AgreementStore:
    """
    LegalAgreement access.

    Updates are partial: only the supplied fields are written, so a
    concurrent writer's fields are not clobbered.
    """

    def __init__(self, store: EntityStore):
        self.store = store

    async def get(self, agreement_id: str) -> LegalAgreement:
        """
        Load an agreement.

        Raises:
            AgreementNotFoundError: No agreement with this id
        """
        record = await self.store.get(LEGAL_AGREEMENT, agreement_id)
        if record is None:
            raise AgreementNotFoundError(
                'Agreement not found',
                context={'agreement_id': agreement_id},
            )
        return LegalAgreement.model_validate(record)

    async def update(self, agreement_id: str, fields: dict[str, Any]) -> LegalAgreement:
        """
        Write a partial update and return the merged agreement.

        Raises:
            AgreementNotFoundError: The agreement disappeared
        """
        record = await self.store.update(LEGAL_AGREEMENT, agreement_id, _serialize(fields))
        if record is None:
            raise AgreementNotFoundError(
                'Agreement not found',
                context={'agreement_id': agreement_id},
            )
        return LegalAgreement.model_validate(record)

    async def list_open_with_envelopes(self, limit: int | None = None) -> list[LegalAgreement]:
        """Agreements that have an envelope and are not yet fully signed."""
        records = await self.store.filter(
            LEGAL_AGREEMENT,
            {},
            order_by=NEWEST_FIRST,
            limit=limit,
            exclude={
                'docusign_envelope_id': None,
                'status': AgreementStatus.FULLY_SIGNED.value,
            },
        )
        return [LegalAgreement.model_validate(r) for r in records]


class DealRepository:
    """Deal, DealDraft, Room and DealInvite operations."""

    def __init__(self, store: EntityStore):
        self.store = store

    # =========================================================================
    # Deals
    # =========================================================================

    async def get_deal(self, deal_id: str) -> Deal | None:
        record = await self.store.get(DEAL, deal_id)
        return Deal.model_validate(record) if record else None

    async def find_deal_for_agreement(self, agreement_id: str) -> Deal | None:
        """The Deal materialized from ``agreement_id``, if any."""
        records = await self.store.filter(
            DEAL, {'current_legal_agreement_id': agreement_id}, limit=1
        )
        return Deal.model_validate(records[0]) if records else None

    async def create_deal(self, deal: Deal) -> Deal:
        """
        Create a Deal.

        Raises:
            UniqueConstraintError: A Deal for this agreement already exists
        """
        record = await self.store.create(DEAL, deal.to_create_payload())
        logger.info(
            'repository.deal_created',
            deal_id=record['id'],
            agreement_id=deal.current_legal_agreement_id,
        )
        return Deal.model_validate(record)

    async def create_deal_or_get_existing(self, deal: Deal) -> tuple[Deal, bool]:
        """
        Create a Deal, falling back to the existing one on a unique-key clash.

        Returns:
            Tuple of (deal, created)
        """
        try:
            return await self.create_deal(deal), True
        except UniqueConstraintError:
            existing = await self.find_deal_for_agreement(deal.current_legal_agreement_id)
            if existing is None:
                raise
            logger.info(
                'repository.deal_create_lost_race',
                deal_id=existing.id,
                agreement_id=deal.current_legal_agreement_id,
            )
            return existing, False

    async def update_deal(self, deal_id: str, fields: dict[str, Any]) -> Deal | None:
        record = await self.store.update(DEAL, deal_id, _serialize(fields))
        return Deal.model_validate(record) if record else None

    # =========================================================================
    # Drafts
    # =========================================================================

    async def get_draft(self, draft_id: str) -> DealDraft | None:
        record = await self.store.get(DEAL_DRAFT, draft_id)
        return DealDraft.model_validate(record) if record else None

    async def latest_draft_for_investor(self, investor_profile_id: str) -> DealDraft | None:
        records = await self.store.filter(
            DEAL_DRAFT,
            {'investor_profile_id': investor_profile_id},
            order_by=NEWEST_FIRST,
            limit=1,
        )
        return DealDraft.model_validate(records[0]) if records else None

    async def delete_draft(self, draft_id: str) -> bool:
        return await self.store.delete(DEAL_DRAFT, draft_id)

    # =========================================================================
    # Rooms
    # =========================================================================

    async def first_room_for_deal(self, deal_id: str) -> Room | None:
        records = await self.store.filter(ROOM, {'deal_id': deal_id}, limit=1)
        return Room.model_validate(records[0]) if records else None

    async def update_room(self, room_id: str, fields: dict[str, Any]) -> Room | None:
        record = await self.store.update(ROOM, room_id, _serialize(fields))
        return Room.model_validate(record) if record else None

    # =========================================================================
    # Invites
    # =========================================================================

    async def invites_for_deal(self, deal_id: str) -> list[DealInvite]:
        records = await self.store.filter(DEAL_INVITE, {'deal_id': deal_id})
        return [DealInvite.model_validate(r) for r in records]

    async def find_invite(self, deal_id: str, agent_profile_id: str) -> DealInvite | None:
        records = await self.store.filter(
            DEAL_INVITE,
            {'deal_id': deal_id, 'agent_profile_id': agent_profile_id},
            limit=1,
        )
        return DealInvite.model_validate(records[0]) if records else None

    async def update_invite(self, invite_id: str, fields: dict[str, Any]) -> DealInvite | None:
        record = await self.store.update(DEAL_INVITE, invite_id, _serialize(fields))
        return DealInvite.model_validate(record) if record else None


class ConnectionRepository:
    """Persisted DocuSign OAuth connection."""

    def __init__(self, store: EntityStore):
        self.store = store

    async def latest(self) -> DocuSignConnection | None:
        """Most recently created connection, or None if DocuSign was never connected."""
        records = await self.store.filter(
            DOCUSIGN_CONNECTION, {}, order_by=NEWEST_FIRST, limit=1
        )
        return DocuSignConnection.model_validate(records[0]) if records else None

    async def save_tokens(
        self,
        connection_id: str,
        access_token: str,
        refresh_token: str | None,
        expires_at: datetime,
    ) -> DocuSignConnection | None:
        record = await self.store.update(
            DOCUSIGN_CONNECTION,
            connection_id,
            _serialize({
                'access_token': access_token,
                'refresh_token': refresh_token,
                'expires_at': expires_at,
            }),
        )
        return DocuSignConnection.model_validate(record) if record else None
