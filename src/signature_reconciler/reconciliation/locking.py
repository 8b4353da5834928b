"""
Agent lock-in on full signature.

When an agent's agreement becomes fully signed the room is marked signed,
the agent's invite is locked and the Deal is locked to that agent. The Deal
lock is written once: the first fully-signed agent wins and later calls
leave ``locked_agent_id`` untouched.
"""

import structlog

from ..errors import PartialSuccessResult
from ..models.agreement import AgreementStatus, LegalAgreement
from ..models.deal import InviteStatus, PipelineStage, RoomRequestStatus
from ..models.outcome import LockResult
from ..repository import DealRepository
from ..utils import utc_now

logger = structlog.get_logger(__name__)


class AgentLockCoordinator:
    """Applies room, invite and Deal updates for a fully signed agreement."""

    def __init__(self, deals: DealRepository):
        self.deals = deals

    async def on_fully_signed(self, agreement: LegalAgreement) -> LockResult:
        """
        Lock the agreement's agent onto its Deal.

        Every step is best-effort; failures are recorded on the result and
        logged, never raised.

        Args:
            agreement: Fully signed agreement

        Returns:
            LockResult describing what was locked
        """
        log = logger.bind(agreement_id=agreement.id, room_id=agreement.room_id)
        result = LockResult(deal_id=agreement.deal_id, room_id=agreement.room_id)

        if not agreement.room_id:
            log.info('locking.skipped_no_room')
            return result

        effects = result.side_effects

        # Room
        try:
            await self.deals.update_room(
                agreement.room_id,
                {
                    'agreement_status': AgreementStatus.FULLY_SIGNED,
                    'request_status': RoomRequestStatus.SIGNED,
                },
            )
            effects.add_success('room')
        except Exception as e:
            log.warning('locking.room_update_failed', error=str(e))
            effects.add_failure(e, 'room')

        if not agreement.deal_id:
            log.info('locking.skipped_no_deal')
            return result

        # Invite
        if agreement.agent_profile_id:
            try:
                invite = await self.deals.find_invite(agreement.deal_id, agreement.agent_profile_id)
                if invite is not None:
                    await self.deals.update_invite(invite.id, {'status': InviteStatus.LOCKED})
                    effects.add_success('invite', {'invite_id': invite.id})
            except Exception as e:
                log.warning('locking.invite_update_failed', error=str(e))
                effects.add_failure(e, 'invite')

        # Deal
        try:
            await self._lock_deal(agreement, result, effects, log)
        except Exception as e:
            log.warning('locking.deal_lock_failed', error=str(e))
            effects.add_failure(e, 'deal')

        return result

    async def _lock_deal(
        self,
        agreement: LegalAgreement,
        result: LockResult,
        effects: PartialSuccessResult,
        log,
    ) -> None:
        deal = await self.deals.get_deal(agreement.deal_id)
        if deal is None:
            log.info('locking.deal_not_found', deal_id=agreement.deal_id)
            return

        if deal.is_locked:
            result.already_locked = True
            result.locked_agent_id = deal.locked_agent_id
            log.info('locking.already_locked', locked_agent_id=deal.locked_agent_id)
            return

        if not agreement.agent_profile_id:
            return

        await self.deals.update_deal(
            deal.id,
            {
                'locked_room_id': agreement.room_id,
                'locked_agent_id': agreement.agent_profile_id,
                'agent_id': agreement.agent_profile_id,
                'connected_at': utc_now(),
                'pipeline_stage': PipelineStage.CONNECTED_DEALS,
                'selected_agent_ids': [agreement.agent_profile_id],
            },
        )
        result.locked = True
        result.locked_agent_id = agreement.agent_profile_id
        effects.add_success('deal', {'deal_id': deal.id})
        log.info('locking.deal_locked', deal_id=deal.id, agent_id=agreement.agent_profile_id)
