"""
Deal materialization.

Turns the investor's DealDraft into a Deal exactly once per agreement, then
fans out best-effort side effects (draft deletion, room/invite creation).

Idempotency ladder:
1. A Deal already points at this agreement -> deal_exists
2. agreement.deal_id already resolves to a real Deal -> deal_exists
3. Otherwise build from the draft and create; a unique-key clash on
   ``current_legal_agreement_id`` means another writer won -> deal_exists
"""

from typing import Any, Awaitable

import structlog

from ..clients.function_client import FunctionClient
from ..errors import DraftNotFoundError, NoAgentsSelectedError, PartialSuccessResult
from ..models.agreement import AgreementStatus, LegalAgreement
from ..models.deal import (
    CommissionType,
    ContractDocument,
    Deal,
    DealDraft,
    KeyDates,
    PipelineStage,
    PropertyDetails,
    ProposedTerms,
    SellerInfo,
)
from ..models.outcome import ReconcileOutcome, ReconcileStatus
from ..repository import AgreementStore, DealRepository
from ..utils import utc_now

logger = structlog.get_logger(__name__)

DEFAULT_AGREEMENT_LENGTH_DAYS = 180
MIN_WALKTHROUGH_DATE_LENGTH = 8
MIN_WALKTHROUGH_TIME_LENGTH = 3


# =============================================================================
# Deal construction
# =============================================================================


def normalize_commission_type(value: str | None) -> str:
    """Map draft/exhibit vocabulary onto the Deal's ('flat' -> 'flat_fee')."""
    if not value:
        return CommissionType.PERCENTAGE.value
    if value == 'flat':
        return CommissionType.FLAT_FEE.value
    return value


def _first_not_none(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_proposed_terms(agreement: LegalAgreement, draft: DealDraft) -> ProposedTerms:
    """Commission terms: signed exhibit first, then the draft, then defaults."""
    exhibit = agreement.exhibit_a_terms
    ex: dict[str, Any] = exhibit.model_dump() if exhibit is not None else {}

    return ProposedTerms(
        seller_commission_type=normalize_commission_type(
            ex.get('seller_commission_type') or draft.seller_commission_type
        ),
        seller_commission_percentage=_first_not_none(
            ex.get('seller_commission_percentage'), draft.seller_commission_percentage
        ),
        seller_flat_fee=_first_not_none(ex.get('seller_flat_fee'), draft.seller_flat_fee),
        buyer_commission_type=normalize_commission_type(
            ex.get('buyer_commission_type') or draft.buyer_commission_type
        ),
        buyer_commission_percentage=_first_not_none(
            ex.get('buyer_commission_percentage'), draft.buyer_commission_percentage
        ),
        buyer_flat_fee=_first_not_none(ex.get('buyer_flat_fee'), draft.buyer_flat_fee),
        agreement_length=(
            ex.get('agreement_length_days')
            or ex.get('agreement_length')
            or draft.agreement_length
            or DEFAULT_AGREEMENT_LENGTH_DAYS
        ),
    )


def resolve_walkthrough(draft: DealDraft) -> tuple[bool, str | None, str | None]:
    """
    Walkthrough fields carried onto the Deal.

    Date and time survive only when a walkthrough is scheduled and the value
    is plausibly complete; partial input such as "5/1" is dropped.
    """
    scheduled = draft.walkthrough_scheduled is True
    date = draft.walkthrough_date
    time = draft.walkthrough_time
    keep_date = scheduled and bool(date) and len(str(date)) >= MIN_WALKTHROUGH_DATE_LENGTH
    keep_time = scheduled and bool(time) and len(str(time)) >= MIN_WALKTHROUGH_TIME_LENGTH
    return scheduled, date if keep_date else None, time if keep_time else None


def build_deal(agreement: LegalAgreement, draft: DealDraft) -> Deal:
    """Assemble the Deal for ``agreement`` from its source draft."""
    walkthrough_scheduled, walkthrough_date, walkthrough_time = resolve_walkthrough(draft)

    contract_document = None
    if draft.contract_url:
        contract_document = ContractDocument(url=draft.contract_url, uploaded_at=utc_now())

    return Deal(
        title=draft.property_address,
        description=draft.special_notes or '',
        property_address=draft.property_address,
        city=draft.city,
        state=draft.state,
        zip=draft.zip,
        county=draft.county,
        purchase_price=draft.purchase_price,
        key_dates=KeyDates(
            closing_date=draft.closing_date,
            contract_date=draft.contract_date,
        ),
        property_type=draft.property_type or None,
        property_details=PropertyDetails(
            beds=draft.beds or None,
            baths=draft.baths or None,
            sqft=draft.sqft or None,
            year_built=draft.year_built or None,
            number_of_stories=draft.number_of_stories or None,
            has_basement=draft.has_basement or None,
        ),
        seller_info=SellerInfo(
            seller_name=draft.seller_name,
            earnest_money=draft.earnest_money or None,
            number_of_signers=draft.number_of_signers,
            second_signer_name=draft.second_signer_name,
        ),
        proposed_terms=resolve_proposed_terms(agreement, draft),
        contract_document=contract_document,
        status='active',
        pipeline_stage=PipelineStage.NEW_DEALS.value,
        investor_id=draft.investor_profile_id,
        selected_agent_ids=list(draft.selected_agent_ids),
        pending_agreement_generation=False,
        current_legal_agreement_id=agreement.id,
        walkthrough_scheduled=walkthrough_scheduled,
        walkthrough_date=walkthrough_date,
        walkthrough_time=walkthrough_time,
    )


# =============================================================================
# DealMaterializer
# =============================================================================


class DealMaterializer:
    """
    Creates the Deal for an investor-signed agreement, at most once.

    Safe to call repeatedly and concurrently with the provider webhook.
    """

    def __init__(
        self,
        agreements: AgreementStore,
        deals: DealRepository,
        functions: FunctionClient,
    ):
        self.agreements = agreements
        self.deals = deals
        self.functions = functions

    async def ensure_deal_created(self, agreement: LegalAgreement) -> ReconcileOutcome:
        """
        Ensure a Deal exists for ``agreement``.

        Args:
            agreement: Investor-signed agreement

        Returns:
            ReconcileOutcome with status deal_exists or deal_created

        Raises:
            DraftNotFoundError: No source draft could be resolved
            NoAgentsSelectedError: The draft selects no agents
        """
        log = logger.bind(agreement_id=agreement.id)
        effects = PartialSuccessResult()

        # 1. Deal keyed by this agreement
        existing = await self.deals.find_deal_for_agreement(agreement.id)
        if existing is not None:
            invites = await self.deals.invites_for_deal(existing.id)
            if not invites:
                log.info('materializer.invites_missing', deal_id=existing.id)
                await self._best_effort(
                    effects,
                    'create_invites',
                    self.functions.create_invites_after_investor_sign(existing.id),
                    log,
                )
            log.info('materializer.deal_exists', deal_id=existing.id)
            return await self._outcome(ReconcileStatus.DEAL_EXISTS, agreement, existing, effects, log)

        # 2. agreement.deal_id already points at a real Deal
        if agreement.deal_id:
            deal = await self.deals.get_deal(agreement.deal_id)
            if deal is not None:
                log.info('materializer.deal_exists_by_pointer', deal_id=deal.id)
                return await self._outcome(ReconcileStatus.DEAL_EXISTS, agreement, deal, effects, log)

        # 3. Resolve the source draft
        draft = await self._resolve_draft(agreement)
        if not draft.selected_agent_ids:
            raise NoAgentsSelectedError(
                'No agents selected',
                context={'agreement_id': agreement.id, 'draft_id': draft.id},
            )

        # 4-5. Build and create; losing a concurrent create is a deal_exists
        deal, created = await self.deals.create_deal_or_get_existing(build_deal(agreement, draft))
        if not created:
            log.info('materializer.deal_exists_after_race', deal_id=deal.id)
            return await self._outcome(ReconcileStatus.DEAL_EXISTS, agreement, deal, effects, log)

        log.info(
            'materializer.deal_created',
            deal_id=deal.id,
            draft_id=draft.id,
            agent_count=len(draft.selected_agent_ids),
        )

        # 6. Repoint the agreement at the real Deal, ranking against the stored status
        current = await self.agreements.get(agreement.id)
        fields: dict[str, Any] = {'deal_id': deal.id}
        if AgreementStatus.INVESTOR_SIGNED.rank > current.status.rank:
            fields['status'] = AgreementStatus.INVESTOR_SIGNED
        await self.agreements.update(agreement.id, fields)

        # 7. Best-effort fan-out
        await self._best_effort(effects, 'delete_draft', self.deals.delete_draft(draft.id), log)
        await self._best_effort(
            effects,
            'create_invites',
            self.functions.create_invites_after_investor_sign(deal.id),
            log,
        )
        return await self._outcome(ReconcileStatus.DEAL_CREATED, agreement, deal, effects, log)

    async def _resolve_draft(self, agreement: LegalAgreement) -> DealDraft:
        draft = None
        if agreement.deal_id:
            draft = await self.deals.get_draft(agreement.deal_id)
        if draft is None and agreement.investor_profile_id:
            draft = await self.deals.latest_draft_for_investor(agreement.investor_profile_id)
        if draft is None:
            raise DraftNotFoundError(
                'No DealDraft found',
                context={
                    'agreement_id': agreement.id,
                    'deal_id': agreement.deal_id,
                    'investor_profile_id': agreement.investor_profile_id,
                },
            )
        return draft

    async def _outcome(
        self,
        status: ReconcileStatus,
        agreement: LegalAgreement,
        deal: Deal,
        effects: PartialSuccessResult,
        log: Any,
    ) -> ReconcileOutcome:
        room_id = None
        try:
            room = await self.deals.first_room_for_deal(deal.id)
            room_id = room.id if room is not None else None
        except Exception as e:
            log.warning('materializer.room_lookup_failed', deal_id=deal.id, error=str(e))
            effects.add_failure(e, 'room_lookup')

        return ReconcileOutcome(
            status=status,
            agreement_id=agreement.id,
            deal_id=deal.id,
            room_id=room_id,
            side_effects=effects,
        )

    @staticmethod
    async def _best_effort(
        effects: PartialSuccessResult,
        item_id: str,
        operation: Awaitable[Any],
        log: Any,
    ) -> None:
        """Await ``operation``; record and log a failure instead of raising."""
        try:
            await operation
        except Exception as e:
            log.warning(
                'materializer.side_effect_failed',
                side_effect=item_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            effects.add_failure(e, item_id)
            return
        effects.add_success(item_id)
