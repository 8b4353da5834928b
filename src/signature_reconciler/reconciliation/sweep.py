"""
Batch reconciliation of every open agreement.

Operator backstop for missed webhooks: each agreement that has an envelope
but is not fully signed gets one recipient read (no polling), the same
transition rules as the engine, and the same side effects.

Agreements run concurrently under a semaphore with
asyncio.gather(return_exceptions=True), so one failing agreement never
stops the rest.
"""

import asyncio
from typing import Any

import structlog

from ..clients.docusign_client import DocuSignClient
from ..config import config
from ..models.agreement import LegalAgreement, SignerRole
from ..models.outcome import SweepResult
from ..models.provider import ProviderSession
from ..repository import AgreementStore
from .locking import AgentLockCoordinator
from .materializer import DealMaterializer
from .session import ProviderSessionManager
from .transitions import compute_transition, newly_completed_roles

logger = structlog.get_logger(__name__)


class AgreementSweeper:
    """Reconciles all open agreements once."""

    def __init__(
        self,
        agreements: AgreementStore,
        provider: DocuSignClient,
        sessions: ProviderSessionManager,
        materializer: DealMaterializer,
        locker: AgentLockCoordinator,
        concurrency: int | None = None,
    ):
        self.agreements = agreements
        self.provider = provider
        self.sessions = sessions
        self.materializer = materializer
        self.locker = locker
        self.concurrency = concurrency or config.SWEEP_CONCURRENCY

    async def reconcile_all(self, limit: int | None = None) -> SweepResult:
        """
        Reconcile every open agreement.

        Args:
            limit: Maximum number of agreements to examine

        Returns:
            SweepResult with per-agreement success/failure

        Raises:
            ConfigError: Provider not connected or token refresh failed
        """
        agreements = await self.agreements.list_open_with_envelopes(limit)
        result = SweepResult(total=len(agreements))
        log = logger.bind(total=result.total, concurrency=self.concurrency)
        log.info('sweep.started')
        if not agreements:
            return result

        session = await self.sessions.get_session()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(agreement: LegalAgreement) -> dict[str, Any]:
            async with semaphore:
                return await self._reconcile_one(session, agreement)

        outcomes = await asyncio.gather(
            *(run(a) for a in agreements),
            return_exceptions=True,
        )

        for agreement, outcome in zip(agreements, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                log.error(
                    'sweep.agreement_failed',
                    agreement_id=agreement.id,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
                result.items.add_failure(outcome, agreement.id)
                continue

            result.items.add_success(agreement.id, outcome)
            if outcome['changed']:
                result.reconciled += 1
            else:
                result.unchanged += 1

        log.info(
            'sweep.complete',
            reconciled=result.reconciled,
            unchanged=result.unchanged,
            failed=result.items.failure_count,
        )
        return result

    async def _reconcile_one(
        self,
        session: ProviderSession,
        agreement: LegalAgreement,
    ) -> dict[str, Any]:
        snapshot = await self.provider.fetch_recipients(session, agreement.docusign_envelope_id)
        # Listed before the fetch; a webhook may have written since
        agreement = await self.agreements.get(agreement.id)
        roles = newly_completed_roles(agreement, snapshot)
        if not roles:
            return {'changed': False}

        delta = compute_transition(agreement, roles[0], snapshot)
        if delta:
            agreement = await self.agreements.update(agreement.id, delta)

        data: dict[str, Any] = {
            'changed': True,
            'signed_roles': [r.value for r in roles],
            'status': agreement.status.value,
        }

        if SignerRole.INVESTOR in roles:
            outcome = await self.materializer.ensure_deal_created(agreement)
            data['deal_status'] = outcome.status.value
            data['deal_id'] = outcome.deal_id
            # Materialization repoints deal_id from the draft to the Deal
            agreement = await self.agreements.get(agreement.id)

        if agreement.is_fully_signed:
            lock = await self.locker.on_fully_signed(agreement)
            data['locked'] = lock.locked

        logger.info('sweep.agreement_reconciled', agreement_id=agreement.id, **data)
        return data
