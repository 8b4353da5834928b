"""
Signature reconciliation engine.

Entry point for one (agreement, role) trigger, typically the signer's
browser returning from DocuSign. Flow:

1. Load the agreement; if the role's signature is already recorded, skip
   polling (fast path)
2. Poll the envelope's recipients up to a fixed attempt budget, with a
   fixed delay between attempts and an overall deadline
3. Compute the transition and write only the changed fields
4. Dispatch: investor -> Deal materialization; agent on full signature ->
   agent lock-in

An exhausted budget is not an error: the provider webhook completes the
agreement later and the caller gets ``pending``.
"""

import asyncio
import time
from typing import Awaitable, Callable

import structlog

from ..clients.docusign_client import DocuSignClient
from ..config import config
from ..errors import BadRequestError, ProviderError
from ..logging import ReconcileTimer, logging_context
from ..models.agreement import LegalAgreement, SignerRole
from ..models.outcome import ReconcileOutcome, ReconcileStatus
from ..models.provider import RecipientSnapshot
from ..repository import AgreementStore
from ..utils import uuid7
from .locking import AgentLockCoordinator
from .materializer import DealMaterializer
from .session import ProviderSessionManager
from .transitions import compute_transition

logger = structlog.get_logger(__name__)

PENDING_MESSAGE = 'Signature not yet confirmed. Webhook will process.'


def parse_role(role: str | SignerRole) -> SignerRole:
    """Validate a caller-supplied role."""
    try:
        return SignerRole(role)
    except ValueError:
        raise BadRequestError(
            'role must be "investor" or "agent"',
            context={'role': role},
        ) from None


class ReconciliationEngine:
    """
    Poll-and-finalize for a single signer role.

    Collaborators are injected; the sleep and clock functions are injectable
    so tests can drive the poll loop without waiting.
    """

    def __init__(
        self,
        agreements: AgreementStore,
        provider: DocuSignClient,
        sessions: ProviderSessionManager,
        materializer: DealMaterializer,
        locker: AgentLockCoordinator,
        max_attempts: int | None = None,
        poll_interval: float | None = None,
        deadline_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.agreements = agreements
        self.provider = provider
        self.sessions = sessions
        self.materializer = materializer
        self.locker = locker
        self.max_attempts = max_attempts or config.POLL_MAX_ATTEMPTS
        self.poll_interval = (
            config.POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        )
        self.deadline_seconds = deadline_seconds or config.POLL_DEADLINE_SECONDS
        self._sleep = sleep
        self._clock = clock

    async def reconcile(self, agreement_id: str, role: str | SignerRole) -> ReconcileOutcome:
        """
        Reconcile one agreement for one acting role.

        Args:
            agreement_id: LegalAgreement id
            role: 'investor' or 'agent'

        Returns:
            ReconcileOutcome (pending, signed, deal_exists or deal_created)

        Raises:
            BadRequestError: Missing agreement id or unknown role
            AgreementNotFoundError: Unknown agreement
            ConfigError: Provider not connected or token refresh failed
            DraftNotFoundError / NoAgentsSelectedError: From materialization
        """
        if not agreement_id:
            raise BadRequestError('agreement_id required')
        signer = parse_role(role)

        with logging_context(
            trace_id=str(uuid7()),
            agreement_id=agreement_id,
            role=signer.value,
        ):
            timer = ReconcileTimer()
            log = logger.bind(agreement_id=agreement_id, role=signer.value)

            agreement = await self.agreements.get(agreement_id)
            log.info(
                'engine.started',
                status=agreement.status.value,
                signer_mode=agreement.signer_mode.value,
            )

            snapshot: RecipientSnapshot | None = None
            if agreement.has_signed(signer):
                log.info('engine.already_signed')
            else:
                if not agreement.is_recipient(signer) or not agreement.docusign_envelope_id:
                    log.info(
                        'engine.not_pollable',
                        has_envelope=bool(agreement.docusign_envelope_id),
                    )
                    return self._pending(agreement_id)

                with timer.stage('poll'):
                    snapshot = await self._poll(agreement, signer, timer, log)
                if snapshot is None:
                    log.info('engine.pending', **timer.event_fields())
                    return self._pending(agreement_id)
                # The webhook may have written while we polled
                agreement = await self.agreements.get(agreement_id)

            with timer.stage('apply'):
                agreement = await self._apply(agreement, signer, snapshot, log)

            with timer.stage('dispatch'):
                outcome = await self._dispatch(agreement, signer)

            log.info('engine.complete', outcome=outcome.status.value, **timer.event_fields())
            return outcome

    # =========================================================================
    # Poll
    # =========================================================================

    async def _poll(
        self,
        agreement: LegalAgreement,
        role: SignerRole,
        timer: ReconcileTimer,
        log,
    ) -> RecipientSnapshot | None:
        """
        Return the first snapshot showing ``role`` complete, or None.

        Every awaited provider call is bounded by the time left before the
        deadline, so a slow fetch or token refresh cannot overrun it.
        """
        deadline = self._clock() + self.deadline_seconds
        try:
            session = await asyncio.wait_for(
                self.sessions.get_session(),
                timeout=self.deadline_seconds,
            )
        except asyncio.TimeoutError:
            log.warning('engine.poll_deadline_reached', attempts=0, stage='session')
            return None
        recipient_id = agreement.recipient_id(role)

        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                if self._clock() + self.poll_interval > deadline:
                    log.info('engine.poll_deadline_reached', attempts=attempt - 1)
                    return None
                await self._sleep(self.poll_interval)

            remaining = deadline - self._clock()
            if remaining <= 0:
                log.info('engine.poll_deadline_reached', attempts=attempt - 1)
                return None

            timer.count('poll_attempts')
            try:
                snapshot = await asyncio.wait_for(
                    self.provider.fetch_recipients(session, agreement.docusign_envelope_id),
                    timeout=remaining,
                )
            except asyncio.TimeoutError:
                log.warning('engine.poll_deadline_reached', attempts=attempt, stage='fetch')
                return None
            except ProviderError as e:
                log.warning(
                    'engine.poll_attempt_failed',
                    attempt=attempt,
                    status_code=e.context.get('status_code'),
                    error=e.message,
                )
                continue

            if snapshot.is_completed(recipient_id):
                log.info('engine.signature_confirmed', attempt=attempt)
                return snapshot
            log.debug('engine.poll_attempt', attempt=attempt, completed=False)

        log.info('engine.poll_exhausted', attempts=self.max_attempts)
        return None

    # =========================================================================
    # Apply / dispatch
    # =========================================================================

    async def _apply(
        self,
        agreement: LegalAgreement,
        role: SignerRole,
        snapshot: RecipientSnapshot | None,
        log,
    ) -> LegalAgreement:
        delta = compute_transition(agreement, role, snapshot)
        if not delta:
            return agreement
        log.info('engine.agreement_updated', fields=sorted(delta))
        return await self.agreements.update(agreement.id, delta)

    async def _dispatch(self, agreement: LegalAgreement, role: SignerRole) -> ReconcileOutcome:
        if role is SignerRole.INVESTOR:
            return await self.materializer.ensure_deal_created(agreement)

        if agreement.is_fully_signed:
            lock = await self.locker.on_fully_signed(agreement)
            return ReconcileOutcome(
                status=ReconcileStatus.SIGNED,
                agreement_id=agreement.id,
                side_effects=lock.side_effects,
            )

        return ReconcileOutcome(status=ReconcileStatus.SIGNED, agreement_id=agreement.id)

    @staticmethod
    def _pending(agreement_id: str) -> ReconcileOutcome:
        return ReconcileOutcome(
            status=ReconcileStatus.PENDING,
            agreement_id=agreement_id,
            message=PENDING_MESSAGE,
        )
