"""
Pytest configuration and shared fixtures.

Key fixtures:
- store: InMemoryEntityStore seeded with a DocuSign connection, one sent
  agreement and its source DealDraft
- provider: FakeDocuSign returning scripted recipient lists
- functions: FakeFunctions that emulates the invite/room fan-out
- service: ReconcilerService wired over the above with a no-wait sleep
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

# Load environment variables
from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)

from signature_reconciler.errors import FunctionInvocationError
from signature_reconciler.models.provider import RecipientSnapshot, RecipientStatus
from signature_reconciler.reconciliation.service import ReconcilerService
from signature_reconciler.store.base import (
    DEAL,
    DEAL_DRAFT,
    DEAL_INVITE,
    DOCUSIGN_CONNECTION,
    LEGAL_AGREEMENT,
    ROOM,
)
from signature_reconciler.store.memory import InMemoryEntityStore

AGREEMENT_ID = 'agr_001'
DRAFT_ID = 'draft_001'
ENVELOPE_ID = 'env_001'
INVESTOR_PROFILE_ID = 'inv_001'
AGENT_PROFILE_ID = 'agent_001'
CONNECTION_ID = 'conn_001'

INVESTOR_SIGNED_AT = '2026-03-01T12:00:00Z'
AGENT_SIGNED_AT = '2026-03-01T12:30:00Z'
FETCHED_AT = datetime(2026, 3, 1, 13, 0, tzinfo=timezone.utc)


# =============================================================================
# Record builders
# =============================================================================


def make_agreement(**overrides) -> dict:
    record = {
        'id': AGREEMENT_ID,
        'docusign_envelope_id': ENVELOPE_ID,
        'investor_recipient_id': '1',
        'agent_recipient_id': '2',
        'signer_mode': 'both',
        'status': 'sent',
        'docusign_status': 'sent',
        'investor_signed_at': None,
        'agent_signed_at': None,
        'deal_id': DRAFT_ID,
        'investor_profile_id': INVESTOR_PROFILE_ID,
        'agent_profile_id': AGENT_PROFILE_ID,
        'room_id': None,
        'exhibit_a_terms': {
            'buyer_commission_type': 'percentage',
            'buyer_commission_percentage': 3.0,
        },
    }
    record.update(overrides)
    return record


def make_draft(**overrides) -> dict:
    record = {
        'id': DRAFT_ID,
        'investor_profile_id': INVESTOR_PROFILE_ID,
        'selected_agent_ids': [AGENT_PROFILE_ID, 'agent_002'],
        'property_address': '123 Main St',
        'city': 'Newark',
        'state': 'NJ',
        'zip': '07102',
        'county': 'Essex',
        'property_type': 'single_family',
        'beds': 3,
        'baths': 2,
        'sqft': 1650,
        'year_built': 1962,
        'purchase_price': 250000,
        'earnest_money': 5000,
        'closing_date': '2026-04-30',
        'contract_date': '2026-02-20',
        'seller_name': 'Pat Seller',
        'number_of_signers': '1',
        'buyer_commission_type': 'percentage',
        'buyer_commission_percentage': 2.5,
        'seller_commission_type': 'flat',
        'seller_flat_fee': 4000,
        'agreement_length': 120,
        'special_notes': 'Needs roof work',
        'contract_url': 'https://files.example.com/contract.pdf',
        'walkthrough_scheduled': True,
        'walkthrough_date': '2026-03-15',
        'walkthrough_time': '10:00 AM',
    }
    record.update(overrides)
    return record


def make_connection(**overrides) -> dict:
    record = {
        'id': CONNECTION_ID,
        'access_token': 'access-token',
        'refresh_token': 'refresh-token',
        'expires_at': (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat(),
        'account_id': 'acct_123',
        'base_uri': 'https://demo.docusign.net',
    }
    record.update(overrides)
    return record


def signer(recipient_id: str, status: str = 'completed', signed_at: str | None = None) -> dict:
    row = {'recipientId': recipient_id, 'status': status}
    if signed_at is not None:
        row['signedDateTime'] = signed_at
    return row


NOT_SIGNED = [signer('1', 'sent'), signer('2', 'created')]
INVESTOR_DONE = [signer('1', 'completed', INVESTOR_SIGNED_AT), signer('2', 'created')]
BOTH_DONE = [
    signer('1', 'completed', INVESTOR_SIGNED_AT),
    signer('2', 'completed', AGENT_SIGNED_AT),
]


# =============================================================================
# Fakes
# =============================================================================


class FakeDocuSign:
    """
    Scripted DocuSign client.

    ``responses`` is consumed one per call (the last entry repeats);
    ``by_envelope`` maps an envelope id to a fixed response. An exception
    instance in either is raised instead of returned.
    """

    def __init__(self, responses=None, by_envelope=None):
        self.responses = list(responses or [NOT_SIGNED])
        self.by_envelope = dict(by_envelope or {})
        self.calls: list[str] = []
        self.refresh_access_token = AsyncMock()

    async def fetch_recipients(self, session, envelope_id):
        self.calls.append(envelope_id)
        if envelope_id in self.by_envelope:
            item = self.by_envelope[envelope_id]
        else:
            item = self.responses[min(len(self.calls), len(self.responses)) - 1]
        if isinstance(item, BaseException):
            raise item
        return RecipientSnapshot(
            envelope_id=envelope_id,
            recipients=[RecipientStatus.model_validate(s) for s in item],
            fetched_at=FETCHED_AT,
        )

    async def close(self):
        return None


class FakeFunctions:
    """Emulates createInvitesAfterInvestorSign: one Room plus an invite per agent."""

    def __init__(self, store: InMemoryEntityStore, fail: bool = False):
        self.store = store
        self.fail = fail
        self.invocations: list[str] = []

    async def create_invites_after_investor_sign(self, deal_id: str) -> dict:
        self.invocations.append(deal_id)
        if self.fail:
            raise FunctionInvocationError('createInvitesAfterInvestorSign returned HTTP 502')

        deal = await self.store.get(DEAL, deal_id)
        room_id = f'room_{deal_id}'
        self.store.seed(ROOM, {'id': room_id, 'deal_id': deal_id})
        for agent_id in deal.get('selected_agent_ids', []):
            self.store.seed(DEAL_INVITE, {
                'id': f'invite_{deal_id}_{agent_id}',
                'deal_id': deal_id,
                'agent_profile_id': agent_id,
                'room_id': room_id,
                'status': 'PENDING_AGENT_SIGNATURE',
            })
        return {'room_id': room_id}

    async def close(self):
        return None


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryEntityStore:
    """Store with a live connection, a sent agreement and its draft."""
    s = InMemoryEntityStore()
    s.seed(DOCUSIGN_CONNECTION, make_connection())
    s.seed(LEGAL_AGREEMENT, make_agreement())
    s.seed(DEAL_DRAFT, make_draft())
    return s


@pytest.fixture
def provider() -> FakeDocuSign:
    return FakeDocuSign()


@pytest.fixture
def functions(store) -> FakeFunctions:
    return FakeFunctions(store)


@pytest.fixture
def sleeps() -> list[float]:
    """Seconds passed to the engine's sleep, in order."""
    return []


@pytest.fixture
def service(store, provider, functions, sleeps) -> ReconcilerService:
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return ReconcilerService.build(store, provider, functions, sleep=fake_sleep)
