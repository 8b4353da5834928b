"""
Tests for ProviderSessionManager token handling.
"""

from datetime import datetime, timedelta, timezone

import pytest

from signature_reconciler.errors import ProviderNotConnectedError, TokenRefreshError
from signature_reconciler.models.provider import TokenGrant
from signature_reconciler.reconciliation.session import ProviderSessionManager
from signature_reconciler.repository import ConnectionRepository
from signature_reconciler.store.base import DOCUSIGN_CONNECTION

from conftest import CONNECTION_ID, make_connection


def _expired() -> str:
    return (datetime.now(timezone.utc) - timedelta(minutes=5)).isoformat()


@pytest.fixture
def sessions(store, provider) -> ProviderSessionManager:
    return ProviderSessionManager(ConnectionRepository(store), provider)


class TestGetSession:
    @pytest.mark.asyncio
    async def test_fresh_token_is_used_as_is(self, sessions, provider):
        session = await sessions.get_session()

        assert session.access_token == "access-token"
        assert session.account_id == "acct_123"
        assert session.base_uri == "https://demo.docusign.net"
        assert session.is_demo
        provider.refresh_access_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed_and_persisted(self, sessions, store, provider):
        store.seed(DOCUSIGN_CONNECTION, make_connection(expires_at=_expired()))
        provider.refresh_access_token.return_value = TokenGrant(
            access_token="new-access",
            refresh_token="new-refresh",
            expires_in=7200,
        )

        session = await sessions.get_session()

        provider.refresh_access_token.assert_awaited_once_with(
            "refresh-token", "https://demo.docusign.net"
        )
        assert session.access_token == "new-access"
        assert not session.is_expired()

        stored = await store.get(DOCUSIGN_CONNECTION, CONNECTION_ID)
        assert stored["access_token"] == "new-access"
        assert stored["refresh_token"] == "new-refresh"
        assert datetime.fromisoformat(stored["expires_at"]) > datetime.now(timezone.utc) + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_refresh_without_new_refresh_token_keeps_old_one(self, sessions, store, provider):
        store.seed(DOCUSIGN_CONNECTION, make_connection(expires_at=_expired()))
        provider.refresh_access_token.return_value = TokenGrant(access_token="new-access")

        await sessions.get_session()

        stored = await store.get(DOCUSIGN_CONNECTION, CONNECTION_ID)
        assert stored["refresh_token"] == "refresh-token"

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token_returns_stored_session(self, sessions, store, provider):
        store.seed(DOCUSIGN_CONNECTION, make_connection(expires_at=_expired(), refresh_token=None))

        session = await sessions.get_session()

        assert session.access_token == "access-token"
        assert session.is_expired()
        provider.refresh_access_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_connection_raises(self, sessions, store):
        await store.delete(DOCUSIGN_CONNECTION, CONNECTION_ID)

        with pytest.raises(ProviderNotConnectedError) as exc_info:
            await sessions.get_session()
        assert exc_info.value.message == "DocuSign not connected"

    @pytest.mark.asyncio
    async def test_refresh_failure_propagates(self, sessions, store, provider):
        store.seed(DOCUSIGN_CONNECTION, make_connection(expires_at=_expired()))
        provider.refresh_access_token.side_effect = TokenRefreshError("Token refresh failed")

        with pytest.raises(TokenRefreshError):
            await sessions.get_session()

        stored = await store.get(DOCUSIGN_CONNECTION, CONNECTION_ID)
        assert stored["access_token"] == "access-token"
