"""
Provider session management.

Produces the ProviderSession handed to DocuSignClient, refreshing and
persisting OAuth tokens when the stored access token has expired.
"""

from datetime import timedelta

import structlog

from ..clients.docusign_client import DocuSignClient
from ..errors import ProviderNotConnectedError
from ..models.provider import ProviderSession
from ..repository import ConnectionRepository
from ..utils import utc_now

logger = structlog.get_logger(__name__)


class ProviderSessionManager:
    """Loads the latest DocuSign connection and keeps its access token fresh."""

    def __init__(self, connections: ConnectionRepository, provider: DocuSignClient):
        self.connections = connections
        self.provider = provider

    async def get_session(self) -> ProviderSession:
        """
        Return credentials for provider calls.

        Raises:
            ProviderNotConnectedError: No connection has been stored
            TokenRefreshError: The stored token expired and refresh failed
        """
        connection = await self.connections.latest()
        if connection is None:
            raise ProviderNotConnectedError('DocuSign not connected')

        session = ProviderSession(
            access_token=connection.access_token,
            account_id=connection.account_id,
            base_uri=connection.base_uri,
            expires_at=connection.expires_at,
        )
        if not session.is_expired() or not connection.refresh_token:
            return session

        log = logger.bind(connection_id=connection.id)
        log.info('session.token_expired')

        grant = await self.provider.refresh_access_token(
            connection.refresh_token,
            connection.base_uri,
        )
        expires_at = utc_now() + timedelta(seconds=grant.expires_in)
        await self.connections.save_tokens(
            connection.id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token or connection.refresh_token,
            expires_at=expires_at,
        )
        log.info('session.token_refreshed', expires_at=expires_at.isoformat())

        return session.model_copy(
            update={'access_token': grant.access_token, 'expires_at': expires_at}
        )
