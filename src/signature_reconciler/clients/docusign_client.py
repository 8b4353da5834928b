"""
DocuSign REST client for the signature reconciler.

Handles:
- Envelope recipient status reads (one request per poll attempt)
- OAuth refresh-token grant, retried on transport failures

Credentials are never cached here. Every call takes an explicit
ProviderSession produced by ProviderSessionManager.
"""

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import config
from ..errors import ProviderUnavailableError, TokenRefreshError
from ..models.provider import ProviderSession, RecipientSnapshot, RecipientStatus, TokenGrant
from ..utils import utc_now

logger = structlog.get_logger(__name__)

DEMO_OAUTH_URL = 'https://account-d.docusign.com/oauth/token'
PRODUCTION_OAUTH_URL = 'https://account.docusign.com/oauth/token'


def oauth_token_url(base_uri: str) -> str:
    """OAuth host for the account environment behind ``base_uri``."""
    return DEMO_OAUTH_URL if 'demo' in base_uri else PRODUCTION_OAUTH_URL


class DocuSignClient:
    """
    Async DocuSign client.

    Configuration via environment variables:
    - DOCUSIGN_INTEGRATION_KEY: OAuth client id
    - DOCUSIGN_CLIENT_SECRET: OAuth client secret
    - PROVIDER_HTTP_TIMEOUT_SECONDS: Per-request timeout (default: 5)
    """

    def __init__(
        self,
        integration_key: str | None = None,
        client_secret: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the DocuSign client.

        Args:
            integration_key: OAuth client id (defaults to DOCUSIGN_INTEGRATION_KEY)
            client_secret: OAuth client secret (defaults to DOCUSIGN_CLIENT_SECRET)
            timeout: Request timeout in seconds
            http_client: Pre-built httpx client (tests inject a MockTransport here)
        """
        self.integration_key = integration_key or config.DOCUSIGN_INTEGRATION_KEY
        self.client_secret = client_secret or config.DOCUSIGN_CLIENT_SECRET
        self.timeout = timeout or config.PROVIDER_HTTP_TIMEOUT_SECONDS
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self.timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # =========================================================================
    # Envelopes
    # =========================================================================

    @staticmethod
    def recipients_url(session: ProviderSession, envelope_id: str) -> str:
        return (
            f"{session.base_uri.rstrip('/')}/restapi/v2.1/accounts/"
            f"{session.account_id}/envelopes/{envelope_id}/recipients"
        )

    async def fetch_recipients(
        self,
        session: ProviderSession,
        envelope_id: str,
    ) -> RecipientSnapshot:
        """
        Read the signer list of an envelope.

        Args:
            session: Provider credentials
            envelope_id: DocuSign envelope id

        Returns:
            RecipientSnapshot stamped with the fetch time

        Raises:
            ProviderUnavailableError: Non-2xx response, transport failure or a
                body that is not a recipients object
        """
        url = self.recipients_url(session, envelope_id)
        try:
            response = await self._client.get(
                url,
                headers={'Authorization': f'Bearer {session.access_token}'},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(
                f'Recipient fetch failed: {type(e).__name__}',
                context={'envelope_id': envelope_id, 'original_error': str(e)},
            ) from e

        if not response.is_success:
            raise ProviderUnavailableError(
                f'Recipient fetch returned HTTP {response.status_code}',
                context={'envelope_id': envelope_id, 'status_code': response.status_code},
            )

        try:
            body = response.json()
            if not isinstance(body, dict):
                raise ValueError(f'expected a JSON object, got {type(body).__name__}')
            recipients = [RecipientStatus.model_validate(s) for s in body.get('signers') or []]
        except (TypeError, ValueError) as e:
            raise ProviderUnavailableError(
                'Recipient fetch returned an unreadable body',
                context={'envelope_id': envelope_id, 'original_error': str(e)},
            ) from e

        return RecipientSnapshot(
            envelope_id=envelope_id,
            recipients=recipients,
            fetched_at=utc_now(),
        )

    # =========================================================================
    # OAuth
    # =========================================================================

    async def refresh_access_token(self, refresh_token: str, base_uri: str) -> TokenGrant:
        """
        Exchange a refresh token for a new access token.

        Args:
            refresh_token: Stored refresh token
            base_uri: Account base URI (selects the demo or production OAuth host)

        Returns:
            TokenGrant with the new access token and expiry

        Raises:
            TokenRefreshError: The grant was rejected or the host was unreachable
        """
        url = oauth_token_url(base_uri)
        try:
            response = await self._post_token_request(url, refresh_token)
        except httpx.HTTPError as e:
            raise TokenRefreshError(
                'Token refresh failed: OAuth host unreachable',
                context={'oauth_url': url, 'original_error': str(e)},
            ) from e

        if not response.is_success:
            logger.error(
                'docusign.token_refresh_failed',
                status_code=response.status_code,
                oauth_url=url,
            )
            raise TokenRefreshError(
                'Token refresh failed',
                context={'oauth_url': url, 'status_code': response.status_code},
            )

        try:
            grant = TokenGrant.model_validate(response.json())
        except ValueError as e:
            raise TokenRefreshError(
                'Token refresh returned an unreadable grant',
                context={'oauth_url': url, 'original_error': str(e)},
            ) from e

        logger.info('docusign.token_refreshed', oauth_url=url)
        return grant

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _post_token_request(self, url: str, refresh_token: str) -> httpx.Response:
        return await self._client.post(
            url,
            data={
                'grant_type': 'refresh_token',
                'refresh_token': refresh_token,
                'client_id': self.integration_key,
                'client_secret': self.client_secret,
            },
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            timeout=self.timeout,
        )
