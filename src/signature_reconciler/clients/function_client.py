"""HTTP client for invoking name-addressed backend functions."""

from typing import Any

import httpx
import structlog

from ..config import config
from ..errors import FunctionInvocationError

logger = structlog.get_logger(__name__)

CREATE_INVITES_AFTER_INVESTOR_SIGN = 'createInvitesAfterInvestorSign'


class FunctionClient:
    """
    POSTs a JSON payload to ``{FUNCTIONS_BASE_URL}/{name}``.

    Used for the invite/room fan-out after a Deal is materialized. Callers
    treat every failure as best-effort.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or config.FUNCTIONS_BASE_URL).rstrip('/')
        self.api_key = api_key or config.FUNCTIONS_API_KEY
        self.timeout = timeout or config.PROVIDER_HTTP_TIMEOUT_SECONDS
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self.timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def invoke(self, name: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Invoke a backend function.

        Args:
            name: Function name, e.g. 'createInvitesAfterInvestorSign'
            payload: JSON body

        Returns:
            Decoded JSON response (empty dict for an empty body)

        Raises:
            FunctionInvocationError: Not configured, transport failure or non-2xx
        """
        if not self.base_url:
            raise FunctionInvocationError(
                'FUNCTIONS_BASE_URL is not configured',
                context={'function': name},
            )

        url = f'{self.base_url}/{name}'
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f'Bearer {self.api_key}'

        try:
            response = await self._client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise FunctionInvocationError(
                f'{name} invocation failed: {type(e).__name__}',
                context={'function': name, 'original_error': str(e)},
            ) from e

        if not response.is_success:
            raise FunctionInvocationError(
                f'{name} returned HTTP {response.status_code}',
                context={'function': name, 'status_code': response.status_code},
            )

        logger.info('function_client.invoked', function=name)
        return response.json() if response.content else {}

    async def create_invites_after_investor_sign(self, deal_id: str) -> dict[str, Any]:
        """Fan out rooms and invites for a freshly materialized Deal."""
        return await self.invoke(CREATE_INVITES_AFTER_INVESTOR_SIGN, {'deal_id': deal_id})
