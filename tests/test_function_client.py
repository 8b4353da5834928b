"""
Tests for FunctionClient.
"""

import json

import httpx
import pytest

from signature_reconciler.clients.function_client import FunctionClient
from signature_reconciler.errors import FunctionInvocationError


def _client(handler, base_url="https://fn.example.com/", api_key="fn-key") -> FunctionClient:
    return FunctionClient(
        base_url=base_url,
        api_key=api_key,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestInvoke:
    @pytest.mark.asyncio
    async def test_create_invites_posts_deal_id(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"room_id": "room_1"})

        result = await _client(handler).create_invites_after_investor_sign("deal_1")

        assert seen["url"] == "https://fn.example.com/createInvitesAfterInvestorSign"
        assert seen["auth"] == "Bearer fn-key"
        assert seen["body"] == {"deal_id": "deal_1"}
        assert result == {"room_id": "room_1"}

    @pytest.mark.asyncio
    async def test_empty_body_returns_empty_dict(self):
        client = _client(lambda request: httpx.Response(204), api_key="")

        assert await client.invoke("noop", {}) == {}

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self):
        client = _client(lambda request: httpx.Response(502))

        with pytest.raises(FunctionInvocationError) as exc_info:
            await client.invoke("createInvitesAfterInvestorSign", {"deal_id": "d"})
        assert exc_info.value.context["status_code"] == 502

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(FunctionInvocationError):
            await _client(handler).invoke("createInvitesAfterInvestorSign", {})

    @pytest.mark.asyncio
    async def test_unconfigured_base_url_raises(self, monkeypatch):
        monkeypatch.setattr("signature_reconciler.clients.function_client.config.FUNCTIONS_BASE_URL", "")
        client = _client(lambda request: httpx.Response(200), base_url="")

        with pytest.raises(FunctionInvocationError):
            await client.invoke("createInvitesAfterInvestorSign", {})
