"""Tests for the HeyGen credential fetcher."""

import httpx
import pytest

from src.avatar.credentials import CredentialConfig, CredentialFetcher
from src.avatar.mock_provider import MockCredentialFetcher
from src.exceptions import CredentialFetchError


def make_fetcher(handler, api_key="hg-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CredentialFetcher(CredentialConfig(api_key=api_key), http_client=client), client


class TestCredentialFetcher:
    @pytest.mark.asyncio
    async def test_returns_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["method"] = request.method
            seen["api_key"] = request.headers.get("x-api-key")
            return httpx.Response(200, json={"data": {"token": "tok-123"}})

        fetcher, client = make_fetcher(handler)
        token = await fetcher.fetch_token()
        await client.aclose()

        assert token == "tok-123"
        assert seen["url"] == "https://api.heygen.com/v1/streaming.create_token"
        assert seen["method"] == "POST"
        assert seen["api_key"] == "hg-key"

    @pytest.mark.asyncio
    async def test_each_call_requests_fresh_token(self):
        tokens = iter(["t1", "t2"])

        def handler(request):
            return httpx.Response(200, json={"data": {"token": next(tokens)}})

        fetcher, client = make_fetcher(handler)
        assert await fetcher.fetch_token() == "t1"
        assert await fetcher.fetch_token() == "t2"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rejected_status(self):
        fetcher, client = make_fetcher(lambda request: httpx.Response(401, json={"error": "bad key"}))

        with pytest.raises(CredentialFetchError) as exc_info:
            await fetcher.fetch_token()
        await client.aclose()

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_token_field(self):
        fetcher, client = make_fetcher(lambda request: httpx.Response(200, json={"data": {}}))

        with pytest.raises(CredentialFetchError, match="token missing"):
            await fetcher.fetch_token()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        fetcher, client = make_fetcher(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(CredentialFetchError):
            await fetcher.fetch_token()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher, client = make_fetcher(handler)

        with pytest.raises(CredentialFetchError, match="token request failed"):
            await fetcher.fetch_token()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_missing_api_key_makes_no_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"data": {"token": "x"}})

        fetcher, client = make_fetcher(handler, api_key=None)

        with pytest.raises(CredentialFetchError, match="HEYGEN_API_KEY"):
            await fetcher.fetch_token()
        await client.aclose()

        assert calls == []

    @pytest.mark.asyncio
    async def test_aclose_leaves_shared_client_open(self):
        fetcher, client = make_fetcher(lambda request: httpx.Response(200, json={"data": {"token": "x"}}))
        await fetcher.aclose()
        assert client.is_closed is False
        await client.aclose()


class TestMockCredentialFetcher:
    @pytest.mark.asyncio
    async def test_issues_tokens(self):
        fetcher = MockCredentialFetcher()
        assert await fetcher.fetch_token() == "mock-token-1"
        assert await fetcher.fetch_token() == "mock-token-2"
        assert fetcher.issued == 2

    @pytest.mark.asyncio
    async def test_failure(self):
        with pytest.raises(CredentialFetchError):
            await MockCredentialFetcher(fail=True).fetch_token()
