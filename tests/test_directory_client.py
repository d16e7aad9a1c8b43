"""
Test suite for the HTTP directory client.

Uses httpx.MockTransport so no network access is needed.
"""

import httpx
import pytest

from leaguemail.core.config import DirectoryConfig
from leaguemail.core.exceptions import (
    AuthenticationRequired,
    NetworkError,
    RateLimited,
    ServiceUnavailable,
    UnknownError,
    ValidationFailed,
)
from leaguemail.data.directory_client import HttpDirectoryClient

BASE_URL = "https://directory.league.org/api"


def make_client(handler, token=None) -> HttpDirectoryClient:
    config = DirectoryConfig(base_url=BASE_URL, api_token=token, timeout_seconds=5)
    return HttpDirectoryClient(config, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestHttpDirectoryClient:
    """Test request building and response mapping."""

    def setup_method(self):
        self.requests = []

    def _ok(self, body):
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(200, json=body)

        return handler

    @pytest.mark.asyncio
    async def test_fetch_page_request_and_envelope(self):
        client = make_client(
            self._ok(
                {
                    "success": True,
                    "contacts": [{"id": 1, "firstName": "Jane", "lastName": "Doe"}],
                    "pagination": {"hasNext": True, "hasPrev": False},
                }
            )
        )

        result = await client.fetch_page("42", "session-token", page=2, limit=25)

        request = self.requests[0]
        assert request.url.path == "/api/accounts/42/contacts"
        assert request.url.params["page"] == "2"
        assert request.url.params["limit"] == "25"
        assert request.url.params["roles"] == "true"
        assert request.url.params["contactDetails"] == "true"
        assert "q" not in request.url.params
        assert request.headers["Authorization"] == "Bearer session-token"

        assert result.contacts[0].id == "1"
        assert result.has_next is True
        assert result.has_prev is False

    @pytest.mark.asyncio
    async def test_search_page_sends_query(self):
        client = make_client(
            self._ok({"data": {"contacts": []}, "pagination": {"hasNext": False, "hasPrev": True}})
        )

        result = await client.search_page("42", "t", "  smith ", page=1, limit=10)

        assert self.requests[0].url.params["q"] == "smith"
        assert result.contacts == []
        assert result.has_prev is True

    @pytest.mark.asyncio
    async def test_configured_token_used_as_fallback(self):
        client = make_client(self._ok({"contacts": []}), token="configured")
        await client.fetch_page("42", None, page=1, limit=5)
        assert self.requests[0].headers["Authorization"] == "Bearer configured"

    @pytest.mark.asyncio
    async def test_missing_inputs_fail_without_request(self):
        client = make_client(self._ok({"contacts": []}))

        with pytest.raises(AuthenticationRequired):
            await client.fetch_page("42", None, page=1, limit=5)
        with pytest.raises(ValidationFailed):
            await client.fetch_page(" ", "t", page=1, limit=5)
        with pytest.raises(ValidationFailed):
            await client.search_page("42", "t", "   ", page=1, limit=5)

        assert self.requests == []

    @pytest.mark.asyncio
    async def test_http_errors_mapped(self):
        def handler(request):
            return httpx.Response(503, json={"message": "Directory offline for upgrade"})

        client = make_client(handler)
        with pytest.raises(ServiceUnavailable) as excinfo:
            await client.fetch_page("42", "t", page=1, limit=5)

        assert excinfo.value.status_code == 503
        assert excinfo.value.user_message == "Directory offline for upgrade"

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after(self):
        def handler(request):
            return httpx.Response(429, headers={"Retry-After": "4"}, text="")

        client = make_client(handler)
        with pytest.raises(RateLimited) as excinfo:
            await client.fetch_page("42", "t", page=1, limit=5)
        assert excinfo.value.retry_after == 4.0

    @pytest.mark.asyncio
    async def test_transport_error_mapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(NetworkError):
            await client.fetch_page("42", "t", page=1, limit=5)

    @pytest.mark.asyncio
    async def test_unsuccessful_body(self):
        client = make_client(self._ok({"success": False, "message": "Season closed"}))
        with pytest.raises(UnknownError) as excinfo:
            await client.fetch_page("42", "t", page=1, limit=5)
        assert excinfo.value.user_message == "Season closed"

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        client = make_client(handler)
        with pytest.raises(UnknownError):
            await client.fetch_page("42", "t", page=1, limit=5)

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        config = DirectoryConfig(base_url=BASE_URL)
        async with HttpDirectoryClient(config) as client:
            inner = client.client
        assert inner.is_closed is True
