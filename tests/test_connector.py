"""
Tests for contact data providers.

Covers:
  - InMemoryContactDataProvider
  - RESTContactDataProvider against a mocked HTTP transport
  - Provider factory
"""
import json

import httpx
import pytest
from tenacity import wait_none

from backend.connector import (
    InMemoryContactDataProvider, RESTContactDataProvider, create_contact_provider,
)
from config.settings import ContactsConfig


# ──────────────────────────────────────────────────────────────
#  InMemoryContactDataProvider
# ──────────────────────────────────────────────────────────────

class TestInMemoryProvider:
    @pytest.mark.asyncio
    async def test_bulk_fetch_skips_unknown(self, contacts):
        found = await contacts.bulk_fetch(["1", "404"])
        assert set(found) == {"1"}
        assert found["1"]["firstname"] == "Asha"
        assert contacts.fetch_calls == [["1", "404"]]

    @pytest.mark.asyncio
    async def test_related_companies(self, contacts):
        related = await contacts.bulk_fetch_related(["1", "2"])
        assert related == {"1": [{"id": "co_1", "companyname": "Acme"}]}

    @pytest.mark.asyncio
    async def test_add_contact(self):
        provider = InMemoryContactDataProvider()
        provider.add_contact(5, {"firstname": "Eve"}, companies=[{"id": "co_9"}])
        assert await provider.bulk_fetch(["5"]) == {"5": {"firstname": "Eve"}}
        assert await provider.bulk_fetch_related(["5"]) == {"5": [{"id": "co_9"}]}

    @pytest.mark.asyncio
    async def test_results_are_copies(self, contacts):
        found = await contacts.bulk_fetch(["1"])
        found["1"]["firstname"] = "Changed"
        assert (await contacts.bulk_fetch(["1"]))["1"]["firstname"] == "Asha"


# ──────────────────────────────────────────────────────────────
#  RESTContactDataProvider
# ──────────────────────────────────────────────────────────────

class TestRESTProvider:
    @pytest.fixture
    def config(self):
        return ContactsConfig(
            type="rest",
            base_url="https://crm.example.com/api",
            auth_type="bearer",
            auth_credentials={"token": "abc"},
        )

    @pytest.fixture
    def no_retry_wait(self, monkeypatch):
        monkeypatch.setattr(RESTContactDataProvider._request.retry, "wait", wait_none())

    def _provider(self, config, handler):
        provider = RESTContactDataProvider(config)
        provider.client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"Authorization": "Bearer abc"},
            transport=httpx.MockTransport(handler),
        )
        return provider

    @pytest.mark.asyncio
    async def test_bulk_fetch_posts_ids(self, config):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"data": [
                {"id": 1, "firstname": "Asha"},
                {"id": 2, "firstname": "Ben"},
            ]})

        provider = self._provider(config, handler)
        found = await provider.bulk_fetch(["1", "2"])
        await provider.close()

        assert set(found) == {"1", "2"}
        assert found["2"]["firstname"] == "Ben"
        assert requests[0].method == "POST"
        assert requests[0].url.path == "/api/contacts/bulk"
        assert json.loads(requests[0].content) == {"ids": ["1", "2"]}
        assert requests[0].headers["Authorization"] == "Bearer abc"

    @pytest.mark.asyncio
    async def test_bulk_fetch_related_wraps_single_records(self, config):
        def handler(request):
            assert request.url.path == "/api/contacts/companies"
            return httpx.Response(200, json={
                "1": [{"id": "co_1"}, {"id": "co_2"}],
                "2": {"id": "co_3"},
            })

        provider = self._provider(config, handler)
        related = await provider.bulk_fetch_related(["1", "2"])
        await provider.close()

        assert related == {"1": [{"id": "co_1"}, {"id": "co_2"}], "2": [{"id": "co_3"}]}

    @pytest.mark.asyncio
    async def test_empty_ids_skip_request(self, config):
        def handler(request):
            raise AssertionError("no request expected")

        provider = self._provider(config, handler)
        assert await provider.bulk_fetch([]) == {}
        assert await provider.bulk_fetch_related([]) == {}

    @pytest.mark.asyncio
    async def test_retries_then_raises(self, config, no_retry_wait):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        provider = self._provider(config, handler)
        with pytest.raises(httpx.HTTPStatusError):
            await provider.bulk_fetch(["1"])
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(self, config, no_retry_wait):
        responses = iter([httpx.Response(502), httpx.Response(200, json={"1": {"firstname": "Asha"}})])

        provider = self._provider(config, lambda request: next(responses))
        assert await provider.bulk_fetch(["1"]) == {"1": {"firstname": "Asha"}}

    @pytest.mark.asyncio
    async def test_api_key_auth_header(self):
        config = ContactsConfig(
            type="rest", base_url="https://crm.example.com",
            auth_type="api_key", auth_credentials={"header_name": "X-CRM-Key", "api_key": "k1"},
        )
        provider = RESTContactDataProvider(config)
        client = await provider._get_client()
        assert client.headers["X-CRM-Key"] == "k1"
        assert "Authorization" not in client.headers
        await provider.close()


class TestProviderFactory:
    def test_memory_by_default(self):
        assert isinstance(create_contact_provider(ContactsConfig()), InMemoryContactDataProvider)

    def test_rest(self):
        config = ContactsConfig(type="rest", base_url="https://crm.example.com")
        assert isinstance(create_contact_provider(config), RESTContactDataProvider)

    def test_rest_without_url_falls_back_to_memory(self):
        assert isinstance(create_contact_provider(ContactsConfig(type="rest")), InMemoryContactDataProvider)
