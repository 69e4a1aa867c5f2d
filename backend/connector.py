"""
Contact Data Provider — bulk lookup of contact and company data for queue targets.

The queue never loads contacts one by one: a processing pass collects every
target id on the page and asks the provider once for profile fields and once
for related companies. Failures propagate so the caller can abandon the page.
"""
from __future__ import annotations

import abc
from typing import Any, Iterable, Optional

import httpx
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from config.settings import ContactsConfig, get_settings

logger = structlog.get_logger()


class ContactDataProvider(abc.ABC):
    """Abstract base for all contact data providers."""

    @abc.abstractmethod
    async def bulk_fetch(self, target_ids: list[str]) -> dict[str, dict[str, Any]]:
        """Fetch profile fields for every id. Unknown ids may be omitted."""
        ...

    @abc.abstractmethod
    async def bulk_fetch_related(self, target_ids: list[str]) -> dict[str, list[dict[str, Any]]]:
        """Fetch related companies per contact id. Unknown ids may be omitted."""
        ...

    async def close(self) -> None:
        pass


def _records_by_id(result: Any) -> dict[str, Any]:
    """Accept ``{id: data}``, ``{"data": ...}`` or a list of records carrying ``id``."""
    if isinstance(result, dict) and "data" in result:
        result = result["data"]
    if isinstance(result, list):
        return {str(r["id"]): r for r in result if isinstance(r, dict) and "id" in r}
    if isinstance(result, dict):
        return {str(k): v for k, v in result.items()}
    return {}


class RESTContactDataProvider(ContactDataProvider):
    """
    REST API contact provider.
    Posts the id list to the configured bulk endpoints.
    """

    def __init__(self, config: ContactsConfig = None):
        self.config = config or get_settings().contacts
        self.client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            headers = {}
            if self.config.auth_type == "bearer":
                token = self.config.auth_credentials.get("token", "")
                headers["Authorization"] = f"Bearer {token}"
            elif self.config.auth_type == "api_key":
                key_name = self.config.auth_credentials.get("header_name", "X-API-Key")
                headers[key_name] = self.config.auth_credentials.get("api_key", "")

            self.client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers=headers,
                timeout=self.config.timeout,
            )
        return self.client

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, max=10), reraise=True)
    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        client = await self._get_client()
        url = self.config.endpoints.get(endpoint, endpoint)
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()

    async def bulk_fetch(self, target_ids: list[str]) -> dict[str, dict[str, Any]]:
        if not target_ids:
            return {}
        result = await self._request("POST", "bulk_contacts", json={"ids": list(target_ids)})
        contacts = _records_by_id(result)
        logger.debug("contacts_fetched", requested=len(target_ids), found=len(contacts))
        return contacts

    async def bulk_fetch_related(self, target_ids: list[str]) -> dict[str, list[dict[str, Any]]]:
        if not target_ids:
            return {}
        result = await self._request("POST", "bulk_companies", json={"ids": list(target_ids)})
        return {k: v if isinstance(v, list) else [v] for k, v in _records_by_id(result).items()}

    async def close(self):
        if self.client:
            await self.client.aclose()


class InMemoryContactDataProvider(ContactDataProvider):
    """
    Dict-backed provider for development and testing.
    Counts calls so tests can assert the one-fetch-per-page property.
    """

    def __init__(
        self,
        contacts: dict[str, dict[str, Any]] = None,
        companies: dict[str, list[dict[str, Any]]] = None,
    ):
        self._contacts = {str(k): v for k, v in (contacts or {}).items()}
        self._companies = {str(k): v for k, v in (companies or {}).items()}
        self.fetch_calls: list[list[str]] = []

    def add_contact(self, contact_id: str, fields: dict[str, Any],
                    companies: Iterable[dict[str, Any]] = ()) -> None:
        self._contacts[str(contact_id)] = fields
        if companies:
            self._companies[str(contact_id)] = list(companies)

    async def bulk_fetch(self, target_ids: list[str]) -> dict[str, dict[str, Any]]:
        self.fetch_calls.append(list(target_ids))
        return {tid: dict(self._contacts[tid]) for tid in target_ids if tid in self._contacts}

    async def bulk_fetch_related(self, target_ids: list[str]) -> dict[str, list[dict[str, Any]]]:
        return {tid: list(self._companies[tid]) for tid in target_ids if tid in self._companies}


def create_contact_provider(config: ContactsConfig = None) -> ContactDataProvider:
    """Factory function to create the appropriate contact provider."""
    config = config or get_settings().contacts
    if config.type == "rest" and config.base_url:
        return RESTContactDataProvider(config)
    if config.type == "rest":
        logger.warning("using_memory_contact_provider", reason="base_url empty")
    return InMemoryContactDataProvider()
