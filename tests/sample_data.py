"""Shared sample contacts and an in-memory directory service for pytest."""

import asyncio
from typing import Any, Dict, List, Optional

from leaguemail.core.config import DirectoryConfig, SelectionConfig, Settings
from leaguemail.core.models import Contact, PageResult


def raw_contact(
    contact_id: Any,
    first_name: Optional[str] = "Pat",
    last_name: Optional[str] = "Player",
    email: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Directory record in the service's camelCase JSON shape."""
    record = {
        "id": contact_id,
        "firstName": first_name,
        "lastName": last_name,
        "email": email if email is not None else f"player{contact_id}@league.org",
    }
    record.update(extra)
    return record


def make_contact(contact_id: str, name: str = "Pat Player", valid: bool = True) -> Contact:
    first, _, last = name.partition(" ")
    return Contact(
        id=contact_id,
        first_name=first,
        last_name=last,
        display_name=name,
        email=f"{contact_id}@league.org" if valid else "not-an-email",
        has_valid_email=valid,
    )


def make_settings(**selection: Any) -> Settings:
    """Settings with no retry delay and a short search debounce."""
    selection.setdefault("search_debounce_seconds", 0.01)
    return Settings(
        directory=DirectoryConfig(
            base_url="https://directory.league.org/api",
            api_token="test-token",
            max_retries=3,
            retry_initial_delay=0.0,
            retry_max_delay=0.0,
        ),
        selection=SelectionConfig(**selection),
    )


class FakeDirectoryService:
    """
    In-memory directory paginating over a fixed list of records.

    ``failures`` are raised by the next calls in order. ``gates`` maps a
    (kind, page) pair to an event the call waits on before answering.
    """

    def __init__(self, records: List[Dict[str, Any]]):
        self.records = records
        self.calls: List[Dict[str, Any]] = []
        self.failures: List[BaseException] = []
        self.gates: Dict[tuple, asyncio.Event] = {}

    def _page(self, records: List[Dict[str, Any]], page: int, limit: int) -> PageResult:
        start = (page - 1) * limit
        return PageResult.model_validate(
            {
                "contacts": records[start : start + limit],
                "pagination": {
                    "hasNext": start + limit < len(records),
                    "hasPrev": page > 1,
                },
            }
        )

    async def _answer(self, kind: str, page: int) -> None:
        gate = self.gates.get((kind, page))
        if gate is not None:
            await gate.wait()
        if self.failures:
            raise self.failures.pop(0)

    async def fetch_page(
        self,
        account_id,
        auth_token,
        *,
        page,
        limit,
        include_roles=True,
        include_details=True,
    ) -> PageResult:
        self.calls.append({"kind": "fetch", "page": page, "limit": limit})
        await self._answer("fetch", page)
        return self._page(self.records, page, limit)

    async def search_page(self, account_id, auth_token, query, *, page, limit) -> PageResult:
        self.calls.append({"kind": "search", "query": query, "page": page, "limit": limit})
        await self._answer("search", page)
        term = query.lower()
        matches = [
            record
            for record in self.records
            if term in f"{record.get('firstName') or ''} {record.get('lastName') or ''}".lower()
            or term in (record.get("email") or "").lower()
        ]
        return self._page(matches, page, limit)

    def calls_of(self, kind: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["kind"] == kind]
