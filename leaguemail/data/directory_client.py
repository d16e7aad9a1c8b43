"""
Contact directory service client.

Defines the interface the selection engine consumes and an httpx-based
implementation that maps transport and HTTP failures onto the LeagueMail
error taxonomy.
"""

from typing import Any, Dict, Optional, Protocol

import httpx
import structlog

from leaguemail.core.config import DirectoryConfig
from leaguemail.core.error_handling import error_from_status, normalize_error
from leaguemail.core.exceptions import (
    AuthenticationRequired,
    UnknownError,
    ValidationFailed,
)
from leaguemail.core.models import PageResult
from leaguemail.utils.reliability import track_performance

logger = structlog.get_logger(__name__)


class DirectoryService(Protocol):
    """Paginated, searchable contact directory."""

    async def fetch_page(
        self,
        account_id: str,
        auth_token: Optional[str],
        *,
        page: int,
        limit: int,
        include_roles: bool = True,
        include_details: bool = True,
    ) -> PageResult:
        ...

    async def search_page(
        self,
        account_id: str,
        auth_token: Optional[str],
        query: str,
        *,
        page: int,
        limit: int,
    ) -> PageResult:
        ...


class HttpDirectoryClient:
    """
    Directory service client over HTTP.

    Requests are plain GETs against ``/accounts/{account_id}/contacts``.
    Cancelling the awaiting task aborts the underlying request.
    """

    def __init__(self, config: DirectoryConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds), follow_redirects=True
        )

        logger.info(
            "Directory client initialized",
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
        )

    async def __aenter__(self) -> "HttpDirectoryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    def _get_headers(self, auth_token: Optional[str]) -> Dict[str, str]:
        token = auth_token or self.config.api_token
        if not token or not token.strip():
            raise AuthenticationRequired(
                "Authentication token is required", details={"operation": "get_headers"}
            )
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    def _contacts_url(self, account_id: str) -> str:
        if not account_id or not account_id.strip():
            raise ValidationFailed("Account ID is required", details={"operation": "contacts_url"})
        return f"{self.config.base_url.rstrip('/')}/accounts/{account_id}/contacts"

    async def _get_page(
        self, url: str, params: Dict[str, Any], auth_token: Optional[str]
    ) -> PageResult:
        """
        Issue one authenticated GET and parse the page envelope.

        Raises:
            DirectoryServiceError: On transport, HTTP or payload errors
        """
        headers = self._get_headers(auth_token)

        logger.debug("Making directory request", url=url, params=params)

        try:
            response = await self.client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise normalize_error(e, {"endpoint": url}) from e

        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text or None
            raise error_from_status(
                response.status_code, payload, endpoint=url, headers=dict(response.headers)
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UnknownError(
                "Failed to parse directory response",
                details={"endpoint": url, "status_code": response.status_code},
            ) from e

        if isinstance(data, dict) and data.get("success") is False:
            raise UnknownError(
                data.get("message") or "Directory request failed", details={"endpoint": url}
            )

        try:
            return PageResult.model_validate(data)
        except ValueError as e:
            raise UnknownError(
                "Invalid directory response format", details={"endpoint": url, "error": str(e)}
            ) from e

    @track_performance("directory.fetch_page")
    async def fetch_page(
        self,
        account_id: str,
        auth_token: Optional[str],
        *,
        page: int,
        limit: int,
        include_roles: bool = True,
        include_details: bool = True,
    ) -> PageResult:
        """
        Fetch one page of the unfiltered contact listing.

        Args:
            account_id: League account whose contacts are listed
            auth_token: Bearer token (falls back to the configured token)
            page: 1-based page number
            limit: Page size
            include_roles: Ask for role assignments
            include_details: Ask for phone details

        Returns:
            PageResult with raw contacts and cursor flags
        """
        params = {
            "page": page,
            "limit": limit,
            "roles": str(include_roles).lower(),
            "contactDetails": str(include_details).lower(),
        }
        return await self._get_page(self._contacts_url(account_id), params, auth_token)

    @track_performance("directory.search_page")
    async def search_page(
        self,
        account_id: str,
        auth_token: Optional[str],
        query: str,
        *,
        page: int,
        limit: int,
    ) -> PageResult:
        """Fetch one page of contacts matching ``query``."""
        if not query or not query.strip():
            raise ValidationFailed(
                "Search query is required", details={"operation": "search_contacts"}
            )

        params = {
            "q": query.strip(),
            "page": page,
            "limit": limit,
            "roles": "true",
            "contactDetails": "true",
        }
        return await self._get_page(self._contacts_url(account_id), params, auth_token)
