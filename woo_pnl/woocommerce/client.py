"""
WooCommerce REST API client.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import httpx

from woo_pnl.db.models import StoreCredentials

logger = logging.getLogger(__name__)


class WooCommerceError(Exception):
    """Base exception for WooCommerce client errors."""
    pass


class CredentialsMissing(WooCommerceError):
    """API credentials are absent or incomplete."""

    def __init__(self, message: str = "API credentials not set"):
        super().__init__(message)


class NetworkUnreachable(WooCommerceError):
    """No response was received from the store."""
    pass


class RemoteAPIError(WooCommerceError):
    """The store answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimited(RemoteAPIError):
    """Rate limit exceeded."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


@dataclass
class Page:
    """One page of a paginated listing."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0
    total_pages: int = 1


def _header_int(headers: httpx.Headers, name: str, default: int) -> int:
    try:
        return int(headers.get(name, default))
    except (TypeError, ValueError):
        return default


def _retry_after_seconds(value: Optional[str], default: float) -> float:
    """Seconds to wait from a Retry-After header (delay-seconds or HTTP-date)."""
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(seconds, 0.0) if math.isfinite(seconds) else default
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable Retry-After header {value!r}")
        return default
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max((retry_at - datetime.now(timezone.utc)).total_seconds(), 0.0)


class WooCommerceClient:
    """
    Async HTTP client for the WooCommerce REST API (v3).

    Handles basic authentication, pagination metadata and rate limiting.
    Only 429 responses are retried; every other failure is raised.
    """

    API_PATH = "/wp-json/wc/v3"
    MAX_PER_PAGE = 100  # API-imposed ceiling
    MAX_RETRIES = 5
    BASE_RETRY_DELAY = 1.0  # seconds
    MAX_RETRY_DELAY = 60.0  # seconds

    def __init__(
        self,
        credentials: StoreCredentials,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize WooCommerce client.

        Args:
            credentials: Store URL and REST API key pair
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        if not credentials.is_complete:
            raise CredentialsMissing()

        url = credentials.url
        if not url.startswith(("http://", "https://")):
            url = f"https://{url}"

        self.store_url = url
        self.base_url = f"{url}{self.API_PATH}"
        self._credentials = credentials
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self._credentials.consumer_key, self._credentials.consumer_secret),
                timeout=httpx.Timeout(self._timeout, connect=10.0),
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Page:
        """
        GET a listing endpoint.

        Args:
            path: Endpoint path relative to the API root (e.g. "/orders")
            params: Query parameters

        Returns:
            Page with items and the X-WP-Total / X-WP-TotalPages metadata

        Raises:
            NetworkUnreachable: If no response was received
            RemoteAPIError: For non-2xx responses
        """
        client = await self._get_client()
        last_error: Optional[Exception] = None

        for attempt in range(self.MAX_RETRIES):
            try:
                logger.debug(f"GET {path} {params or {}}")
                response = await client.get(path, params=params)

                if response.status_code == 429:
                    retry_after = min(
                        _retry_after_seconds(
                            response.headers.get("Retry-After"),
                            self.BASE_RETRY_DELAY * (2 ** attempt),
                        ),
                        self.MAX_RETRY_DELAY,
                    )
                    raise RateLimited("Rate limit exceeded", retry_after=retry_after)

                if not response.is_success:
                    raise RemoteAPIError(
                        f"API Error ({response.status_code}): {self._error_text(response)}",
                        status_code=response.status_code,
                    )

                try:
                    items = response.json()
                except ValueError as e:
                    raise RemoteAPIError(
                        f"Invalid JSON response from {path}: {e}",
                        status_code=response.status_code,
                    ) from e

                if not isinstance(items, list):
                    items = [items]

                return Page(
                    items=items,
                    total=_header_int(response.headers, "X-WP-Total", len(items)),
                    total_pages=max(_header_int(response.headers, "X-WP-TotalPages", 1), 1),
                )

            except RateLimited as e:
                last_error = e
                logger.warning(
                    f"Rate limited, waiting {e.retry_after:.1f}s "
                    f"(attempt {attempt + 1}/{self.MAX_RETRIES})"
                )
                await asyncio.sleep(e.retry_after)

            except httpx.RequestError as e:
                raise NetworkUnreachable(str(e) or e.__class__.__name__) from e

        # All retries exhausted
        raise last_error or RemoteAPIError("Max retries exceeded")

    async def get_page(
        self,
        path: str,
        page: int,
        per_page: int = MAX_PER_PAGE,
        **params: Any,
    ) -> Page:
        """Fetch one page of a listing, clamping per_page to the API ceiling."""
        query = {k: v for k, v in params.items() if v is not None}
        query["per_page"] = max(1, min(per_page, self.MAX_PER_PAGE))
        query["page"] = page
        return await self.get(path, query)

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason_phrase or "Unknown error"

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
