"""
Async Graph API client with pagination, throttling, retry, and safety enforcement.
Requests are awaited one at a time; callers drive the ordering.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, AsyncGenerator, Optional

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    GRAPH_BETA_VERSION,
    MAX_RETRIES,
    INITIAL_BACKOFF_SECONDS,
    MAX_BACKOFF_SECONDS,
    BACKOFF_MULTIPLIER,
    DEFAULT_PAGE_SIZE,
    MAX_PAGES_PER_ENDPOINT,
)
from ..safety.guardian import SafetyGuardian

logger = logging.getLogger("m365_contact_sync.graph")

RETRYABLE_STATUS = (429, 503, 504)
# POST is not idempotent: a 503/504 or a read timeout may follow a committed create.
NON_IDEMPOTENT_RETRYABLE_STATUS = (429,)
NON_IDEMPOTENT_METHODS = ("POST",)


def _retry_after_seconds(value: Optional[str], default: float) -> float:
    """Parse a Retry-After header given as delta-seconds or an HTTP date."""
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


class GraphAPIError(Exception):
    """Raised when Graph API returns a non-recoverable error."""
    def __init__(self, status_code: int, message: str, url: str):
        self.status_code = status_code
        self.url = url
        self.message = message
        super().__init__(f"Graph API Error {status_code} for {url}: {message}")


class GraphClient:
    """
    Async Microsoft Graph API client.
    Features:
      - Guardian-validated requests (write scope enforcement)
      - Automatic pagination with @odata.nextLink
      - Exponential backoff on 429/503/504 (429 only for POST), honouring Retry-After
      - v1.0 and beta endpoint support
    """

    def __init__(
        self,
        access_token: str,
        guardian: SafetyGuardian,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        initial_backoff: float = INITIAL_BACKOFF_SECONDS,
    ):
        self.access_token = access_token
        self.guardian = guardian
        self._transport = transport
        self._initial_backoff = initial_backoff
        self._request_count = 0
        self._throttle_count = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(60.0, connect=30.0),
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str, beta: bool = False) -> str:
        """Build full Graph URL from relative endpoint."""
        if endpoint.startswith("http"):
            return endpoint
        version = GRAPH_BETA_VERSION if beta else GRAPH_API_VERSION
        endpoint = endpoint.lstrip("/")
        return f"{GRAPH_BASE_URL}/{version}/{endpoint}"

    async def get(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        beta: bool = False,
    ) -> dict:
        """Execute a single GET request with retry/throttle handling."""
        url = self._build_url(endpoint, beta=beta)
        self.guardian.validate_request("GET", url)
        return await self._execute_with_retry("GET", url, params=params)

    async def get_all_pages(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        beta: bool = False,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> list[dict]:
        """Fetch all pages of a paginated endpoint into a list."""
        items = []
        async for item in self.get_all_pages_stream(endpoint, params, beta, page_size):
            items.append(item)
        return items

    async def get_all_pages_stream(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        beta: bool = False,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> AsyncGenerator[dict, None]:
        """
        Stream all pages of a paginated endpoint as an async generator.
        Yields one item at a time, following @odata.nextLink.
        """
        params = dict(params or {})
        if "$top" not in params:
            params["$top"] = str(page_size)

        url: Optional[str] = self._build_url(endpoint, beta=beta)
        query: Optional[dict] = params
        pages = 0

        while url and pages < MAX_PAGES_PER_ENDPOINT:
            self.guardian.validate_request("GET", url)
            data = await self._execute_with_retry("GET", url, params=query)

            for item in data.get("value", []):
                yield item

            # nextLink carries all query parameters
            url = data.get("@odata.nextLink")
            query = None
            pages += 1

        if pages >= MAX_PAGES_PER_ENDPOINT:
            logger.warning(
                f"Pagination safety cap reached ({MAX_PAGES_PER_ENDPOINT} pages) "
                f"for endpoint: {endpoint}"
            )

    async def post(self, endpoint: str, json_body: dict, beta: bool = False) -> dict:
        """Execute a POST and return the response body (empty for 202/204)."""
        url = self._build_url(endpoint, beta=beta)
        self.guardian.validate_request("POST", url, json_body)
        return await self._execute_with_retry("POST", url, json_body=json_body)

    async def patch(self, endpoint: str, json_body: dict, beta: bool = False) -> dict:
        """Execute a PATCH and return the updated resource."""
        url = self._build_url(endpoint, beta=beta)
        self.guardian.validate_request("PATCH", url, json_body)
        return await self._execute_with_retry("PATCH", url, json_body=json_body)

    async def delete(self, endpoint: str, beta: bool = False) -> None:
        """Execute a DELETE."""
        url = self._build_url(endpoint, beta=beta)
        self.guardian.validate_request("DELETE", url)
        await self._execute_with_retry("DELETE", url)

    async def _execute_with_retry(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> dict:
        """Execute request with exponential backoff on throttling."""
        backoff = self._initial_backoff
        idempotent = method.upper() not in NON_IDEMPOTENT_METHODS
        retryable = RETRYABLE_STATUS if idempotent else NON_IDEMPOTENT_RETRYABLE_STATUS

        for attempt in range(MAX_RETRIES + 1):
            try:
                response = await self._execute_raw(
                    method, url, params=params, json_body=json_body
                )
                self._request_count += 1

                if response.status_code in (200, 201):
                    if not response.content or not response.content.strip():
                        return {}
                    return response.json()

                if response.status_code in (202, 204):
                    return {}

                if response.status_code in retryable and attempt < MAX_RETRIES:
                    self._throttle_count += 1
                    retry_after = _retry_after_seconds(
                        response.headers.get("Retry-After"), backoff
                    )
                    wait_time = max(retry_after, backoff)
                    logger.warning(
                        f"Throttled ({response.status_code}) on {method} {url}. "
                        f"Retry {attempt + 1}/{MAX_RETRIES} in {wait_time:.1f}s"
                    )
                    await asyncio.sleep(wait_time)
                    backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF_SECONDS)
                    continue

                raise GraphAPIError(response.status_code, _error_message(response), url)

            except httpx.TimeoutException as e:
                logger.warning(f"Timeout on {method} {url}, attempt {attempt + 1}/{MAX_RETRIES}")
                # Only a connect timeout proves a POST never reached the server.
                if attempt == MAX_RETRIES or (
                    not idempotent and not isinstance(e, httpx.ConnectTimeout)
                ):
                    raise
                await asyncio.sleep(backoff)
                backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF_SECONDS)

            except httpx.ConnectError as e:
                logger.warning(f"Connection error on {method} {url}: {e}")
                if attempt == MAX_RETRIES:
                    raise
                await asyncio.sleep(backoff)
                backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF_SECONDS)

        raise GraphAPIError(429, "Maximum retries exceeded", url)

    async def _execute_raw(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> httpx.Response:
        """Execute raw HTTP request."""
        if not self._client:
            raise RuntimeError("GraphClient not initialized. Use 'async with' context.")
        return await self._client.request(method, url, params=params, json=json_body)

    def get_stats(self) -> dict:
        """Return client statistics."""
        return {
            "total_requests": self._request_count,
            "throttle_events": self._throttle_count,
        }


def _error_message(response: httpx.Response) -> str:
    """Pull the Graph error message out of a failed response."""
    try:
        body: Any = response.json() if response.content else {}
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return body.get("error", {}).get("message", response.text[:200])
    return response.text[:200]
