# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Cursor usage API client.

Two endpoints are used:
- GET {base}/api/usage?user={user_id}
  Legacy per-model request counters plus "startOfMonth" (billing period start).
  Response: { "gpt-4": {"numRequests": int, "maxRequestUsage": int}, "startOfMonth": str }
- POST {base}/api/dashboard/get-filtered-usage-events
  Itemized usage events for a millisecond date range, paginated.

Auth: Cookie header with WorkosCursorSessionToken. The dashboard API also
checks browser-like Origin/Referer/Sec-Fetch headers.
"""

import logging
import urllib.parse
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from ..core.constants import (
    BROWSER_USER_AGENT,
    DASHBOARD_PATH,
    DEFAULT_API_BASE,
    DEFAULT_PAGE_SIZE,
    DEFAULT_REQUEST_TIMEOUT,
    LEGACY_USAGE_ENDPOINT,
    SESSION_COOKIE_NAME,
    USAGE_EVENTS_ENDPOINT,
)
from ..core.errors import DecodeError, HttpError, TransportError
from ..core.types import Credential, LegacyUsage, UsageEvent, decode_usage_events

lib_logger = logging.getLogger("cursor_usage")


def to_epoch_ms(value: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    return int(value.timestamp() * 1000)


def start_of_current_month(now: Optional[datetime] = None) -> datetime:
    """
    First instant of the current calendar month in local time.

    Built from naive wall-clock time so the offset is the one in effect on
    the 1st, not the one in effect now.
    """
    local = (now or datetime.now()).astimezone()
    return datetime(local.year, local.month, 1).astimezone()


class CursorUsageClient:
    """
    Authenticated client for the Cursor usage API.

    Holds an immutable Credential. Failures raise HttpError, TransportError
    or DecodeError; nothing is retried here.

    Usage:
        async with CursorUsageClient(credential) as client:
            start = await client.fetch_billing_period_start()
            events = await client.fetch_usage_events(start, now)
    """

    def __init__(
        self,
        credential: Credential,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            credential: Session credential from the local store
            api_base: Base URL (scheme + host)
            timeout: Per-request timeout in seconds
            client: Optional HTTP client for connection reuse (not closed by us)
        """
        self.credential = credential
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "CursorUsageClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True
            )
            self._owns_client = True
        return self._client

    # =========================================================================
    # HEADERS
    # =========================================================================

    def _cookie_header(self) -> str:
        return f"{SESSION_COOKIE_NAME}={self.credential.session_token}"

    def _get_headers(self) -> Dict[str, str]:
        """Browser-like header set for the dashboard API."""
        return {
            "Content-Type": "application/json",
            "Cookie": self._cookie_header(),
            "Origin": self.api_base,
            "Referer": f"{self.api_base}{DASHBOARD_PATH}",
            "Sec-Fetch-Site": "same-origin",
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Dest": "empty",
            "Accept": "*/*",
            "Accept-Language": "en",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
            "User-Agent": BROWSER_USER_AGENT,
        }

    def _get_legacy_headers(self) -> Dict[str, str]:
        headers = self._get_headers()
        headers.pop("Content-Type")
        headers["Accept"] = "application/json"
        return headers

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body."""
        lib_logger.debug(f"Cursor API {method} {url}")
        try:
            response = await self._get_client().request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {method} {url}") from e
        except httpx.RequestError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            body = response.text or None
            error = HttpError(response.status_code, body)
            if error.is_auth_failure:
                lib_logger.warning(
                    f"Cursor API authentication failed (HTTP {response.status_code}). "
                    "Log in to Cursor again and restart."
                )
            raise error

        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"response from {url} is not valid JSON: {e}") from e

    # =========================================================================
    # LEGACY USAGE API
    # =========================================================================

    async def fetch_legacy_usage(self) -> LegacyUsage:
        """
        Fetch per-model request counters and the billing period start.

        Returns:
            LegacyUsage with models and raw startOfMonth string
        """
        encoded_user_id = urllib.parse.quote(self.credential.user_id, safe="")
        url = f"{self.api_base}{LEGACY_USAGE_ENDPOINT}?user={encoded_user_id}"
        data = await self._request("GET", url, headers=self._get_legacy_headers())

        if isinstance(data, dict) and isinstance(data.get("error"), str):
            # e.g. {"error": "not_authenticated", "description": "..."}
            lib_logger.warning(
                f"Cursor legacy usage endpoint returned an error: "
                f"{data.get('description', data['error'])}"
            )

        return LegacyUsage.from_dict(data)

    async def fetch_billing_period_start(self) -> datetime:
        """
        Fetch the start of the current billing period.

        Falls back to the first instant of the current local calendar month
        when "startOfMonth" is absent or unparsable.
        """
        legacy = await self.fetch_legacy_usage()
        start = legacy.billing_period_start
        if start is not None:
            return start

        fallback = start_of_current_month()
        lib_logger.debug(
            f"No usable startOfMonth ({legacy.start_of_month!r}), "
            f"using {fallback.isoformat()}"
        )
        return fallback

    # =========================================================================
    # USAGE EVENTS API
    # =========================================================================

    async def fetch_usage_events(
        self,
        start: datetime,
        end: datetime,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> List[UsageEvent]:
        """
        Fetch one page of usage events for a date range.

        Args:
            start: Range start (inclusive)
            end: Range end
            page: 1-based page number
            page_size: Events per page

        Returns:
            Decoded events; empty when the response carries no list
        """
        url = f"{self.api_base}{USAGE_EVENTS_ENDPOINT}"
        body = {
            "teamId": 0,
            "startDate": str(to_epoch_ms(start)),
            "endDate": str(to_epoch_ms(end)),
            "page": page,
            "pageSize": page_size,
        }
        data = await self._request("POST", url, headers=self._get_headers(), json=body)
        events = decode_usage_events(data)
        lib_logger.debug(f"Fetched {len(events)} usage events (page {page})")
        return events
