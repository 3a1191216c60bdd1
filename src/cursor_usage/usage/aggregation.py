# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Aggregation of raw usage events into the display model.

Billing-period totals and rolling windows are evaluated independently:
- Billing totals and line items count events with timestamp >= billing start.
- Today / 7-day / 30-day windows count every fetched event by timestamp
  alone, anchored to the time of the aggregation.

Money is summed in cents and converted to dollars only when the output is
built.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional

from ..core.constants import (
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_SIZE,
    LAST_30_DAYS_LABEL,
    LAST_7_DAYS_LABEL,
    TODAY_LABEL,
    UNKNOWN_MODEL,
)
from ..core.types import LineItem, PeriodSummary, UsageDisplayData, UsageEvent

if TYPE_CHECKING:
    from ..client.usage_client import CursorUsageClient

lib_logger = logging.getLogger("cursor_usage")

ROLLING_WINDOW_DAYS = 30
WEEK_WINDOW_DAYS = 7


def local_now() -> datetime:
    """Current time as an aware datetime in the host time zone."""
    return datetime.now().astimezone()


def start_of_local_day(now: datetime) -> datetime:
    """Local midnight of now's calendar day, with the offset in effect then."""
    local = now.astimezone()
    return datetime.combine(local.date(), time()).astimezone()


def fetch_window_start(billing_start: datetime, now: datetime) -> datetime:
    """
    Start of the events fetch range.

    The earlier of the billing period start and 30 days ago, so both the
    billing totals and the 30-day window are covered.
    """
    return min(billing_start, now - timedelta(days=ROLLING_WINDOW_DAYS))


@dataclass
class _Bucket:
    """Running totals for one aggregation key."""

    requests: int = 0
    cents: float = 0.0
    tokens: int = 0

    def add(self, cents: float, tokens: int) -> None:
        self.requests += 1
        self.cents += cents
        self.tokens += tokens

    def to_period(self, label: str) -> PeriodSummary:
        return PeriodSummary(
            label=label,
            requests=self.requests,
            spend_dollars=self.cents / 100.0,
            tokens=self.tokens,
        )


def aggregate_usage(
    events: Iterable[UsageEvent],
    billing_start: datetime,
    now: datetime,
) -> UsageDisplayData:
    """
    Fold usage events into billing totals, line items and rolling windows.

    Args:
        events: Events fetched for the range starting at fetch_window_start()
        billing_start: Start of the billing period
        now: Aware datetime the windows are anchored to; "today" starts at
            local midnight of the host time zone

    Returns:
        Fully populated UsageDisplayData
    """
    start_of_today = start_of_local_day(now)
    seven_days_ago = now - timedelta(days=WEEK_WINDOW_DAYS)
    thirty_days_ago = now - timedelta(days=ROLLING_WINDOW_DAYS)

    by_model: Dict[str, _Bucket] = {}
    billing = _Bucket()
    today = _Bucket()
    last_7_days = _Bucket()
    last_30_days = _Bucket()

    for event in events:
        model = event.model or UNKNOWN_MODEL
        cents = event.cost_cents
        tokens = event.total_tokens
        event_time = event.timestamp

        if event_time >= billing_start:
            billing.add(cents, tokens)
            by_model.setdefault(model, _Bucket()).add(cents, tokens)

        # Windows are non-exclusive and ignore the billing period
        if event_time >= start_of_today:
            today.add(cents, tokens)
        if event_time >= seven_days_ago:
            last_7_days.add(cents, tokens)
        if event_time >= thirty_days_ago:
            last_30_days.add(cents, tokens)

    line_items = sorted(
        (
            LineItem(
                model_name=model,
                request_count=bucket.requests,
                cost_dollars=bucket.cents / 100.0,
                total_tokens=bucket.tokens,
            )
            for model, bucket in by_model.items()
        ),
        key=lambda item: (-item.cost_dollars, item.model_name),
    )

    return UsageDisplayData(
        total_requests=sum(item.request_count for item in line_items),
        total_spend_dollars=billing.cents / 100.0,
        total_tokens=billing.tokens,
        line_items=line_items,
        billing_period_start=billing_start,
        today=today.to_period(TODAY_LABEL),
        last_7_days=last_7_days.to_period(LAST_7_DAYS_LABEL),
        last_30_days=last_30_days.to_period(LAST_30_DAYS_LABEL),
    )


class UsageAggregator:
    """
    Builds UsageDisplayData from the usage API.

    Each call makes two dependent round-trips in order: billing period start,
    then the events for the range derived from it.

    Usage:
        aggregator = UsageAggregator(client)
        data = await aggregator.build_display_data()
    """

    def __init__(
        self,
        client: "CursorUsageClient",
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            client: Authenticated usage client
            page_size: Events requested per page
            max_pages: Upper bound on pages fetched per refresh
            clock: Returns the aware "now" (defaults to host local time)
        """
        self.client = client
        self.page_size = max(1, page_size)
        self.max_pages = max(1, max_pages)
        self._clock = clock or local_now

    async def fetch_events(self, start: datetime, end: datetime) -> List[UsageEvent]:
        """
        Fetch events page by page until a short page or the page cap.
        """
        events: List[UsageEvent] = []
        for page in range(1, self.max_pages + 1):
            batch = await self.client.fetch_usage_events(
                start, end, page=page, page_size=self.page_size
            )
            events.extend(batch)
            if len(batch) < self.page_size:
                return events

        lib_logger.warning(
            f"Reached page cap ({self.max_pages} x {self.page_size} events); "
            "usage totals may be incomplete"
        )
        return events

    async def build_display_data(self) -> UsageDisplayData:
        """
        Run one full aggregation pass.

        Any client error aborts the pass; no partial result is returned.
        """
        billing_start = await self.client.fetch_billing_period_start()
        now = self._clock()
        start = fetch_window_start(billing_start, now)

        events = await self.fetch_events(start, now)
        data = aggregate_usage(events, billing_start, now)

        lib_logger.debug(
            f"Aggregated {len(events)} events: period ${data.total_spend_dollars:.2f} "
            f"({data.total_requests} req), today ${data.today.spend_dollars:.2f}"
        )
        return data
