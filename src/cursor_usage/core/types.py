# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared type definitions for the cursor_usage library.

This module contains the credential, the decoded API payloads and the
display model handed to the presentation layer.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .constants import START_OF_MONTH_KEY
from .errors import DecodeError

lib_logger = logging.getLogger("cursor_usage")


# =============================================================================
# CREDENTIAL TYPES
# =============================================================================


@dataclass(frozen=True)
class Credential:
    """
    Session credential derived from the local access token.

    Created once per process run and never re-derived mid-session.
    """

    session_token: str = field(repr=False)  # "{user_id}%3A%3A{jwt}"
    user_id: str


# =============================================================================
# DECODING HELPERS
# =============================================================================


def _optional_int(data: Dict[str, Any], key: str, context: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"{context}.{key} must be an integer, got {value!r}")
    return value


def _optional_number(data: Dict[str, Any], key: str, context: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"{context}.{key} must be a number, got {value!r}")
    return float(value)


def _optional_str(data: Dict[str, Any], key: str, context: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodeError(f"{context}.{key} must be a string, got {value!r}")
    return value


def _optional_bool(data: Dict[str, Any], key: str, context: str) -> Optional[bool]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise DecodeError(f"{context}.{key} must be a boolean, got {value!r}")
    return value


def parse_timestamp_ms(raw: Any) -> Optional[int]:
    """
    Parse a millisecond epoch sent as a decimal string (or number).

    Returns None when the value is not numeric or lies outside the range
    a datetime can represent.
    """
    if isinstance(raw, bool):
        return None
    try:
        if isinstance(raw, (int, float)):
            value = int(raw)
        elif isinstance(raw, str):
            value = int(float(raw.strip()))
        else:
            return None
        datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None
    return value


def parse_iso_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp such as "2026-01-23T22:27:08.000Z".

    Timestamps without an offset are taken as UTC. Returns None on failure.
    """
    if not raw:
        return None
    try:
        value = raw.strip()
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
    except (ValueError, AttributeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# =============================================================================
# LEGACY USAGE API
# =============================================================================


@dataclass(frozen=True)
class ModelCounters:
    """Per-model request counters from the legacy usage endpoint."""

    num_requests: int
    max_request_usage: Optional[int] = None

    @property
    def remaining_fraction(self) -> float:
        """Unused share of a capped model (1.0 when there is no cap)."""
        if self.max_request_usage and self.max_request_usage > 0:
            remaining = max(0, self.max_request_usage - self.num_requests)
            return remaining / self.max_request_usage
        return 1.0

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ModelCounters"]:
        """Decode one model entry; returns None for values of another shape."""
        if not isinstance(data, dict):
            return None
        num_requests = data.get("numRequests")
        if isinstance(num_requests, bool) or not isinstance(num_requests, int):
            return None
        max_usage = data.get("maxRequestUsage")
        if isinstance(max_usage, bool) or not isinstance(max_usage, int):
            max_usage = None
        return cls(num_requests=num_requests, max_request_usage=max_usage)


@dataclass(frozen=True)
class LegacyUsage:
    """
    Response of GET /api/usage?user={userId}.

    The payload is an open-ended mapping of model name -> counters with one
    reserved sibling key holding the billing period start.
    """

    models: Dict[str, ModelCounters] = field(default_factory=dict)
    start_of_month: Optional[str] = None

    @property
    def billing_period_start(self) -> Optional[datetime]:
        return parse_iso_timestamp(self.start_of_month)

    @classmethod
    def from_dict(cls, data: Any) -> "LegacyUsage":
        if not isinstance(data, dict):
            raise DecodeError(
                f"legacy usage response must be an object, got {type(data).__name__}"
            )

        models: Dict[str, ModelCounters] = {}
        start_of_month: Optional[str] = None
        for key, value in data.items():
            if key == START_OF_MONTH_KEY:
                if isinstance(value, str):
                    start_of_month = value
                continue
            counters = ModelCounters.from_dict(value)
            if counters is not None:
                models[key] = counters

        return cls(models=models, start_of_month=start_of_month)


# =============================================================================
# USAGE EVENTS API
# =============================================================================


@dataclass(frozen=True)
class TokenUsage:
    """Token and cost breakdown of a single usage event."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_write_tokens: int = 0
    cache_read_tokens: int = 0
    total_cents: float = 0.0

    @property
    def total_tokens(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_write_tokens
            + self.cache_read_tokens
        )

    @classmethod
    def from_dict(cls, data: Any) -> "TokenUsage":
        context = "tokenUsage"
        if not isinstance(data, dict):
            raise DecodeError(f"{context} must be an object, got {data!r}")
        return cls(
            input_tokens=_optional_int(data, "inputTokens", context) or 0,
            output_tokens=_optional_int(data, "outputTokens", context) or 0,
            cache_write_tokens=_optional_int(data, "cacheWriteTokens", context) or 0,
            cache_read_tokens=_optional_int(data, "cacheReadTokens", context) or 0,
            total_cents=_optional_number(data, "totalCents", context) or 0.0,
        )


@dataclass(frozen=True)
class UsageEvent:
    """
    One billable model invocation.

    Exists only for the duration of one aggregation pass.
    """

    timestamp_ms: int
    model: Optional[str] = None
    token_usage: Optional[TokenUsage] = None
    kind: Optional[str] = None
    is_chargeable: Optional[bool] = None
    is_token_based_call: Optional[bool] = None
    usage_based_costs: Optional[str] = None

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_ms / 1000.0, tz=timezone.utc)

    @property
    def total_tokens(self) -> int:
        return self.token_usage.total_tokens if self.token_usage else 0

    @property
    def cost_cents(self) -> float:
        return self.token_usage.total_cents if self.token_usage else 0.0

    @property
    def cost_dollars(self) -> float:
        return self.cost_cents / 100.0

    @classmethod
    def from_dict(cls, data: Any) -> "UsageEvent":
        context = "usageEvent"
        if not isinstance(data, dict):
            raise DecodeError(f"{context} must be an object, got {data!r}")
        if data.get("timestamp") is None:
            raise DecodeError(f"{context}.timestamp is required")

        # Non-numeric or out-of-range timestamps land at epoch 0, outside every window
        timestamp_ms = parse_timestamp_ms(data["timestamp"])
        if timestamp_ms is None:
            lib_logger.warning(
                f"Unparsable usage event timestamp {data['timestamp']!r}, using epoch 0"
            )
            timestamp_ms = 0

        raw_usage = data.get("tokenUsage")
        return cls(
            timestamp_ms=timestamp_ms,
            model=_optional_str(data, "model", context),
            token_usage=TokenUsage.from_dict(raw_usage) if raw_usage is not None else None,
            kind=_optional_str(data, "kind", context),
            is_chargeable=_optional_bool(data, "isChargeable", context),
            is_token_based_call=_optional_bool(data, "isTokenBasedCall", context),
            usage_based_costs=_optional_str(data, "usageBasedCosts", context),
        )


def decode_usage_events(data: Any) -> List[UsageEvent]:
    """
    Decode the events endpoint response body.

    An absent or null ``usageEventsDisplay`` is an empty list, never an error.
    """
    if not isinstance(data, dict):
        raise DecodeError(
            f"usage events response must be an object, got {type(data).__name__}"
        )
    raw_events = data.get("usageEventsDisplay")
    if raw_events is None:
        return []
    if not isinstance(raw_events, list):
        raise DecodeError("usageEventsDisplay must be a list")
    return [UsageEvent.from_dict(item) for item in raw_events]


# =============================================================================
# DISPLAY MODEL
# =============================================================================


@dataclass(frozen=True)
class PeriodSummary:
    """Totals for one rolling window (today, 7 days, 30 days)."""

    label: str
    requests: int
    spend_dollars: float
    tokens: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "requests": self.requests,
            "spendDollars": self.spend_dollars,
            "tokens": self.tokens,
        }


@dataclass(frozen=True)
class LineItem:
    """Per-model aggregate within the current billing period."""

    model_name: str
    request_count: int
    cost_dollars: float
    total_tokens: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modelName": self.model_name,
            "requestCount": self.request_count,
            "costDollars": self.cost_dollars,
            "totalTokens": self.total_tokens,
        }


@dataclass(frozen=True)
class UsageDisplayData:
    """
    Output of one aggregation pass.

    Replaces the previous instance as a whole on every successful refresh.
    """

    total_requests: int
    total_spend_dollars: float
    total_tokens: int
    line_items: List[LineItem]  # costDollars descending
    billing_period_start: datetime
    today: PeriodSummary
    last_7_days: PeriodSummary
    last_30_days: PeriodSummary

    @property
    def periods(self) -> List[PeriodSummary]:
        return [self.today, self.last_7_days, self.last_30_days]

    def to_dict(self) -> Dict[str, Any]:
        """camelCase form consumed by web front ends."""
        return {
            "totalRequests": self.total_requests,
            "totalSpendDollars": self.total_spend_dollars,
            "totalTokens": self.total_tokens,
            "lineItems": [item.to_dict() for item in self.line_items],
            "billingPeriodStart": self.billing_period_start.isoformat(),
            "today": self.today.to_dict(),
            "last7Days": self.last_7_days.to_dict(),
            "last30Days": self.last_30_days.to_dict(),
        }
