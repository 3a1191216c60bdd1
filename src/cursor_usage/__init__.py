# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Cursor usage monitoring library.

Reads the Cursor access token from the local state database, queries the
usage API and aggregates spend into billing-period and rolling-window totals.
"""

from .auth.token_extractor import CursorTokenStore, extract_credential
from .client.usage_client import CursorUsageClient
from .config import UsageSettings
from .core.errors import (
    CredentialError,
    CursorUsageError,
    DecodeError,
    HttpError,
    NetworkError,
    TransportError,
    UsageAPIError,
)
from .core.types import (
    Credential,
    LineItem,
    PeriodSummary,
    UsageDisplayData,
    UsageEvent,
)
from .usage.aggregation import UsageAggregator, aggregate_usage
from .usage.monitor import RefreshStatus, UsageMonitor, UsageSnapshot, UsageState

__version__ = "0.1.0"

__all__ = [
    "Credential",
    "CredentialError",
    "CursorTokenStore",
    "CursorUsageClient",
    "CursorUsageError",
    "DecodeError",
    "HttpError",
    "LineItem",
    "NetworkError",
    "PeriodSummary",
    "RefreshStatus",
    "TransportError",
    "UsageAPIError",
    "UsageAggregator",
    "UsageDisplayData",
    "UsageEvent",
    "UsageMonitor",
    "UsageSettings",
    "UsageSnapshot",
    "UsageState",
    "aggregate_usage",
    "extract_credential",
]
