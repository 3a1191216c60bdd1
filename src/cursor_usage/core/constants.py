# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Fixed values shared across the cursor_usage library.

Endpoint paths, the local store lookup, cookie naming and the browser-like
header set are part of the vendor contract and are not configurable.
"""

# =============================================================================
# API
# =============================================================================

DEFAULT_API_BASE = "https://cursor.com"
LEGACY_USAGE_ENDPOINT = "/api/usage"
USAGE_EVENTS_ENDPOINT = "/api/dashboard/get-filtered-usage-events"
DASHBOARD_PATH = "/dashboard?tab=usage"

SESSION_COOKIE_NAME = "WorkosCursorSessionToken"

# "::" percent-encoded, as the browser cookie carries it
SESSION_TOKEN_SEPARATOR = "%3A%3A"

# Reserved key in the legacy usage response; every other key is a model name
START_OF_MONTH_KEY = "startOfMonth"

# The API discriminates on these, so they mirror a real browser session
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_PAGES = 10
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_REFRESH_INTERVAL = 60

# =============================================================================
# LOCAL STORE
# =============================================================================

STATE_DB_RELATIVE_PATH = ("Cursor", "User", "globalStorage", "state.vscdb")
ACCESS_TOKEN_KEY = "cursorAuth/accessToken"
ACCESS_TOKEN_QUERY = "SELECT value FROM ItemTable WHERE key = ?"

# JWT claim holding "provider|userId"
IDENTITY_CLAIM = "sub"

# =============================================================================
# AGGREGATION
# =============================================================================

UNKNOWN_MODEL = "unknown"

TODAY_LABEL = "Today"
LAST_7_DAYS_LABEL = "Last 7 Days"
LAST_30_DAYS_LABEL = "Last 30 Days"
