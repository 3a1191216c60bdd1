import base64
import json
import os
import sqlite3
import time
from datetime import datetime, timedelta, timezone

import pytest

from cursor_usage.core.types import TokenUsage, UsageEvent


def make_jwt(payload, header=None) -> str:
    """Build an unsigned JWT-shaped token (base64url, no padding)."""

    def encode(obj) -> str:
        raw = json.dumps(obj).encode("utf-8") if not isinstance(obj, bytes) else obj
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    return ".".join([encode(header or {"alg": "HS256", "typ": "JWT"}), encode(payload), "sig"])


def write_state_db(path, token=None, create_table=True):
    """Create a state.vscdb-like SQLite file with an optional access token."""
    conn = sqlite3.connect(str(path))
    try:
        if create_table:
            conn.execute("CREATE TABLE ItemTable (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
            conn.execute(
                "INSERT INTO ItemTable (key, value) VALUES (?, ?)",
                ("workbench.panel.position", "bottom"),
            )
            if token is not None:
                conn.execute(
                    "INSERT INTO ItemTable (key, value) VALUES (?, ?)",
                    ("cursorAuth/accessToken", token),
                )
        else:
            conn.execute("CREATE TABLE other (id INTEGER)")
        conn.commit()
    finally:
        conn.close()
    return path


def make_event(when: datetime, model="gpt-4", cents=None, tokens=None) -> UsageEvent:
    """Usage event at ``when``; tokens are all booked as input tokens."""
    usage = None
    if cents is not None or tokens is not None:
        usage = TokenUsage(input_tokens=tokens or 0, total_cents=cents or 0.0)
    return UsageEvent(
        timestamp_ms=int(when.timestamp() * 1000),
        model=model,
        token_usage=usage,
    )


class FakeUsageClient:
    """In-memory stand-in for CursorUsageClient."""

    def __init__(self, billing_start, events=None, pages=None, error=None):
        self.billing_start = billing_start
        self.pages = pages if pages is not None else [list(events or [])]
        self.error = error
        self.calls = []
        self.closed = False

    async def fetch_billing_period_start(self):
        self.calls.append(("billing",))
        if self.error is not None:
            raise self.error
        return self.billing_start

    async def fetch_usage_events(self, start, end, page=1, page_size=1000):
        self.calls.append(("events", start, end, page, page_size))
        if page - 1 < len(self.pages):
            return list(self.pages[page - 1])
        return []

    async def aclose(self):
        self.closed = True


def set_host_timezone(name: str) -> None:
    """Switch the process-local time zone; restored by host_timezone."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    os.environ["TZ"] = name
    time.tzset()


@pytest.fixture(autouse=True)
def host_timezone():
    """Run every test in UTC so local-day boundaries are deterministic."""
    if not hasattr(time, "tzset"):
        yield
        return

    original = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    time.tzset()
    yield
    if original is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = original
    time.tzset()


ENV_VARS = (
    "CURSOR_API_BASE",
    "CURSOR_STATE_DB",
    "CURSOR_USAGE_REFRESH_INTERVAL",
    "CURSOR_USAGE_PAGE_SIZE",
    "CURSOR_USAGE_MAX_PAGES",
    "CURSOR_USAGE_TIMEOUT",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Empty settings environment; cwd moved away from any real .env file."""
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    # load_dotenv writes straight into os.environ
    for name in ENV_VARS:
        os.environ.pop(name, None)


@pytest.fixture
def now():
    return datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def jwt_token():
    return make_jwt({"sub": "auth0|user_01ABC", "exp": 1893456000})


@pytest.fixture
def state_db(tmp_path, jwt_token):
    return write_state_db(tmp_path / "state.vscdb", token=jwt_token)


@pytest.fixture
def days_ago(now):
    def _days_ago(days: float) -> datetime:
        return now - timedelta(days=days)

    return _days_ago
