# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Runtime settings loaded from the environment (and an optional .env file).

Environment variables:
    CURSOR_API_BASE: API base URL (default: https://cursor.com)
    CURSOR_STATE_DB: Path override for Cursor's state.vscdb
    CURSOR_USAGE_REFRESH_INTERVAL: Seconds between refreshes (default: 60)
    CURSOR_USAGE_PAGE_SIZE: Events per page (default: 1000)
    CURSOR_USAGE_MAX_PAGES: Max event pages per refresh (default: 10)
    CURSOR_USAGE_TIMEOUT: HTTP timeout in seconds (default: 30)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import find_dotenv, load_dotenv

from .core.constants import (
    DASHBOARD_PATH,
    DEFAULT_API_BASE,
    DEFAULT_MAX_PAGES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
)
from .utils.paths import get_state_db_path

lib_logger = logging.getLogger("cursor_usage")

MIN_REFRESH_INTERVAL = 5


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    """Parse an integer from environment variable with fallback to default."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        lib_logger.warning(f"Invalid {name} value {raw!r}, using default {default}")
        return default
    if value < minimum:
        lib_logger.warning(f"{name}={value} is below {minimum}, using {minimum}")
        return minimum
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        lib_logger.warning(f"Invalid {name} value {raw!r}, using default {default}")
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class UsageSettings:
    """Immutable runtime configuration."""

    api_base: str = DEFAULT_API_BASE
    state_db_path: Optional[Path] = None  # None = platform default
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL
    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int = DEFAULT_MAX_PAGES
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def dashboard_url(self) -> str:
        return f"{self.api_base.rstrip('/')}{DASHBOARD_PATH}"

    def resolve_state_db_path(self) -> Path:
        return self.state_db_path or get_state_db_path()

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "UsageSettings":
        """
        Build settings from environment variables.

        Args:
            env_file: Optional .env file to load first (existing variables win)
        """
        if env_file is not None:
            load_dotenv(env_file, override=False)
        else:
            load_dotenv(find_dotenv(usecwd=True), override=False)

        state_db = os.environ.get("CURSOR_STATE_DB")
        return cls(
            api_base=(os.environ.get("CURSOR_API_BASE") or DEFAULT_API_BASE).rstrip("/"),
            state_db_path=Path(state_db).expanduser() if state_db else None,
            refresh_interval=_env_int(
                "CURSOR_USAGE_REFRESH_INTERVAL",
                DEFAULT_REFRESH_INTERVAL,
                minimum=MIN_REFRESH_INTERVAL,
            ),
            page_size=_env_int("CURSOR_USAGE_PAGE_SIZE", DEFAULT_PAGE_SIZE),
            max_pages=_env_int("CURSOR_USAGE_MAX_PAGES", DEFAULT_MAX_PAGES),
            request_timeout=_env_float("CURSOR_USAGE_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        )
