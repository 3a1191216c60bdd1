# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Refresh orchestration and the last-known usage state.

UsageMonitor owns the credential, API client and aggregator for one process
run. Refreshes are serialized: a refresh requested while another is in
flight joins it instead of starting a second fetch. Results land in a
UsageState container that readers (the presentation layer, possibly on
another thread) only access through snapshot().
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from ..auth.token_extractor import CursorTokenStore
from ..client.usage_client import CursorUsageClient
from ..config import UsageSettings
from ..core.errors import CredentialError, UsageAPIError
from ..core.types import Credential, UsageDisplayData
from .aggregation import UsageAggregator

lib_logger = logging.getLogger("cursor_usage")


class RefreshStatus:
    """
    Lifecycle of the displayed usage state.
    """

    LOADING = "loading"  # No result yet
    OK = "ok"  # Last refresh succeeded
    ERROR = "error"  # Last refresh failed; data (if any) is stale
    FATAL = "fatal"  # Credential unavailable; never retried


@dataclass(frozen=True)
class UsageSnapshot:
    """Immutable view of the shared state at one point in time."""

    status: str = RefreshStatus.LOADING
    data: Optional[UsageDisplayData] = None
    error: Optional[str] = None
    updated_at: Optional[float] = None

    @property
    def is_loading(self) -> bool:
        return self.status == RefreshStatus.LOADING

    @property
    def is_stale(self) -> bool:
        return self.status == RefreshStatus.ERROR and self.data is not None


class UsageState:
    """
    Thread-safe holder of the last good result and the last error.

    The snapshot is replaced as a whole; fields are never updated one by one.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = UsageSnapshot()

    def snapshot(self) -> UsageSnapshot:
        with self._lock:
            return self._snapshot

    def set_data(self, data: UsageDisplayData) -> None:
        with self._lock:
            self._snapshot = UsageSnapshot(
                status=RefreshStatus.OK,
                data=data,
                error=None,
                updated_at=time.time(),
            )

    def set_error(self, message: str) -> None:
        """Record a transient failure, keeping the previous data."""
        with self._lock:
            if self._snapshot.status == RefreshStatus.FATAL:
                return
            self._snapshot = replace(
                self._snapshot,
                status=RefreshStatus.ERROR,
                error=message,
                updated_at=time.time(),
            )

    def set_fatal(self, message: str) -> None:
        with self._lock:
            self._snapshot = UsageSnapshot(
                status=RefreshStatus.FATAL,
                data=None,
                error=message,
                updated_at=time.time(),
            )

    def clear(self) -> None:
        with self._lock:
            self._snapshot = UsageSnapshot()


class UsageMonitor:
    """
    Periodic and on-demand usage refreshes for a single account.

    Usage:
        monitor = UsageMonitor(UsageSettings.from_env())
        await monitor.start()
        ...
        snapshot = monitor.snapshot()
        await monitor.refresh()  # "Refresh now"
        ...
        await monitor.stop()
    """

    def __init__(
        self,
        settings: Optional[UsageSettings] = None,
        token_store: Optional[CursorTokenStore] = None,
        client_factory: Optional[Callable[[Credential], CursorUsageClient]] = None,
    ):
        """
        Args:
            settings: Runtime settings (defaults to UsageSettings.from_env())
            token_store: Local credential store (defaults to settings' path)
            client_factory: Builds the API client from the credential
        """
        self.settings = settings or UsageSettings.from_env()
        self._token_store = token_store or CursorTokenStore(
            self.settings.resolve_state_db_path()
        )
        self._client_factory = client_factory or self._default_client_factory
        self.state = UsageState()

        self._credential: Optional[Credential] = None
        self._client: Optional[CursorUsageClient] = None
        self._aggregator: Optional[UsageAggregator] = None
        self._inflight: Optional[asyncio.Task] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._started = False

    def _default_client_factory(self, credential: Credential) -> CursorUsageClient:
        return CursorUsageClient(
            credential,
            api_base=self.settings.api_base,
            timeout=self.settings.request_timeout,
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_ready(self) -> bool:
        """True once a credential was extracted and the client built."""
        return self._aggregator is not None

    def snapshot(self) -> UsageSnapshot:
        return self.state.snapshot()

    async def start(self, run_periodic: bool = True) -> bool:
        """
        Extract the credential once and optionally begin periodic refreshes.

        Args:
            run_periodic: Launch the background refresh loop

        Returns:
            False when the credential could not be extracted (fatal state)
        """
        if self._started:
            return self.is_ready
        self._started = True

        try:
            # SQLite I/O off the event loop
            credential = await asyncio.to_thread(self._token_store.extract_credential)
        except CredentialError as e:
            lib_logger.error(f"Cursor token extraction failed: {e}")
            self.state.set_fatal(f"Token error: {e}")
            return False

        self._credential = credential
        self._client = self._client_factory(credential)
        self._aggregator = UsageAggregator(
            self._client,
            page_size=self.settings.page_size,
            max_pages=self.settings.max_pages,
        )

        if run_periodic:
            self._loop_task = asyncio.create_task(self._periodic_refresh())
        return True

    async def stop(self) -> None:
        """Cancel background work, release the HTTP client and reset state."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
            try:
                await self._inflight
            except asyncio.CancelledError:
                pass
        self._inflight = None

        if self._client is not None:
            await self._client.aclose()
        self._client = None
        self._aggregator = None
        self._credential = None
        self._started = False
        self.state.clear()

    async def __aenter__(self) -> "UsageMonitor":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.stop()
        return False

    # =========================================================================
    # REFRESH
    # =========================================================================

    async def refresh(self) -> Optional[UsageDisplayData]:
        """
        Refresh now, or join the refresh already in flight.

        Returns:
            The new display data, or None if the refresh failed or the
            credential is unavailable (see snapshot() for the error)
        """
        if self._aggregator is None:
            return None

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._run_refresh())

        # A cancelled caller must not cancel the shared refresh
        return await asyncio.shield(self._inflight)

    async def _run_refresh(self) -> Optional[UsageDisplayData]:
        try:
            data = await self._aggregator.build_display_data()
        except UsageAPIError as e:
            lib_logger.warning(f"Cursor usage refresh failed: {e}")
            self.state.set_error(f"API error: {e}")
            return None
        except Exception as e:
            lib_logger.warning(
                f"Unexpected error during usage refresh: {type(e).__name__}: {e}"
            )
            self.state.set_error(f"{type(e).__name__}: {e}")
            return None

        self.state.set_data(data)
        return data

    async def _periodic_refresh(self) -> None:
        """Refresh immediately, then every refresh_interval seconds."""
        interval = self.settings.refresh_interval
        while True:
            try:
                await self.refresh()
            except Exception as e:
                # Keep the loop alive; the next tick retries
                lib_logger.warning(
                    f"Unexpected error during usage refresh: {type(e).__name__}: {e}"
                )
                self.state.set_error(f"{type(e).__name__}: {e}")
            await asyncio.sleep(interval)
