import asyncio
import threading

import pytest

from cursor_usage.auth.token_extractor import CursorTokenStore
from cursor_usage.config import UsageSettings
from cursor_usage.core.errors import HttpError, TransportError
from cursor_usage.usage.monitor import RefreshStatus, UsageMonitor, UsageState

from conftest import FakeUsageClient, make_event


class GatedClient(FakeUsageClient):
    """Fake client whose billing call blocks until released."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()

    async def fetch_billing_period_start(self):
        self.calls.append(("billing",))
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.billing_start


@pytest.fixture
def settings(state_db):
    return UsageSettings(state_db_path=state_db, refresh_interval=60)


def make_monitor(settings, client):
    return UsageMonitor(settings, client_factory=lambda credential: client)


class TestUsageState:
    def test_initial_state_is_loading(self):
        snapshot = UsageState().snapshot()
        assert snapshot.status == RefreshStatus.LOADING
        assert snapshot.is_loading
        assert snapshot.data is None
        assert snapshot.error is None

    def test_error_keeps_previous_data(self, now, days_ago):
        from cursor_usage.usage.aggregation import aggregate_usage

        state = UsageState()
        data = aggregate_usage([make_event(now, cents=100)], days_ago(3), now)
        state.set_data(data)
        state.set_error("API error: HTTP 500")

        snapshot = state.snapshot()
        assert snapshot.status == RefreshStatus.ERROR
        assert snapshot.data is data
        assert snapshot.error == "API error: HTTP 500"
        assert snapshot.is_stale

    def test_success_clears_error(self, now, days_ago):
        from cursor_usage.usage.aggregation import aggregate_usage

        state = UsageState()
        state.set_error("boom")
        state.set_data(aggregate_usage([], days_ago(3), now))

        snapshot = state.snapshot()
        assert snapshot.status == RefreshStatus.OK
        assert snapshot.error is None

    def test_fatal_is_not_overwritten_by_transient_error(self):
        state = UsageState()
        state.set_fatal("Token error: missing")
        state.set_error("API error")

        snapshot = state.snapshot()
        assert snapshot.status == RefreshStatus.FATAL
        assert snapshot.error == "Token error: missing"

    def test_snapshot_readable_from_other_thread(self, now, days_ago):
        from cursor_usage.usage.aggregation import aggregate_usage

        state = UsageState()
        state.set_data(aggregate_usage([], days_ago(3), now))
        seen = []

        thread = threading.Thread(target=lambda: seen.append(state.snapshot()))
        thread.start()
        thread.join()

        assert seen[0].status == RefreshStatus.OK


@pytest.mark.asyncio
class TestUsageMonitor:
    async def test_refresh_success(self, settings, now, days_ago):
        client = FakeUsageClient(days_ago(10), events=[make_event(now, cents=250, tokens=1000)])
        monitor = make_monitor(settings, client)

        assert await monitor.start(run_periodic=False)
        data = await monitor.refresh()

        assert data is not None
        snapshot = monitor.snapshot()
        assert snapshot.status == RefreshStatus.OK
        assert snapshot.data is data
        assert snapshot.updated_at is not None
        await monitor.stop()

    async def test_concurrent_refreshes_join_in_flight(self, settings, days_ago):
        client = GatedClient(days_ago(10), events=[])
        monitor = make_monitor(settings, client)
        await monitor.start(run_periodic=False)

        first = asyncio.create_task(monitor.refresh())
        second = asyncio.create_task(monitor.refresh())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        client.gate.set()
        results = await asyncio.gather(first, second)

        assert results[0] is results[1]
        assert client.calls.count(("billing",)) == 1
        assert sum(1 for call in client.calls if call[0] == "events") == 1
        await monitor.stop()

    async def test_sequential_refreshes_fetch_again(self, settings, days_ago):
        client = FakeUsageClient(days_ago(10), events=[])
        monitor = make_monitor(settings, client)
        await monitor.start(run_periodic=False)

        await monitor.refresh()
        await monitor.refresh()

        assert client.calls.count(("billing",)) == 2
        await monitor.stop()

    async def test_failure_keeps_last_good_data(self, settings, now, days_ago):
        client = FakeUsageClient(days_ago(10), events=[make_event(now, cents=100)])
        monitor = make_monitor(settings, client)
        await monitor.start(run_periodic=False)
        good = await monitor.refresh()

        client.error = HttpError(500, "boom")
        assert await monitor.refresh() is None

        snapshot = monitor.snapshot()
        assert snapshot.status == RefreshStatus.ERROR
        assert snapshot.data is good
        assert "HTTP 500" in snapshot.error
        await monitor.stop()

    async def test_failure_before_first_success(self, settings, days_ago):
        client = FakeUsageClient(days_ago(10), error=TransportError("offline"))
        monitor = make_monitor(settings, client)
        await monitor.start(run_periodic=False)

        await monitor.refresh()

        snapshot = monitor.snapshot()
        assert snapshot.status == RefreshStatus.ERROR
        assert snapshot.data is None
        assert "offline" in snapshot.error
        await monitor.stop()

    async def test_unexpected_error_is_transient(self, settings, now, days_ago):
        client = FakeUsageClient(days_ago(10), events=[make_event(now, cents=100)])
        monitor = make_monitor(settings, client)
        await monitor.start(run_periodic=False)
        good = await monitor.refresh()

        client.error = OverflowError("cannot convert float infinity to integer")
        assert await monitor.refresh() is None

        snapshot = monitor.snapshot()
        assert snapshot.status == RefreshStatus.ERROR
        assert snapshot.data is good
        assert "OverflowError" in snapshot.error

        client.error = None
        assert await monitor.refresh() is not None
        assert monitor.snapshot().status == RefreshStatus.OK
        await monitor.stop()

    async def test_credential_error_is_fatal(self, tmp_path, days_ago):
        settings = UsageSettings(state_db_path=tmp_path / "missing.vscdb")
        client = FakeUsageClient(days_ago(10), events=[])
        monitor = make_monitor(settings, client)

        assert await monitor.start() is False
        assert not monitor.is_ready
        assert await monitor.refresh() is None

        snapshot = monitor.snapshot()
        assert snapshot.status == RefreshStatus.FATAL
        assert "Cursor database not found" in snapshot.error
        assert client.calls == []
        await monitor.stop()

    async def test_explicit_token_store(self, state_db, days_ago):
        client = FakeUsageClient(days_ago(10), events=[])
        monitor = UsageMonitor(
            UsageSettings(),
            token_store=CursorTokenStore(state_db),
            client_factory=lambda credential: client,
        )

        assert await monitor.start(run_periodic=False)
        await monitor.stop()

    async def test_periodic_loop_refreshes_immediately(self, settings, days_ago):
        client = FakeUsageClient(days_ago(10), events=[])
        monitor = make_monitor(settings, client)

        await monitor.start(run_periodic=True)
        for _ in range(20):
            if monitor.snapshot().status == RefreshStatus.OK:
                break
            await asyncio.sleep(0.01)

        assert monitor.snapshot().status == RefreshStatus.OK
        await monitor.stop()

    async def test_stop_releases_client_and_clears_state(self, settings, days_ago):
        client = FakeUsageClient(days_ago(10), events=[])
        monitor = make_monitor(settings, client)
        await monitor.start(run_periodic=True)
        await monitor.refresh()

        await monitor.stop()

        assert client.closed
        assert monitor.snapshot().status == RefreshStatus.LOADING
        assert not monitor.is_ready

    async def test_client_receives_extracted_credential(self, settings, days_ago):
        received = []
        client = FakeUsageClient(days_ago(10), events=[])

        def factory(credential):
            received.append(credential)
            return client

        monitor = UsageMonitor(settings, client_factory=factory)
        await monitor.start(run_periodic=False)

        assert received[0].user_id == "user_01ABC"
        await monitor.stop()
