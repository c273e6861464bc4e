"""Unit tests for the shared registry polling loop."""

from __future__ import annotations

import asyncio

import pytest

from meshsync.registry.models import Failed, Unchanged, Updated
from meshsync.registry.watch import refresh_once, run_watcher, wait_for_stop
from tests.helpers.fakes import FakeWatcher, record
from tests.helpers.femtologging_capture import capture_femto_logs


class _RaisingWatcher(FakeWatcher):
    async def poll(self) -> Updated:
        self.polls += 1
        msg = "registry exploded"
        raise RuntimeError(msg)


class TestRefreshOnce:
    """Applying one poll result."""

    async def test_updated_replaces_store(self) -> None:
        """An Updated result is published."""
        watcher = FakeWatcher(
            "consul-",
            results=[Updated(snapshot={"web": [record("10.0.0.1")]})],
        )

        assert await refresh_once(watcher)

        assert sorted(watcher.store.hosts()) == ["web"]
        assert watcher.store.populated

    @pytest.mark.parametrize(
        "result",
        [Unchanged(detail="index 10"), Failed(reason="HTTP 500")],
        ids=["unchanged", "failed"],
    )
    async def test_store_kept(self, result: Unchanged | Failed) -> None:
        """Unchanged and Failed leave the previous snapshot in place."""
        watcher = FakeWatcher(
            "consul-", {"web": [record("10.0.0.1")]}, results=[result]
        )
        before = watcher.store.hosts()

        assert not await refresh_once(watcher)

        assert watcher.store.hosts() is before

    async def test_failed_is_logged(self) -> None:
        """Failures are reported with the backend prefix."""
        watcher = FakeWatcher("cloudmap-", results=[Failed(reason="denied")])

        with capture_femto_logs("meshsync.registry.watch") as capture:
            await refresh_once(watcher)
            assert capture.wait_for_message("[registry.poll.failed]")

        messages = [rec.message for rec in capture.records]
        assert any("prefix=cloudmap-" in msg and "denied" in msg for msg in messages)

    async def test_raised_exception_is_contained(self) -> None:
        """An exception from poll is treated as a failed poll."""
        watcher = _RaisingWatcher("consul-")

        assert not await refresh_once(watcher)

        assert not watcher.store.populated


async def test_wait_for_stop_times_out() -> None:
    """Without a stop signal the wait returns False after the timeout."""
    assert not await wait_for_stop(asyncio.Event(), 0.01)


async def test_wait_for_stop_returns_early() -> None:
    """A set event ends the wait at once."""
    stop = asyncio.Event()
    stop.set()

    assert await asyncio.wait_for(wait_for_stop(stop, 60), timeout=1)


async def test_run_watcher_polls_until_stopped() -> None:
    """The loop polls immediately and keeps polling until stop is set."""
    watcher = _RaisingWatcher("consul-")
    stop = asyncio.Event()

    task = asyncio.create_task(run_watcher(watcher, stop, 0.01))
    await asyncio.sleep(0.05)
    stop.set()
    await asyncio.wait_for(task, timeout=1)

    assert watcher.polls >= 2, "a raising poll must not end the loop"
