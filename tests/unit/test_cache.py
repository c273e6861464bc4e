"""Unit tests for the local ServiceEntry view."""

from __future__ import annotations

import asyncio
import typing as typ

from meshsync.mesh.cache import ServiceEntryCache
from meshsync.mesh.errors import ServiceEntryAPIError
from tests.helpers.fakes import FakeServiceEntryClient, foreign_entry

if typ.TYPE_CHECKING:
    from meshsync.mesh.models import ServiceEntry


class _PausedListClient(FakeServiceEntryClient):
    """Client whose list snapshots its entries, then waits to be released."""

    def __init__(self, *args: typ.Any, **kwargs: typ.Any) -> None:
        super().__init__(*args, **kwargs)
        self.listing = asyncio.Event()
        self.release = asyncio.Event()

    async def list(self) -> list[ServiceEntry]:
        listed = await super().list()
        self.listing.set()
        await self.release.wait()
        return listed


def test_new_cache_is_not_refreshed() -> None:
    """A cache built without entries has not seen the control plane."""
    cache = ServiceEntryCache()
    assert not cache.refreshed
    assert len(cache) == 0


def test_seeded_cache_is_refreshed() -> None:
    """Seeding, even with nothing, counts as a refresh."""
    assert ServiceEntryCache([]).refreshed


def test_list_by_prefix() -> None:
    """Only names starting with the prefix are returned."""
    cache = ServiceEntryCache(
        [foreign_entry("consul-a"), foreign_entry("cloudmap-b"), foreign_entry("x")]
    )

    assert [entry.name for entry in cache.list_by_prefix("consul-")] == ["consul-a"]
    assert cache.get_by_name("x") is not None
    assert cache.get_by_name("missing") is None


def test_upsert_and_discard() -> None:
    """Writes are visible immediately; discards of unknown names are ignored."""
    cache = ServiceEntryCache([foreign_entry("consul-a")])
    replacement = foreign_entry("consul-a")

    cache.upsert(replacement)
    cache.upsert(foreign_entry("consul-b"))
    cache.discard("consul-a")
    cache.discard("never-there")

    assert [entry.name for entry in cache.list_by_prefix("consul-")] == ["consul-b"]


def test_replace_drops_previous_view() -> None:
    """A refresh is a whole-view swap."""
    cache = ServiceEntryCache([foreign_entry("consul-a")])
    listed = cache.list_by_prefix("")

    cache.replace([foreign_entry("consul-b")])

    assert [entry.name for entry in listed] == ["consul-a"]
    assert cache.get_by_name("consul-a") is None


async def test_refresh_loads_client_entries() -> None:
    """A successful list replaces the view."""
    client = FakeServiceEntryClient([foreign_entry("consul-a")])
    cache = ServiceEntryCache()

    assert await cache.refresh(client)

    assert cache.refreshed
    assert cache.get_by_name("consul-a") is not None


async def test_failed_refresh_keeps_view() -> None:
    """A failing list leaves the previous view in place."""
    client = FakeServiceEntryClient(
        [foreign_entry("consul-new")],
        failures={("list", "*"): ServiceEntryAPIError("HTTP 500", status_code=500)},
    )
    cache = ServiceEntryCache([foreign_entry("consul-old")])

    assert not await cache.refresh(client)

    assert cache.get_by_name("consul-old") is not None
    assert cache.get_by_name("consul-new") is None


async def test_failed_first_refresh_leaves_cache_unrefreshed() -> None:
    """Without one successful list the cache is not trusted."""
    client = FakeServiceEntryClient(
        failures={("list", "*"): ServiceEntryAPIError("timed out")}
    )
    cache = ServiceEntryCache()

    await cache.refresh(client)

    assert not cache.refreshed


async def test_run_refreshes_until_stopped() -> None:
    """The loop refreshes immediately and exits promptly on stop."""
    client = FakeServiceEntryClient([foreign_entry("consul-a")])
    cache = ServiceEntryCache()
    stop = asyncio.Event()

    task = asyncio.create_task(cache.run(client, stop, interval=0.01))
    await asyncio.sleep(0.05)
    stop.set()
    await asyncio.wait_for(task, timeout=1)

    assert cache.refreshed
    assert client.count("list") >= 2


async def test_writes_during_refresh_survive_the_swap() -> None:
    """An upsert or discard landing while the list is in flight is kept."""
    client = _PausedListClient([foreign_entry("consul-gone")])
    cache = ServiceEntryCache([foreign_entry("consul-gone")])

    refresh = asyncio.create_task(cache.refresh(client))
    await asyncio.wait_for(client.listing.wait(), timeout=1)
    cache.upsert(await client.create(foreign_entry("consul-web")))
    await client.delete("consul-gone")
    cache.discard("consul-gone")
    client.release.set()

    assert await asyncio.wait_for(refresh, timeout=1)
    assert cache.get_by_name("consul-web") is not None
    assert cache.get_by_name("consul-gone") is None


async def test_refresh_after_settled_writes_trusts_the_list() -> None:
    """Writes made outside a refresh do not outlive the next list."""
    client = FakeServiceEntryClient([foreign_entry("consul-a")])
    cache = ServiceEntryCache()
    await cache.refresh(client)

    cache.upsert(foreign_entry("consul-stale"))
    await cache.refresh(client)

    assert cache.get_by_name("consul-stale") is None
    assert cache.get_by_name("consul-a") is not None
