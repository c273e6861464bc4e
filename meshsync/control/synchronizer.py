"""Reconcile registry stores with ServiceEntries on the control plane.

Each cycle walks every backend's current snapshot: hosts that are missing a
ServiceEntry get one, hosts whose entry drifted get the entry's spec
replaced, and entries carrying the backend's prefix whose host has left the
snapshot are deleted. Entries outside the backend's prefix are never
touched, so each backend only garbage-collects what it owns.

Usage
-----
Run a single cycle against explicit collaborators::

    synchronizer = Synchronizer([watcher], client, cache, namespace="istio")
    results = await synchronizer.run_cycle()

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import time
import typing as typ

import msgspec

from meshsync.logging import get_logger, log_info, log_warning
from meshsync.mesh.errors import MeshError, ServiceEntryNotFoundError
from meshsync.registry.infer import desired_service_entry
from meshsync.registry.watch import wait_for_stop

from .observability import SyncEventLogger, SyncEventType

if typ.TYPE_CHECKING:
    import asyncio
    import collections.abc as cabc

    from meshsync.mesh.cache import ServiceEntryCache
    from meshsync.mesh.client import ServiceEntryClient
    from meshsync.mesh.models import ServiceEntry, ServiceEntrySpec, WorkloadEntry
    from meshsync.registry.models import AddressRecord, Snapshot
    from meshsync.registry.protocol import Watcher

logger = get_logger(__name__)


class SyncAction(enum.StrEnum):
    """Outcome of reconciling one host or one garbage entry."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    FAILED = "failed"


@dc.dataclass(slots=True)
class SyncResult:
    """Per-backend counters for one reconciliation cycle."""

    prefix: str
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    deleted: int = 0
    failed: int = 0

    def record(self, action: SyncAction) -> None:
        """Increment the counter for ``action``."""
        setattr(self, action.value, getattr(self, action.value) + 1)

    @property
    def writes(self) -> int:
        """Return the number of successful control-plane writes."""
        return self.created + self.updated + self.deleted


def _endpoint_key(
    endpoint: WorkloadEntry,
) -> tuple[str, tuple[tuple[str, int], ...], tuple[tuple[str, str], ...]]:
    return (
        endpoint.address,
        tuple(sorted(endpoint.ports.items())),
        tuple(sorted(endpoint.labels.items())),
    )


def spec_matches(actual: ServiceEntrySpec, desired: ServiceEntrySpec) -> bool:
    """Return whether ``actual`` already carries the mesh-relevant ``desired``.

    Hosts, resolution, ports and endpoints are compared as sets so ordering
    differences never trigger an update. Object metadata is not part of the
    spec and therefore never compared.
    """
    return (
        set(actual.hosts) == set(desired.hosts)
        and actual.resolution == desired.resolution
        and set(actual.ports) == set(desired.ports)
        and {_endpoint_key(ep) for ep in actual.endpoints}
        == {_endpoint_key(ep) for ep in desired.endpoints}
    )


class Synchronizer:
    """Drive ServiceEntries towards the contents of each watcher's store.

    Parameters
    ----------
    watchers
        Registry backends to reconcile, in order. Prefixes must be distinct.
    client
        Control-plane client used for every write and for re-reads.
    cache
        Local view of existing ServiceEntries.
    namespace
        Namespace stamped on created entries.
    interval
        Seconds between cycles when driven by :meth:`run`.

    """

    def __init__(  # noqa: PLR0913
        self,
        watchers: cabc.Sequence[Watcher],
        client: ServiceEntryClient,
        cache: ServiceEntryCache,
        *,
        namespace: str | None = None,
        interval: float = 5.0,
        event_logger: SyncEventLogger | None = None,
    ) -> None:
        """Initialise the synchronizer with its collaborators."""
        self._watchers = tuple(watchers)
        self._client = client
        self._cache = cache
        self._namespace = namespace
        self._interval = interval
        self._events = event_logger or SyncEventLogger()
        self._cycles_completed = 0

    @property
    def cycles_completed(self) -> int:
        """Return how many cycles have run to completion."""
        return self._cycles_completed

    async def run(self, stop: asyncio.Event) -> None:
        """Run cycles every ``interval`` seconds until ``stop`` is set.

        An exception escaping a cycle is logged and the loop carries on with
        the next cycle.
        """
        log_info(
            logger,
            "[sync.loop.started] backends=%d interval_seconds=%.1f",
            len(self._watchers),
            self._interval,
        )
        while not stop.is_set():
            try:
                await self.run_cycle(stop)
            except Exception as exc:  # noqa: BLE001 - the loop must outlive a bad cycle
                self._events.log_cycle_failed(exc)
            if await wait_for_stop(stop, self._interval):
                break
        log_info(logger, "[sync.loop.stopped]")

    async def run_cycle(self, stop: asyncio.Event | None = None) -> list[SyncResult]:
        """Reconcile every backend once and return one result per backend.

        The cycle is skipped until the cache has loaded the control plane's
        view. A backend whose store has never received a snapshot is skipped
        so startup cannot garbage-collect its entries.
        """
        if not self._cache.refreshed:
            log_warning(logger, "[sync.cycle.skipped] reason=cache_not_refreshed")
            return []

        self._events.log_cycle_started(len(self._watchers))
        started = time.monotonic()
        results: list[SyncResult] = []
        for watcher in self._watchers:
            if _stopping(stop):
                return results
            if not watcher.store.populated:
                log_info(
                    logger,
                    "[sync.backend.skipped] prefix=%s reason=store_not_populated",
                    watcher.prefix,
                )
                continue
            results.append(await self.sync_backend(watcher, stop))

        self._cycles_completed += 1
        self._events.log_cycle_completed(
            results, dt.timedelta(seconds=time.monotonic() - started)
        )
        return results

    async def sync_backend(
        self, watcher: Watcher, stop: asyncio.Event | None = None
    ) -> SyncResult:
        """Create or update every host in ``watcher``'s store, then collect."""
        result = SyncResult(prefix=watcher.prefix)
        snapshot = watcher.store.hosts()
        for host, records in snapshot.items():
            if _stopping(stop):
                return result
            result.record(await self.create_or_update(watcher, host, records))
        for action in await self.garbage_collect(watcher, snapshot, stop):
            result.record(action)
        return result

    async def create_or_update(
        self,
        watcher: Watcher,
        host: str,
        records: cabc.Sequence[AddressRecord],
    ) -> SyncAction:
        """Make the control plane hold the desired ServiceEntry for ``host``.

        A cache miss creates. A cache hit whose spec differs is re-read from
        the control plane before the update so the write carries a current
        ``resourceVersion``; when the re-read finds nothing the entry is
        created instead. Failures are logged and reported as ``FAILED``.
        """
        prefix = watcher.prefix
        desired = desired_service_entry(
            prefix, host, records, namespace=self._namespace
        )
        actual = self._cache.get_by_name(desired.name)
        operation = "create"
        try:
            if actual is None:
                return await self._create(prefix, host, desired)
            if spec_matches(actual.spec, desired.spec):
                self._events.log_entry_unchanged(prefix, host, desired.name)
                return SyncAction.UNCHANGED

            operation = "get"
            try:
                current = await self._client.get(desired.name)
            except ServiceEntryNotFoundError:
                operation = "create"
                return await self._create(prefix, host, desired)

            operation = "update"
            stored = await self._client.update(
                msgspec.structs.replace(current, spec=desired.spec)
            )
        except MeshError as exc:
            self._events.log_operation_failed(prefix, host, operation, exc)
            return SyncAction.FAILED

        self._cache.upsert(stored)
        self._events.log_entry_written(
            SyncEventType.ENTRY_UPDATED, prefix, host, desired.name
        )
        return SyncAction.UPDATED

    async def garbage_collect(
        self,
        watcher: Watcher,
        snapshot: Snapshot | None = None,
        stop: asyncio.Event | None = None,
    ) -> list[SyncAction]:
        """Delete entries owned by ``watcher`` whose host left ``snapshot``.

        ``snapshot`` defaults to the store's current contents. Only names
        starting with the watcher's prefix are considered.
        """
        prefix = watcher.prefix
        current = watcher.store.hosts() if snapshot is None else snapshot
        actions: list[SyncAction] = []
        for entry in self._cache.list_by_prefix(prefix):
            if _stopping(stop):
                break
            host = entry.name.removeprefix(prefix)
            if host in current:
                continue
            actions.append(await self._delete(prefix, host, entry.name))
        return actions

    async def _create(
        self, prefix: str, host: str, desired: ServiceEntry
    ) -> SyncAction:
        stored = await self._client.create(desired)
        self._cache.upsert(stored)
        self._events.log_entry_written(
            SyncEventType.ENTRY_CREATED, prefix, host, desired.name
        )
        return SyncAction.CREATED

    async def _delete(self, prefix: str, host: str, name: str) -> SyncAction:
        try:
            await self._client.delete(name)
        except ServiceEntryNotFoundError:
            # already gone; the cache was stale
            log_info(
                logger, "[sync.entry.already_deleted] prefix=%s name=%s", prefix, name
            )
        except MeshError as exc:
            self._events.log_operation_failed(prefix, host, "delete", exc)
            return SyncAction.FAILED
        self._cache.discard(name)
        self._events.log_entry_written(SyncEventType.ENTRY_DELETED, prefix, host, name)
        return SyncAction.DELETED


def _stopping(stop: asyncio.Event | None) -> bool:
    return stop is not None and stop.is_set()


__all__ = [
    "SyncAction",
    "SyncResult",
    "Synchronizer",
    "spec_matches",
]
