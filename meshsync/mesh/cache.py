"""Local read view of the ServiceEntries in the managed namespace.

The synchronizer consults the cache to decide between create, update and
no-op without a control-plane round trip per host. The view may lag the
control plane; the update path re-reads the object before writing.

A refresh lists the namespace across an ``await``. Writes recorded while
that list is in flight are journalled and laid over the listed entries
before the new view is published, so a list taken before a create cannot
hide the object that create produced.
"""

from __future__ import annotations

import threading
import types
import typing as typ

from meshsync.logging import get_logger, log_error, log_info
from meshsync.registry.watch import wait_for_stop

from .errors import MeshError

if typ.TYPE_CHECKING:
    import asyncio
    import collections.abc as cabc

    from .client import ServiceEntryClient
    from .models import ServiceEntry

logger = get_logger(__name__)


class ServiceEntryCache:
    """Name-indexed snapshot of ServiceEntries, swapped wholesale on refresh.

    Examples
    --------
    >>> from meshsync.mesh.models import ObjectMeta, ServiceEntry
    >>> cache = ServiceEntryCache()
    >>> cache.replace([ServiceEntry(metadata=ObjectMeta(name="consul-web"))])
    >>> [entry.name for entry in cache.list_by_prefix("consul-")]
    ['consul-web']

    """

    def __init__(self, entries: cabc.Iterable[ServiceEntry] | None = None) -> None:
        """Seed the cache with ``entries``; ``None`` leaves it unpopulated."""
        self._lock = threading.Lock()
        self._entries: cabc.Mapping[str, ServiceEntry] = types.MappingProxyType({})
        self._refreshed = False
        self._journal: dict[str, ServiceEntry | None] | None = None
        if entries is not None:
            self.replace(entries)

    @property
    def refreshed(self) -> bool:
        """Return ``True`` once the cache has been populated at least once."""
        return self._refreshed

    def replace(self, entries: cabc.Iterable[ServiceEntry]) -> None:
        """Publish ``entries`` as the new view.

        Writes journalled since :meth:`refresh` started listing take
        precedence over ``entries``.
        """
        fresh = {entry.name: entry for entry in entries}
        with self._lock:
            for name, written in (self._journal or {}).items():
                if written is None:
                    fresh.pop(name, None)
                else:
                    fresh[name] = written
            self._journal = None
            self._entries = types.MappingProxyType(fresh)
            self._refreshed = True

    def upsert(self, entry: ServiceEntry) -> None:
        """Record a successful write until the next refresh replaces the view."""
        with self._lock:
            if self._journal is not None:
                self._journal[entry.name] = entry
            self._entries = types.MappingProxyType(
                {**self._entries, entry.name: entry}
            )

    def discard(self, name: str) -> None:
        """Forget ``name`` after a successful delete."""
        with self._lock:
            if self._journal is not None:
                self._journal[name] = None
            if name in self._entries:
                remaining = {k: v for k, v in self._entries.items() if k != name}
                self._entries = types.MappingProxyType(remaining)

    def get_by_name(self, name: str) -> ServiceEntry | None:
        """Return the cached entry called ``name``, if any."""
        with self._lock:
            return self._entries.get(name)

    def list_by_prefix(self, prefix: str) -> list[ServiceEntry]:
        """Return cached entries whose name starts with ``prefix``."""
        with self._lock:
            entries = self._entries
        return [entry for name, entry in entries.items() if name.startswith(prefix)]

    def __len__(self) -> int:
        """Return the number of cached entries."""
        with self._lock:
            return len(self._entries)

    async def refresh(self, client: ServiceEntryClient) -> bool:
        """Reload the view from ``client``.

        Returns ``False`` when listing fails; the previous view is kept.
        """
        with self._lock:
            self._journal = {}
        try:
            entries = await client.list()
        except MeshError as exc:
            with self._lock:
                self._journal = None
            log_error(
                logger,
                "[mesh.cache.refresh_failed] error_type=%s error_message=%s",
                type(exc).__name__,
                exc,
                exc_info=exc,
            )
            return False
        self.replace(entries)
        log_info(logger, "[mesh.cache.refreshed] entries=%d", len(entries))
        return True

    async def run(
        self, client: ServiceEntryClient, stop: asyncio.Event, interval: float
    ) -> None:
        """Refresh immediately, then every ``interval`` seconds until stopped."""
        while not stop.is_set():
            await self.refresh(client)
            if await wait_for_stop(stop, interval):
                break
        log_info(logger, "[mesh.cache.stopped]")


__all__ = ["ServiceEntryCache"]
