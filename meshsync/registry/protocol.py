"""Capability set every registry watcher provides to the synchronizer."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import asyncio

    from .models import PollResult
    from .store import Store


@typ.runtime_checkable
class Watcher(typ.Protocol):
    """A registry backend mirrored into its own :class:`Store`.

    ``prefix`` is prepended to each host to name the ServiceEntries the
    backend owns; garbage collection for a backend only ever touches names
    carrying its prefix, so prefixes must be distinct across watchers.
    """

    @property
    def prefix(self) -> str:
        """Return the ServiceEntry name prefix owned by this backend."""
        ...

    @property
    def store(self) -> Store:
        """Return the store this watcher publishes snapshots to."""
        ...

    async def poll(self) -> PollResult:
        """Query the backend once and report the outcome."""
        ...

    async def run(self, stop: asyncio.Event) -> None:
        """Poll until ``stop`` is set, publishing updates to :attr:`store`."""
        ...
