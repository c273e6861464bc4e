"""Per-backend membership store shared by a watcher and the synchronizer."""

from __future__ import annotations

import threading
import types
import typing as typ

from .models import EMPTY_SNAPSHOT, AddressRecord, Snapshot

if typ.TYPE_CHECKING:
    import collections.abc as cabc


def _unique_by_address(
    records: cabc.Iterable[AddressRecord],
) -> tuple[AddressRecord, ...]:
    """Keep the first record seen for each distinct address."""
    unique: dict[str, AddressRecord] = {}
    for record in records:
        unique.setdefault(record.address, record)
    return tuple(unique.values())


class Store:
    """Latest complete membership snapshot for one registry backend.

    The store is written by exactly one watcher and read by the
    synchronizer. ``set`` publishes a new immutable snapshot by swapping a
    single reference under a lock, so ``hosts`` always returns a snapshot
    written wholly by one ``set`` call (or the initial empty snapshot) and
    never blocks on a watcher's in-progress poll.

    Examples
    --------
    >>> store = Store()
    >>> store.set({"demo.tetrate.io": [AddressRecord("8.8.8.8", {"http": 80})]})
    >>> sorted(store.hosts())
    ['demo.tetrate.io']

    """

    def __init__(self) -> None:
        """Start with an empty snapshot."""
        self._lock = threading.Lock()
        self._snapshot: Snapshot = EMPTY_SNAPSHOT
        self._populated = False

    def set(self, snapshot: cabc.Mapping[str, cabc.Iterable[AddressRecord]]) -> None:
        """Replace the whole snapshot with ``snapshot``.

        The input is copied, so later mutation by the caller is not
        observed. Duplicate addresses within a host collapse to one record.
        """
        frozen = types.MappingProxyType(
            {host: _unique_by_address(records) for host, records in snapshot.items()}
        )
        with self._lock:
            self._snapshot = frozen
            self._populated = True

    @property
    def populated(self) -> bool:
        """Return ``True`` once any snapshot, even an empty one, was set."""
        with self._lock:
            return self._populated

    def hosts(self) -> Snapshot:
        """Return the current snapshot; later ``set`` calls do not alter it."""
        with self._lock:
            return self._snapshot


__all__ = ["Store"]
