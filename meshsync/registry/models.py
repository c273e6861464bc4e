"""Value types shared by registry watchers and the synchronizer."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import types
import typing as typ


@dataclasses.dataclass(slots=True, frozen=True)
class AddressRecord:
    """One reachable member of a host: an address plus labelled ports.

    ``address`` is an IP literal or a DNS name. ``ports`` maps a protocol
    label (``http``, ``https`` or ``tcp``) to a port number and is frozen on
    construction, so a record can be shared between snapshots safely.
    """

    address: str
    ports: cabc.Mapping[str, int] = dataclasses.field(
        default_factory=lambda: types.MappingProxyType({})
    )

    def __post_init__(self) -> None:
        """Freeze ``ports`` into a read-only mapping."""
        object.__setattr__(self, "ports", types.MappingProxyType(dict(self.ports)))

    @property
    def key(self) -> tuple[str, tuple[tuple[str, int], ...]]:
        """Return a hashable, order-independent identity for comparisons."""
        return (self.address, tuple(sorted(self.ports.items())))


type Snapshot = cabc.Mapping[str, tuple[AddressRecord, ...]]
"""Immutable host -> records mapping published by one backend."""


@dataclasses.dataclass(slots=True, frozen=True)
class Updated:
    """A poll produced a fresh snapshot that replaces the stored one."""

    snapshot: cabc.Mapping[str, cabc.Sequence[AddressRecord]]


@dataclasses.dataclass(slots=True, frozen=True)
class Unchanged:
    """The backend reported no membership change since the last poll."""

    detail: str = ""


@dataclasses.dataclass(slots=True, frozen=True)
class Failed:
    """A poll failed; the previous snapshot stays in place."""

    reason: str
    error: BaseException | None = None


type PollResult = Updated | Unchanged | Failed


EMPTY_SNAPSHOT: typ.Final[Snapshot] = types.MappingProxyType({})

__all__ = [
    "EMPTY_SNAPSHOT",
    "AddressRecord",
    "Failed",
    "PollResult",
    "Snapshot",
    "Unchanged",
    "Updated",
]
