"""Behavioural coverage for registry to ServiceEntry synchronization."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from meshsync.control.synchronizer import Synchronizer, SyncResult
from meshsync.mesh.cache import ServiceEntryCache
from meshsync.mesh.models import Resolution
from meshsync.registry.infer import build_address_record
from tests.helpers.fakes import FakeServiceEntryClient, FakeWatcher, foreign_entry

if typ.TYPE_CHECKING:
    from meshsync.registry.models import AddressRecord


class SyncContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    hosts: dict[str, dict[str, list[AddressRecord]]]
    client: FakeServiceEntryClient
    synchronizer: Synchronizer
    results: list[SyncResult]


def run_async[T](coro: typ.Coroutine[typ.Any, typ.Any, T]) -> T:
    """Run ``coro`` to completion on a fresh event loop."""
    return asyncio.run(coro)


@scenario(
    "../synchronizer.feature",
    "A new registry host gets a ServiceEntry",
)
def test_new_host_gets_service_entry() -> None:
    """Wrap the pytest-bdd scenario for host creation."""


@scenario(
    "../synchronizer.feature",
    "A host known only by DNS name resolves by DNS",
)
def test_dns_host_resolves_by_dns() -> None:
    """Wrap the pytest-bdd scenario for DNS resolution."""


@scenario(
    "../synchronizer.feature",
    "A host removed from the registry loses its ServiceEntry",
)
def test_removed_host_is_collected() -> None:
    """Wrap the pytest-bdd scenario for garbage collection."""


@scenario(
    "../synchronizer.feature",
    "Entries owned by nobody are left alone",
)
def test_foreign_entries_are_kept() -> None:
    """Wrap the pytest-bdd scenario for prefix ownership."""


@scenario(
    "../synchronizer.feature",
    "A converged registry causes no writes",
)
def test_converged_registry_is_idempotent() -> None:
    """Wrap the pytest-bdd scenario for idempotent cycles."""


@pytest.fixture
def sync_context() -> SyncContext:
    """Provision an empty control plane and no registry hosts."""
    return {"hosts": {}, "client": FakeServiceEntryClient(), "results": []}


@given(
    parsers.parse(
        'the "{prefix}" registry reports host "{host}" at "{address}" '
        "on port {port:d}"
    )
)
def registry_reports_host(
    sync_context: SyncContext, prefix: str, host: str, address: str, port: int
) -> None:
    """Add one host with a single address to the backend's snapshot."""
    backend = sync_context["hosts"].setdefault(prefix, {})
    backend.setdefault(host, []).append(build_address_record(address, port))


@given(parsers.parse('the "{prefix}" registry reports no hosts'))
def registry_reports_nothing(sync_context: SyncContext, prefix: str) -> None:
    """Register a backend whose snapshot is empty."""
    sync_context["hosts"].setdefault(prefix, {})


@given(parsers.parse('the control plane already holds a ServiceEntry "{name}"'))
def control_plane_holds(sync_context: SyncContext, name: str) -> None:
    """Seed the control plane with an entry."""
    client = sync_context["client"]
    client.entries[name] = foreign_entry(name)


def _synchronizer(sync_context: SyncContext) -> Synchronizer:
    synchronizer = sync_context.get("synchronizer")
    if synchronizer is None:
        client = sync_context["client"]
        watchers = [
            FakeWatcher(prefix, snapshot)
            for prefix, snapshot in sync_context["hosts"].items()
        ]
        cache = ServiceEntryCache(client.entries.values())
        synchronizer = Synchronizer(watchers, client, cache, namespace="istio")
        sync_context["synchronizer"] = synchronizer
    return synchronizer


@when("a sync cycle runs")
@when("another sync cycle runs")
def sync_cycle_runs(sync_context: SyncContext) -> None:
    """Run one reconciliation cycle over every backend."""
    synchronizer = _synchronizer(sync_context)
    sync_context["results"] = run_async(synchronizer.run_cycle())


@then(
    parsers.parse(
        'the ServiceEntry "{name}" exists with resolution "{resolution}"'
    )
)
def entry_exists(sync_context: SyncContext, name: str, resolution: str) -> None:
    """Assert the control plane holds ``name`` with the given resolution."""
    entry = sync_context["client"].entries.get(name)
    assert entry is not None, f"expected ServiceEntry {name} to exist"
    assert entry.spec.resolution is Resolution(resolution)
    assert entry.metadata.namespace == "istio"


@then(parsers.parse('the ServiceEntry "{name}" exposes port {port:d}'))
def entry_exposes_port(sync_context: SyncContext, name: str, port: int) -> None:
    """Assert ``name`` lists ``port`` among its ports."""
    entry = sync_context["client"].entries[name]
    assert port in [service_port.number for service_port in entry.spec.ports]


@then(parsers.parse('the ServiceEntry "{name}" no longer exists'))
def entry_deleted(sync_context: SyncContext, name: str) -> None:
    """Assert ``name`` was deleted."""
    client = sync_context["client"]
    assert name not in client.entries
    assert name in client.names("delete")


@then(parsers.parse('the ServiceEntry "{name}" still exists'))
def entry_kept(sync_context: SyncContext, name: str) -> None:
    """Assert ``name`` was never touched."""
    client = sync_context["client"]
    assert name in client.entries
    assert all(called != name for _, called in client.calls)


@then("the last cycle made no writes")
def no_writes(sync_context: SyncContext) -> None:
    """Assert the most recent cycle only reported unchanged entries."""
    results = sync_context["results"]
    assert results, "expected at least one backend result"
    assert all(result.writes == 0 for result in results)
    assert all(result.failed == 0 for result in results)
