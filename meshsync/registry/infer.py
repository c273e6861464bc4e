"""Inference rules turning registry address data into ServiceEntry fields.

Every function here is pure and total: absent or zero input degrades to a
documented default instead of raising.
"""

from __future__ import annotations

import ipaddress
import typing as typ

from meshsync.mesh.models import (
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    Location,
    ObjectMeta,
    Resolution,
    ServiceEntry,
    ServiceEntrySpec,
    ServicePort,
    WorkloadEntry,
)

from .models import AddressRecord

if typ.TYPE_CHECKING:
    import collections.abc as cabc

HTTP_PORT = 80
HTTPS_PORT = 443

_WELL_KNOWN_PROTOCOLS: dict[int, str] = {HTTP_PORT: "http", HTTPS_PORT: "https"}
_DEFAULT_PROTOCOL = "tcp"


def _is_ip_literal(address: str) -> bool:
    try:
        ipaddress.ip_address(address)
    except ValueError:
        return False
    return True


def resolution_mode(records: cabc.Iterable[AddressRecord] | None) -> Resolution:
    """Infer the resolution mode for a host's records.

    ``STATIC`` only when every address is an IP literal. An empty or ``None``
    record set resolves to ``DNS``, as does any set containing a hostname.
    """
    addresses = [record.address for record in records or ()]
    if addresses and all(_is_ip_literal(address) for address in addresses):
        return Resolution.STATIC
    return Resolution.DNS


def port_list(records: cabc.Iterable[AddressRecord] | None) -> list[ServicePort]:
    """Return the de-duplicated union of ports across ``records``.

    Ports are keyed by ``(number, protocol label)`` and sorted by that key so
    repeated calls over the same input give identical lists.
    """
    seen: set[tuple[int, str]] = set()
    for record in records or ():
        for label, number in record.ports.items():
            seen.add((number, label))
    return [
        ServicePort(number=number, name=label, protocol=label.upper())
        for number, label in sorted(seen)
    ]


def protocol_for_port(port: int) -> str:
    """Map a port number to its protocol label (80/443 or ``tcp``)."""
    return _WELL_KNOWN_PROTOCOLS.get(port, _DEFAULT_PROTOCOL)


def build_address_record(address: str, port: int | None) -> AddressRecord:
    """Build a single-port record for ``address``.

    A missing or non-positive port means the registry carried no explicit
    port, in which case the record advertises both HTTP (80) and HTTPS (443).
    """
    if port is None or port <= 0:
        return AddressRecord(
            address=address, ports={"http": HTTP_PORT, "https": HTTPS_PORT}
        )
    return AddressRecord(address=address, ports={protocol_for_port(port): port})


def service_entry_name(prefix: str, host: str) -> str:
    """Return the ServiceEntry name owned by the backend with ``prefix``."""
    return f"{prefix}{host}"


def workload_entry(record: AddressRecord) -> WorkloadEntry:
    """Convert an address record into a ServiceEntry endpoint."""
    return WorkloadEntry(address=record.address, ports=dict(record.ports))


def desired_spec(
    host: str, records: cabc.Sequence[AddressRecord] | None
) -> ServiceEntrySpec:
    """Build the mesh-relevant spec for ``host`` from its records."""
    members = list(records or ())
    return ServiceEntrySpec(
        hosts=[host],
        location=Location.MESH_EXTERNAL,
        resolution=resolution_mode(members),
        ports=port_list(members),
        endpoints=[workload_entry(record) for record in members],
    )


def desired_service_entry(
    prefix: str,
    host: str,
    records: cabc.Sequence[AddressRecord] | None,
    *,
    namespace: str | None = None,
) -> ServiceEntry:
    """Build the complete ServiceEntry the backend wants to exist for ``host``."""
    return ServiceEntry(
        metadata=ObjectMeta(
            name=service_entry_name(prefix, host),
            namespace=namespace,
            labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
        ),
        spec=desired_spec(host, records),
    )


__all__ = [
    "HTTPS_PORT",
    "HTTP_PORT",
    "build_address_record",
    "desired_service_entry",
    "desired_spec",
    "port_list",
    "protocol_for_port",
    "resolution_mode",
    "service_entry_name",
    "workload_entry",
]
