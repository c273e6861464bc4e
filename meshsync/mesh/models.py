"""Typed Istio ``ServiceEntry`` structures.

The structures mirror the ``networking.istio.io/v1alpha3`` wire shape so the
Kubernetes client can encode and decode them with msgspec directly.
``metadata`` models every Kubernetes ``ObjectMeta`` field and ``status`` is
kept as a plain mapping, so an object fetched and written back keeps the
finalizers and owner references that other tools put there.
"""

from __future__ import annotations

import enum
import typing as typ

import msgspec

API_GROUP = "networking.istio.io"
API_VERSION = "v1alpha3"
KIND = "ServiceEntry"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "meshsync"


class Resolution(enum.StrEnum):
    """How the mesh resolves the members of a ServiceEntry."""

    NONE = "NONE"
    STATIC = "STATIC"
    DNS = "DNS"
    DNS_ROUND_ROBIN = "DNS_ROUND_ROBIN"


class Location(enum.StrEnum):
    """Whether the service is part of the mesh or external to it."""

    MESH_EXTERNAL = "MESH_EXTERNAL"
    MESH_INTERNAL = "MESH_INTERNAL"


class ServicePort(msgspec.Struct, frozen=True, kw_only=True):
    """Port exposed by a ServiceEntry.

    Attributes
    ----------
    number : int
        Port number.
    name : str
        Port label, one of ``http``, ``https`` or ``tcp`` for inferred ports.
    protocol : str
        Upper-cased protocol understood by the mesh (``HTTP``, ``HTTPS``,
        ``TCP``).

    """

    number: int
    name: str = ""
    protocol: str = ""


class WorkloadEntry(msgspec.Struct, kw_only=True, omit_defaults=True):
    """A single endpoint of a ServiceEntry."""

    address: str
    ports: dict[str, int] = msgspec.field(default_factory=dict)
    labels: dict[str, str] = msgspec.field(default_factory=dict)


class ServiceEntrySpec(msgspec.Struct, kw_only=True):
    """Mesh-relevant body of a ServiceEntry."""

    hosts: list[str] = msgspec.field(default_factory=list)
    location: Location = Location.MESH_EXTERNAL
    resolution: Resolution = Resolution.NONE
    ports: list[ServicePort] = msgspec.field(default_factory=list)
    endpoints: list[WorkloadEntry] = msgspec.field(default_factory=list)


class ObjectMeta(msgspec.Struct, kw_only=True, omit_defaults=True, rename="camel"):
    """Kubernetes object metadata.

    meshsync reads only the name, labels and ``resourceVersion``. The other
    fields exist so that an update writes back exactly what was fetched;
    omitting ``finalizers`` or ``ownerReferences`` from a PUT clears them on
    the server.
    """

    name: str
    generate_name: str | None = None
    namespace: str | None = None
    self_link: str | None = None
    uid: str | None = None
    resource_version: str | None = None
    generation: int | None = None
    creation_timestamp: str | None = None
    deletion_timestamp: str | None = None
    deletion_grace_period_seconds: int | None = None
    labels: dict[str, str] = msgspec.field(default_factory=dict)
    annotations: dict[str, str] = msgspec.field(default_factory=dict)
    owner_references: list[dict[str, typ.Any]] = msgspec.field(default_factory=list)
    finalizers: list[str] = msgspec.field(default_factory=list)
    managed_fields: list[dict[str, typ.Any]] = msgspec.field(default_factory=list)


class ServiceEntry(msgspec.Struct, kw_only=True, rename="camel"):
    """Istio ServiceEntry object as stored by the control plane.

    ``status`` is left unset on objects meshsync builds so it never appears
    in create or update bodies.
    """

    metadata: ObjectMeta
    spec: ServiceEntrySpec = msgspec.field(default_factory=ServiceEntrySpec)
    api_version: str = f"{API_GROUP}/{API_VERSION}"
    kind: str = KIND
    status: dict[str, typ.Any] | msgspec.UnsetType = msgspec.UNSET

    @property
    def name(self) -> str:
        """Return the object name."""
        return self.metadata.name


class ServiceEntryList(msgspec.Struct, kw_only=True, rename="camel"):
    """``ServiceEntryList`` response returned by list calls."""

    items: list[ServiceEntry] = msgspec.field(default_factory=list)


__all__ = [
    "API_GROUP",
    "API_VERSION",
    "KIND",
    "MANAGED_BY_LABEL",
    "MANAGED_BY_VALUE",
    "Location",
    "ObjectMeta",
    "Resolution",
    "ServiceEntry",
    "ServiceEntryList",
    "ServiceEntrySpec",
    "ServicePort",
    "WorkloadEntry",
]
