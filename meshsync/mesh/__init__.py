"""Istio ServiceEntry types, API client and local cache."""

from __future__ import annotations

from .cache import ServiceEntryCache
from .client import KubernetesServiceEntryClient, ServiceEntryClient
from .errors import (
    KubeConfigError,
    MeshError,
    ServiceEntryAPIError,
    ServiceEntryNotFoundError,
)
from .kubeconfig import KubeConfig
from .models import (
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    Location,
    ObjectMeta,
    Resolution,
    ServiceEntry,
    ServiceEntryList,
    ServiceEntrySpec,
    ServicePort,
    WorkloadEntry,
)

__all__ = [
    "MANAGED_BY_LABEL",
    "MANAGED_BY_VALUE",
    "KubeConfig",
    "KubeConfigError",
    "KubernetesServiceEntryClient",
    "Location",
    "MeshError",
    "ObjectMeta",
    "Resolution",
    "ServiceEntry",
    "ServiceEntryAPIError",
    "ServiceEntryCache",
    "ServiceEntryClient",
    "ServiceEntryList",
    "ServiceEntryNotFoundError",
    "ServiceEntrySpec",
    "ServicePort",
    "WorkloadEntry",
]
