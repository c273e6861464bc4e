"""Registry side of meshsync: address records, stores and backend watchers."""

from __future__ import annotations

from .errors import RegistryAPIError, RegistryConfigError, RegistryError
from .infer import (
    build_address_record,
    desired_service_entry,
    port_list,
    protocol_for_port,
    resolution_mode,
    service_entry_name,
)
from .models import AddressRecord, Failed, PollResult, Snapshot, Unchanged, Updated
from .protocol import Watcher
from .store import Store

__all__ = [
    "AddressRecord",
    "Failed",
    "PollResult",
    "RegistryAPIError",
    "RegistryConfigError",
    "RegistryError",
    "Snapshot",
    "Store",
    "Unchanged",
    "Updated",
    "Watcher",
    "build_address_record",
    "desired_service_entry",
    "port_list",
    "protocol_for_port",
    "resolution_mode",
    "service_entry_name",
]
