"""AWS Cloud Map watcher.

Hosts are named ``<service>.<namespace>`` so they are unique across every
namespace the account can see. The boto3 client is synchronous; a whole
refresh runs in a worker thread and only the finished snapshot crosses back
to the event loop.
"""

from __future__ import annotations

import asyncio
import dataclasses
import os
import typing as typ

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from meshsync.logging import get_logger, log_error, log_info

from .errors import RegistryAPIError, RegistryConfigError
from .infer import build_address_record
from .models import AddressRecord, Failed, PollResult, Updated
from .store import Store
from .watch import run_watcher

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = get_logger(__name__)

CLOUDMAP_PREFIX = "cloudmap-"
_BACKEND = "Cloud Map"

ATTR_IPV4 = "AWS_INSTANCE_IPV4"
ATTR_CNAME = "AWS_INSTANCE_CNAME"
ATTR_PORT = "AWS_INSTANCE_PORT"


class ServiceDiscoveryClient(typ.Protocol):
    """Subset of the boto3 ``servicediscovery`` client used by the watcher."""

    def list_namespaces(self, **kwargs: typ.Any) -> dict[str, typ.Any]:
        """List namespaces, one page per call."""
        ...

    def list_services(self, **kwargs: typ.Any) -> dict[str, typ.Any]:
        """List services, one page per call."""
        ...

    def discover_instances(self, **kwargs: typ.Any) -> dict[str, typ.Any]:
        """Return registered instances for a namespace/service pair."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class CloudMapConfig:
    """Settings for the Cloud Map watcher.

    When ``access_key_id`` and ``secret_access_key`` are both set they are
    used as static credentials; otherwise boto3's default chain applies.
    """

    region: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    interval_s: float = 5.0

    def resolved_region(self) -> str:
        """Return the configured region, falling back to ``AWS_REGION``."""
        region = (self.region or os.environ.get("AWS_REGION", "")).strip()
        if not region:
            raise RegistryConfigError.missing_region()
        return region


def build_servicediscovery_client(config: CloudMapConfig) -> ServiceDiscoveryClient:
    """Create a boto3 ``servicediscovery`` client for ``config``."""
    kwargs: dict[str, str] = {"region_name": config.resolved_region()}
    if config.access_key_id and config.secret_access_key:
        kwargs["aws_access_key_id"] = config.access_key_id
        kwargs["aws_secret_access_key"] = config.secret_access_key
    return boto3.client("servicediscovery", **kwargs)


def _paginate(
    call: cabc.Callable[..., dict[str, typ.Any]],
    key: str,
    **kwargs: typ.Any,
) -> list[dict[str, typ.Any]]:
    """Collect every item under ``key`` across ``NextToken`` pages."""
    items: list[dict[str, typ.Any]] = []
    token: str | None = None
    while True:
        page = call(**kwargs, NextToken=token) if token else call(**kwargs)
        items.extend(page.get(key) or [])
        token = page.get("NextToken")
        if not token:
            return items


def _instance_port(attributes: dict[str, str], address: str) -> int:
    raw = attributes.get(ATTR_PORT)
    if raw is not None:
        try:
            return int(raw)
        except ValueError as exc:
            log_error(
                logger, "error converting port string %s to int: %s", raw, exc
            )
    log_info(
        logger,
        "no port found for address %s, assuming http (80) and https (443)",
        address,
    )
    return 0


def instance_to_record(instance: dict[str, typ.Any]) -> AddressRecord | None:
    """Normalize one ``HttpInstanceSummary`` into an address record.

    The IPv4 attribute wins whenever it is present, even when empty; the
    CNAME attribute is consulted only in its absence. Instances that end up
    without an address are skipped.
    """
    attributes: dict[str, str] = instance.get("Attributes") or {}
    if ATTR_IPV4 in attributes:
        address = attributes[ATTR_IPV4]
    else:
        address = attributes.get(ATTR_CNAME, "")
    if not address:
        log_info(
            logger,
            "instance %s of %s.%s is of a type that is not currently supported",
            instance.get("InstanceId"),
            instance.get("ServiceName"),
            instance.get("NamespaceName"),
        )
        return None
    return build_address_record(address, _instance_port(attributes, address))


def instances_to_records(
    instances: cabc.Iterable[dict[str, typ.Any]],
) -> list[AddressRecord]:
    """Normalize instances, dropping unsupported ones."""
    return [
        record
        for record in map(instance_to_record, instances)
        if record is not None
    ]


class CloudMapWatcher:
    """Mirror every Cloud Map namespace visible to the account into a store."""

    def __init__(
        self,
        config: CloudMapConfig,
        store: Store | None = None,
        *,
        client: ServiceDiscoveryClient | None = None,
    ) -> None:
        """Initialise the watcher, building a boto3 client when none is given."""
        self._config = config
        self._store = store or Store()
        self._client = client or build_servicediscovery_client(config)

    @property
    def prefix(self) -> str:
        """Return the name prefix for Cloud Map-owned ServiceEntries."""
        return CLOUDMAP_PREFIX

    @property
    def store(self) -> Store:
        """Return the store receiving Cloud Map snapshots."""
        return self._store

    async def run(self, stop: asyncio.Event) -> None:
        """Poll Cloud Map until ``stop`` is set."""
        await run_watcher(self, stop, self._config.interval_s)

    async def poll(self) -> PollResult:
        """Build a full snapshot; any API error fails the whole poll."""
        try:
            snapshot = await asyncio.to_thread(self._collect)
        except RegistryAPIError as exc:
            return Failed(
                reason=f"unable to refresh Cloud Map, keeping existing store: {exc}",
                error=exc,
            )
        return Updated(snapshot=snapshot)

    def _collect(self) -> dict[str, list[AddressRecord]]:
        log_info(logger, "Syncing Cloud Map store")
        try:
            namespaces = _paginate(self._client.list_namespaces, "Namespaces")
        except (BotoCoreError, ClientError) as exc:
            msg = f"error retrieving namespace list from Cloud Map: {exc}"
            raise RegistryAPIError(msg) from exc

        snapshot: dict[str, list[AddressRecord]] = {}
        for namespace in namespaces:
            # service.namespace names cannot collide across namespaces
            snapshot.update(self._hosts_for_namespace(namespace))
        log_info(logger, "Cloud Map store sync successful")
        return snapshot

    def _hosts_for_namespace(
        self, namespace: dict[str, typ.Any]
    ) -> dict[str, list[AddressRecord]]:
        ns_name = namespace.get("Name", "")
        try:
            services = _paginate(
                self._client.list_services,
                "Services",
                Filters=[
                    {
                        "Name": "NAMESPACE_ID",
                        "Values": [namespace.get("Id", "")],
                        "Condition": "EQ",
                    }
                ],
            )
        except (BotoCoreError, ClientError) as exc:
            msg = (
                "error retrieving service list from Cloud Map for namespace "
                f"{ns_name!r}: {exc}"
            )
            raise RegistryAPIError(msg) from exc

        hosts: dict[str, list[AddressRecord]] = {}
        for service in services:
            svc_name = service.get("Name", "")
            host = f"{svc_name}.{ns_name}"
            records = self._records_for_service(svc_name, ns_name, host)
            log_info(logger, "%d address records found for %r", len(records), host)
            hosts[host] = records
        return hosts

    def _records_for_service(
        self, svc_name: str, ns_name: str, host: str
    ) -> list[AddressRecord]:
        try:
            output = self._client.discover_instances(
                NamespaceName=ns_name, ServiceName=svc_name
            )
        except (BotoCoreError, ClientError) as exc:
            msg = (
                f"error retrieving instance list from Cloud Map for {svc_name!r} "
                f"in {ns_name!r}: {exc}"
            )
            raise RegistryAPIError(msg) from exc

        instances = output.get("Instances") or []
        if not instances:
            # a service without instances is still reachable by its own name
            instances = [{"Attributes": {ATTR_CNAME: host}}]
        return instances_to_records(instances)


__all__ = [
    "CLOUDMAP_PREFIX",
    "CloudMapConfig",
    "CloudMapWatcher",
    "ServiceDiscoveryClient",
    "build_servicediscovery_client",
    "instance_to_record",
    "instances_to_records",
]
