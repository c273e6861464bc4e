"""Consul catalog watcher.

Uses Consul's blocking queries: the services listing is requested with the
last seen ``X-Consul-Index`` so the call parks server-side until the catalog
changes or the wait time elapses. An unchanged index after the wait means
there is nothing new to publish.
"""

from __future__ import annotations

import dataclasses
import typing as typ
import urllib.parse

import httpx

from meshsync.logging import get_logger, log_error, log_info

from .errors import RegistryAPIError, RegistryConfigError
from .infer import build_address_record
from .models import AddressRecord, Failed, PollResult, Unchanged, Updated
from .store import Store
from .watch import run_watcher

if typ.TYPE_CHECKING:
    import asyncio

logger = get_logger(__name__)

CONSUL_PREFIX = "consul-"
_BACKEND = "Consul"
_INDEX_HEADER = "X-Consul-Index"
_HTTP_ERROR_STATUS_THRESHOLD = 400


@dataclasses.dataclass(frozen=True, slots=True)
class ConsulConfig:
    """Connection settings for a Consul agent or server.

    Attributes
    ----------
    endpoint
        Base URL such as ``http://consul.service:8500``.
    namespace
        Optional Consul Enterprise namespace to scope catalog queries.
    wait_s
        Blocking query wait time sent as ``wait``.
    interval_s
        Delay between polls.

    """

    endpoint: str
    namespace: str | None = None
    wait_s: float = 5.0
    interval_s: float = 10.0

    def base_url(self) -> str:
        """Validate the endpoint and return it without a trailing slash."""
        if not self.endpoint.strip():
            raise RegistryConfigError.missing_endpoint(_BACKEND)
        parsed = urllib.parse.urlsplit(self.endpoint)
        if not parsed.scheme or not parsed.netloc:
            raise RegistryConfigError.invalid_endpoint(_BACKEND, self.endpoint)
        return f"{parsed.scheme}://{parsed.netloc}"


def catalog_service_to_record(service: dict[str, typ.Any]) -> AddressRecord | None:
    """Normalize one ``/v1/catalog/service`` entry into an address record.

    Entries without an address are skipped. A zero or absent ``ServicePort``
    falls back to the HTTP/HTTPS default pair.
    """
    address = service.get("Address")
    if not isinstance(address, str) or not address:
        log_info(
            logger,
            "instance %s of %s.%s is of a type that is not currently supported",
            service.get("ServiceID"),
            service.get("ServiceName"),
            service.get("Namespace"),
        )
        return None

    port = service.get("ServicePort")
    if isinstance(port, int) and port > 0:
        return build_address_record(address, port)

    log_info(
        logger,
        "no port found for address %s, assuming http (80) and https (443)",
        address,
    )
    return build_address_record(address, 0)


class ConsulWatcher:
    """Mirror Consul catalog services into a :class:`Store`."""

    def __init__(
        self,
        config: ConsulConfig,
        store: Store | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the watcher; the endpoint is validated eagerly."""
        base_url = config.base_url()
        self._config = config
        self._store = store or Store()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=config.wait_s + 10.0,
            headers={"Accept": "application/json"},
        )
        self._last_index: str | None = None

    @property
    def prefix(self) -> str:
        """Return the name prefix for Consul-owned ServiceEntries."""
        return CONSUL_PREFIX

    @property
    def store(self) -> Store:
        """Return the store receiving Consul snapshots."""
        return self._store

    @property
    def last_index(self) -> str | None:
        """Return the catalog index observed by the last successful listing."""
        return self._last_index

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def run(self, stop: asyncio.Event) -> None:
        """Poll Consul until ``stop`` is set."""
        await run_watcher(self, stop, self._config.interval_s)

    async def poll(self) -> PollResult:
        """List catalog services and describe each one."""
        try:
            names, index = await self._list_services()
        except RegistryAPIError as exc:
            return Failed(
                reason=f"error listing services from Consul: {exc}", error=exc
            )

        if index is not None and index == self._last_index:
            return Unchanged(detail=f"waiting for index to change: index={index}")
        self._last_index = index

        snapshot: dict[str, list[AddressRecord]] = {}
        for name in names:
            try:
                services = await self._describe_service(name)
            except RegistryAPIError as exc:
                log_error(
                    logger,
                    "error describing service catalog from Consul: %s",
                    exc,
                    exc_info=exc,
                )
                continue
            records = [
                record
                for record in map(catalog_service_to_record, services)
                if record is not None
            ]
            if records:
                snapshot[name] = records
        return Updated(snapshot=snapshot)

    def _params(self, **extra: str) -> dict[str, str]:
        params = dict(extra)
        if self._config.namespace:
            params["ns"] = self._config.namespace
        return params

    async def _get_json(self, path: str, params: dict[str, str]) -> httpx.Response:
        try:
            response = await self._client.get(path, params=params)
        except httpx.RequestError as exc:
            raise RegistryAPIError.network_error(_BACKEND, str(exc)) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise RegistryAPIError.http_error(_BACKEND, response.status_code)
        return response

    async def _list_services(self) -> tuple[list[str], str | None]:
        """Return service names and the catalog index of the response."""
        params = self._params(wait=f"{int(self._config.wait_s)}s")
        if self._last_index is not None:
            params["index"] = self._last_index
        response = await self._get_json("/v1/catalog/services", params)
        payload = _decode_json(response)
        if not isinstance(payload, dict):
            raise RegistryAPIError.invalid_response(_BACKEND, "services is not a map")
        # values are tag lists, which meshsync ignores
        return sorted(payload), response.headers.get(_INDEX_HEADER)

    async def _describe_service(self, name: str) -> list[dict[str, typ.Any]]:
        path = f"/v1/catalog/service/{urllib.parse.quote(name, safe='')}"
        response = await self._get_json(path, self._params())
        payload = _decode_json(response)
        if not isinstance(payload, list):
            raise RegistryAPIError.invalid_response(
                _BACKEND, f"service {name} is not a list"
            )
        return [entry for entry in payload if isinstance(entry, dict)]


def _decode_json(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError as exc:
        raise RegistryAPIError.invalid_response(_BACKEND, "invalid JSON") from exc


__all__ = [
    "CONSUL_PREFIX",
    "ConsulConfig",
    "ConsulWatcher",
    "catalog_service_to_record",
]
