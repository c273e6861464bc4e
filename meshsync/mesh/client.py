"""ServiceEntry client for the Kubernetes API.

The synchronizer depends only on :class:`ServiceEntryClient`; the httpx
implementation below talks to the ``networking.istio.io/v1alpha3`` REST
endpoints for a single namespace and encodes objects with msgspec.
"""

from __future__ import annotations

import typing as typ
import urllib.parse

import httpx
import msgspec

from .errors import ServiceEntryAPIError, ServiceEntryNotFoundError
from .models import API_GROUP, API_VERSION, ServiceEntry, ServiceEntryList

if typ.TYPE_CHECKING:
    import ssl

    from .kubeconfig import KubeConfig

_HTTP_NOT_FOUND = 404
_HTTP_ERROR_STATUS_THRESHOLD = 400
_DETAIL_LIMIT = 200
_DEFAULT_TIMEOUT_S = 30.0


class ServiceEntryClient(typ.Protocol):
    """Remote operations on ServiceEntries in one namespace.

    Every call is a synchronous round trip to the control plane and may
    raise :class:`ServiceEntryAPIError`; ``get`` and ``delete`` raise
    :class:`ServiceEntryNotFoundError` for a missing object.
    """

    async def get(self, name: str) -> ServiceEntry:
        """Fetch the current object, bypassing any cache."""
        ...

    async def create(self, entry: ServiceEntry) -> ServiceEntry:
        """Create ``entry`` and return the stored object."""
        ...

    async def update(self, entry: ServiceEntry) -> ServiceEntry:
        """Replace ``entry``; its ``resourceVersion`` guards concurrent writes."""
        ...

    async def delete(self, name: str) -> None:
        """Delete the named object."""
        ...

    async def list(self) -> list[ServiceEntry]:
        """Return every ServiceEntry in the namespace."""
        ...


class KubernetesServiceEntryClient:
    """httpx implementation of :class:`ServiceEntryClient`.

    Parameters
    ----------
    server
        API server base URL, e.g. ``https://10.0.0.1:6443``.
    namespace
        Namespace holding the managed ServiceEntries.
    http_client
        Optional preconfigured ``httpx.AsyncClient``; when omitted the
        instance creates and owns one.

    """

    def __init__(
        self,
        server: str,
        namespace: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        verify: ssl.SSLContext | bool = True,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialise the client for ``namespace`` on ``server``."""
        self._namespace = namespace
        self._base_path = (
            f"/apis/{API_GROUP}/{API_VERSION}/namespaces/"
            f"{urllib.parse.quote(namespace, safe='')}/serviceentries"
        )
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=server,
            timeout=_DEFAULT_TIMEOUT_S,
            verify=verify,
            headers={"Accept": "application/json", **(headers or {})},
        )
        self._decoder = msgspec.json.Decoder(ServiceEntry)
        self._list_decoder = msgspec.json.Decoder(ServiceEntryList)

    @classmethod
    def from_kubeconfig(
        cls, kubeconfig: KubeConfig, namespace: str
    ) -> KubernetesServiceEntryClient:
        """Build a client using the connection settings in ``kubeconfig``."""
        return cls(
            kubeconfig.server,
            namespace,
            verify=kubeconfig.ssl_verify(),
            headers=kubeconfig.headers(),
        )

    @property
    def namespace(self) -> str:
        """Return the namespace this client operates in."""
        return self._namespace

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def get(self, name: str) -> ServiceEntry:
        """Fetch ``name`` directly from the API server."""
        response = await self._send("GET", name, self._item_path(name))
        return self._decode(response, "get", name)

    async def create(self, entry: ServiceEntry) -> ServiceEntry:
        """POST ``entry`` into the namespace."""
        entry = self._in_namespace(entry)
        response = await self._send(
            "POST", entry.name, self._base_path, body=msgspec.json.encode(entry)
        )
        return self._decode(response, "create", entry.name)

    async def update(self, entry: ServiceEntry) -> ServiceEntry:
        """PUT ``entry`` over the stored object."""
        entry = self._in_namespace(entry)
        response = await self._send(
            "PUT",
            entry.name,
            self._item_path(entry.name),
            body=msgspec.json.encode(entry),
        )
        return self._decode(response, "update", entry.name)

    async def delete(self, name: str) -> None:
        """DELETE ``name`` from the namespace."""
        await self._send("DELETE", name, self._item_path(name))

    async def list(self) -> list[ServiceEntry]:
        """List every ServiceEntry in the namespace."""
        response = await self._send("GET", "*", self._base_path)
        try:
            return self._list_decoder.decode(response.content).items
        except msgspec.DecodeError as exc:
            raise ServiceEntryAPIError.invalid_body("list", "*") from exc

    def _in_namespace(self, entry: ServiceEntry) -> ServiceEntry:
        metadata = msgspec.structs.replace(entry.metadata, namespace=self._namespace)
        return msgspec.structs.replace(entry, metadata=metadata)

    def _item_path(self, name: str) -> str:
        return f"{self._base_path}/{urllib.parse.quote(name, safe='')}"

    async def _send(
        self,
        method: str,
        name: str,
        path: str,
        *,
        body: bytes | None = None,
    ) -> httpx.Response:
        operation = method.lower()
        headers = {"Content-Type": "application/json"} if body is not None else None
        try:
            response = await self._client.request(
                method, path, content=body, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise ServiceEntryAPIError.timeout(operation, name) from exc
        except httpx.RequestError as exc:
            raise ServiceEntryAPIError.network_error(operation, name, str(exc)) from exc

        if response.status_code == _HTTP_NOT_FOUND:
            raise ServiceEntryNotFoundError(name)
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise ServiceEntryAPIError.http_error(
                operation,
                name,
                response.status_code,
                response.text[:_DETAIL_LIMIT],
            )
        return response

    def _decode(
        self, response: httpx.Response, operation: str, name: str
    ) -> ServiceEntry:
        try:
            return self._decoder.decode(response.content)
        except msgspec.DecodeError as exc:
            raise ServiceEntryAPIError.invalid_body(operation, name) from exc


__all__ = ["KubernetesServiceEntryClient", "ServiceEntryClient"]
