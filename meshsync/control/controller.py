"""Wire watchers, the ServiceEntry cache and the synchronizer together.

The controller owns one asyncio task per watcher, one for the cache
refresher and one for the synchronizer. They share a single stop event and
communicate only through the stores and the cache.
"""

from __future__ import annotations

import asyncio
import typing as typ

from meshsync.logging import get_logger, log_error, log_info, log_warning
from meshsync.mesh.cache import ServiceEntryCache
from meshsync.mesh.client import KubernetesServiceEntryClient
from meshsync.mesh.kubeconfig import KubeConfig
from meshsync.registry.cloudmap import CloudMapWatcher
from meshsync.registry.consul import ConsulWatcher

from .synchronizer import Synchronizer

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from meshsync.config import SyncConfig
    from meshsync.mesh.client import ServiceEntryClient
    from meshsync.registry.protocol import Watcher

logger = get_logger(__name__)


def build_watchers(config: SyncConfig) -> list[Watcher]:
    """Construct the watchers enabled in ``config``.

    Raises
    ------
    RegistryConfigError
        If an enabled backend is misconfigured.

    """
    watchers: list[Watcher] = []
    consul = config.consul_config()
    if consul is not None:
        watchers.append(ConsulWatcher(consul))
    cloudmap = config.cloudmap_config()
    if cloudmap is not None:
        watchers.append(CloudMapWatcher(cloudmap))
    if not watchers:
        log_warning(
            logger,
            "No registry backends configured; set MESHSYNC_CONSUL_ENDPOINT "
            "or MESHSYNC_CLOUDMAP_ENABLED",
        )
    return watchers


class Controller:
    """Run every meshsync loop until a shared stop event fires.

    Parameters
    ----------
    watchers
        Registry watchers feeding the synchronizer.
    client
        ServiceEntry client shared by the cache and the synchronizer.
    cache
        Cache instance; a fresh unpopulated cache is used when omitted.
    sync_interval_s, cache_refresh_interval_s
        Loop delays for the synchronizer and the cache refresher.
    namespace
        Namespace stamped on created ServiceEntries.

    """

    def __init__(  # noqa: PLR0913
        self,
        watchers: cabc.Sequence[Watcher],
        client: ServiceEntryClient,
        *,
        cache: ServiceEntryCache | None = None,
        sync_interval_s: float = 5.0,
        cache_refresh_interval_s: float = 5.0,
        namespace: str | None = None,
    ) -> None:
        """Initialise the controller and its synchronizer."""
        self._watchers = tuple(watchers)
        self._client = client
        self._cache = cache if cache is not None else ServiceEntryCache()
        self._cache_refresh_interval_s = cache_refresh_interval_s
        self._synchronizer = Synchronizer(
            self._watchers,
            client,
            self._cache,
            namespace=namespace,
            interval=sync_interval_s,
        )

    @classmethod
    def from_config(cls, config: SyncConfig) -> Controller:
        """Build watchers and the Kubernetes client described by ``config``."""
        kubeconfig = KubeConfig.load(config.kubeconfig)
        client = KubernetesServiceEntryClient.from_kubeconfig(
            kubeconfig, config.namespace
        )
        return cls(
            build_watchers(config),
            client,
            sync_interval_s=config.sync_interval_s,
            cache_refresh_interval_s=config.cache_refresh_interval_s,
            namespace=config.namespace,
        )

    @property
    def watchers(self) -> tuple[Watcher, ...]:
        """Return the configured watchers."""
        return self._watchers

    @property
    def cache(self) -> ServiceEntryCache:
        """Return the ServiceEntry cache."""
        return self._cache

    @property
    def synchronizer(self) -> Synchronizer:
        """Return the synchronizer."""
        return self._synchronizer

    @property
    def ready(self) -> bool:
        """Return ``True`` after the first completed synchronizer cycle."""
        return self._synchronizer.cycles_completed > 0

    async def run(self, stop: asyncio.Event) -> None:
        """Run all loops until ``stop`` is set, then release resources.

        A loop that crashes is logged; the others keep running until the
        stop event fires.
        """
        log_info(
            logger,
            "[controller.started] backends=%s",
            ",".join(watcher.prefix for watcher in self._watchers) or "none",
        )
        coroutines: list[cabc.Coroutine[typ.Any, typ.Any, None]] = [
            watcher.run(stop) for watcher in self._watchers
        ]
        coroutines.append(
            self._cache.run(self._client, stop, self._cache_refresh_interval_s)
        )
        coroutines.append(self._synchronizer.run(stop))
        try:
            gathered = await asyncio.gather(*coroutines, return_exceptions=True)
        finally:
            await self.aclose()

        for outcome in gathered:
            if isinstance(outcome, Exception):
                log_error(
                    logger,
                    "[controller.loop.crashed] error_type=%s error_message=%s",
                    type(outcome).__name__,
                    outcome,
                    exc_info=outcome,
                )
            elif isinstance(outcome, BaseException):
                raise outcome
        log_info(logger, "[controller.stopped]")

    async def aclose(self) -> None:
        """Close clients owned by the watchers and the ServiceEntry client."""
        for resource in (*self._watchers, self._client):
            aclose = getattr(resource, "aclose", None)
            if aclose is not None:
                await aclose()


__all__ = ["Controller", "build_watchers"]
