"""meshsync runtime entrypoint for Kubernetes deployments.

This module provides the ASGI application factory used by Granian. The
factory reads :class:`~meshsync.config.SyncConfig` from the environment,
builds the controller and hands it to :func:`meshsync.api.app.create_app`,
keeping the ``meshsync.runtime:create_app`` entrypoint stable.

Configuration is driven by environment variables:

- ``MESHSYNC_HOST``: Bind address (default ``0.0.0.0``)
- ``MESHSYNC_PORT``: Listen port (default ``8080``)
- ``MESHSYNC_LOG_LEVEL``: Log level (default ``INFO``)
- ``MESHSYNC_*``: Controller settings, see :mod:`meshsync.config`

Run the service directly with ``python -m meshsync.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from meshsync.config import ConfigError, SyncConfig
from meshsync.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)
from meshsync.mesh.errors import KubeConfigError
from meshsync.registry.errors import RegistryConfigError

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid MESHSYNC_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application running the meshsync controller.

    Returns
    -------
    falcon.asgi.App
        Application serving ``/health`` and ``/ready`` whose lifespan runs
        the watchers, the cache refresher and the synchronizer.

    Raises
    ------
    SystemExit
        If the configuration, a registry backend or the Kubernetes
        connection settings are invalid.

    """
    from meshsync.api.app import AppDependencies
    from meshsync.api.app import create_app as _create_api_app
    from meshsync.control.controller import Controller

    try:
        config = SyncConfig.from_env()
        controller = Controller.from_config(config)
    except (ConfigError, RegistryConfigError, KubeConfigError) as exc:
        log_error(logger, "Invalid meshsync configuration: %s", exc)
        raise SystemExit(1) from exc

    log_info(
        logger,
        "meshsync controller configured: namespace=%s backends=%s",
        config.namespace,
        ",".join(watcher.prefix for watcher in controller.watchers) or "none",
    )
    return _create_api_app(AppDependencies(controller=controller))


def main() -> None:
    """Start the meshsync runtime server using Granian.

    Reads ``MESHSYNC_HOST``, ``MESHSYNC_PORT``, and ``MESHSYNC_LOG_LEVEL``
    from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("MESHSYNC_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port_str = os.environ.get("MESHSYNC_PORT", "8080")
    port = _parse_port(port_str)
    log_level_str = os.environ.get("MESHSYNC_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid MESHSYNC_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting meshsync runtime on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    # one worker: several controllers would race on the same ServiceEntries
    server = Granian(
        "meshsync.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
        workers=1,
    )
    server.serve()


if __name__ == "__main__":
    main()
