"""Command-line entrypoint for meshsync.

Usage:
    meshsync serve --consul-endpoint http://consul:8500
    meshsync show-config

Every option falls back to its ``MESHSYNC_*`` environment variable, so the
container can be configured entirely through the environment.
"""

from __future__ import annotations

import dataclasses as dc
import os
import sys
import typing as typ

import msgspec
from cyclopts import App, Parameter

from meshsync.config import ConfigError, SyncConfig

app = App(
    name="meshsync",
    help="Mirror service registries into Istio ServiceEntries",
    version="0.1.0",
)


def _load(overrides: dict[str, object]) -> SyncConfig:
    """Read the environment and apply non-``None`` CLI overrides."""
    config = SyncConfig.from_env()
    changes = {key: value for key, value in overrides.items() if value is not None}
    return dc.replace(config, **changes) if changes else config


@app.command
def serve(  # noqa: PLR0913
    *,
    namespace: str | None = None,
    consul_endpoint: str | None = None,
    consul_namespace: str | None = None,
    cloudmap: typ.Annotated[
        bool | None, Parameter(negative="--no-cloudmap")
    ] = None,
    cloudmap_region: str | None = None,
    kubeconfig: str | None = None,
    sync_interval: float | None = None,
) -> int:
    """Run the controller and its health server until terminated.

    Args:
        namespace: Namespace receiving the managed ServiceEntries.
        consul_endpoint: Consul HTTP API URL; enables the Consul watcher.
        consul_namespace: Consul Enterprise namespace to watch.
        cloudmap: Enable the AWS Cloud Map watcher.
        cloudmap_region: AWS region for Cloud Map.
        kubeconfig: Path to a kubeconfig; in-cluster settings otherwise.
        sync_interval: Seconds between reconciliation cycles.

    Returns:
        Exit code (0 for a clean shutdown, 1 for invalid configuration).

    """
    try:
        config = _load(
            {
                "namespace": namespace,
                "consul_endpoint": consul_endpoint,
                "consul_namespace": consul_namespace,
                "cloudmap_enabled": cloudmap,
                "cloudmap_region": cloudmap_region,
                "kubeconfig": kubeconfig,
                "sync_interval_s": sync_interval,
            }
        )
    except ConfigError as exc:
        print(f"invalid configuration: {exc}", file=sys.stderr)
        return 1

    # the Granian factory re-reads the environment in its worker
    os.environ.update(config.to_env())

    from meshsync.runtime import main as run_server

    run_server()
    return 0


@app.command
def show_config(
    *,
    namespace: str | None = None,
    consul_endpoint: str | None = None,
) -> int:
    """Print the effective configuration as JSON with secrets masked.

    Args:
        namespace: Override the target namespace before printing.
        consul_endpoint: Override the Consul endpoint before printing.

    Returns:
        Exit code (0 for success, 1 for invalid configuration).

    """
    try:
        config = _load({"namespace": namespace, "consul_endpoint": consul_endpoint})
    except ConfigError as exc:
        print(f"invalid configuration: {exc}", file=sys.stderr)
        return 1
    print(msgspec.json.format(msgspec.json.encode(config.redacted())).decode())
    return 0


def main() -> int:
    """Entry point for the CLI."""
    return app()


if __name__ == "__main__":
    sys.exit(main())
