"""Process configuration for the meshsync controller.

Usage
-----
Build settings directly, or load them with ``SyncConfig.from_env()``:

>>> SyncConfig(namespace="istio-config").namespace
'istio-config'

"""

from __future__ import annotations

import dataclasses as dc
import math
import os

from meshsync.registry.cloudmap import CloudMapConfig
from meshsync.registry.consul import ConsulConfig

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})
_REDACTED = "***"


class ConfigError(ValueError):
    """Raised when an environment variable holds an invalid value."""

    @classmethod
    def not_a_number(cls, env_var: str, raw: str) -> ConfigError:
        """Return an error for a value that does not parse as a number."""
        return cls(f"{env_var} must be a number, got: {raw!r}")

    @classmethod
    def not_positive(cls, env_var: str, value: float) -> ConfigError:
        """Return an error for a zero, negative or non-finite interval."""
        return cls(f"{env_var} must be a positive number, got: {value}")

    @classmethod
    def not_a_boolean(cls, env_var: str, raw: str) -> ConfigError:
        """Return an error for a flag that is not a recognised boolean."""
        return cls(f"{env_var} must be a boolean (true/false), got: {raw!r}")

    @classmethod
    def empty_namespace(cls) -> ConfigError:
        """Return an error for a blank target namespace."""
        return cls("MESHSYNC_NAMESPACE must not be empty")


@dc.dataclass(frozen=True, slots=True)
class SyncConfig:
    """Settings for one meshsync controller process.

    Attributes
    ----------
    namespace
        Namespace receiving the managed ServiceEntries.
    sync_interval_s
        Delay between reconciliation cycles.
    cache_refresh_interval_s
        Delay between ServiceEntry cache refreshes.
    consul_endpoint
        Consul HTTP API URL; the Consul watcher runs only when set.
    consul_namespace
        Optional Consul Enterprise namespace.
    cloudmap_enabled
        Whether to run the AWS Cloud Map watcher.
    cloudmap_region
        AWS region for Cloud Map; ``AWS_REGION`` is used when unset.
    aws_access_key_id, aws_secret_access_key
        Optional static AWS credentials.
    kubeconfig
        Optional kubeconfig path; in-cluster settings are used when unset.

    """

    namespace: str = "default"
    sync_interval_s: float = 5.0
    cache_refresh_interval_s: float = 5.0
    consul_endpoint: str | None = None
    consul_namespace: str | None = None
    cloudmap_enabled: bool = False
    cloudmap_region: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    kubeconfig: str | None = None

    def __post_init__(self) -> None:
        """Reject values no controller could run with."""
        if not self.namespace.strip():
            raise ConfigError.empty_namespace()
        _require_positive("MESHSYNC_SYNC_INTERVAL_S", self.sync_interval_s)
        _require_positive(
            "MESHSYNC_CACHE_REFRESH_INTERVAL_S", self.cache_refresh_interval_s
        )

    @classmethod
    def from_env(cls) -> SyncConfig:
        """Create configuration from ``MESHSYNC_*`` environment variables.

        Raises
        ------
        ConfigError
            If an interval is not a positive number or a flag is not a
            boolean.

        """
        return cls(
            namespace=os.environ.get("MESHSYNC_NAMESPACE", "default").strip(),
            sync_interval_s=_parse_interval("MESHSYNC_SYNC_INTERVAL_S", 5.0),
            cache_refresh_interval_s=_parse_interval(
                "MESHSYNC_CACHE_REFRESH_INTERVAL_S", 5.0
            ),
            consul_endpoint=_optional("MESHSYNC_CONSUL_ENDPOINT"),
            consul_namespace=_optional("MESHSYNC_CONSUL_NAMESPACE"),
            cloudmap_enabled=_parse_bool("MESHSYNC_CLOUDMAP_ENABLED"),
            cloudmap_region=_optional("MESHSYNC_CLOUDMAP_REGION"),
            aws_access_key_id=_optional("MESHSYNC_AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=_optional("MESHSYNC_AWS_SECRET_ACCESS_KEY"),
            kubeconfig=_optional("MESHSYNC_KUBECONFIG"),
        )

    def consul_config(self) -> ConsulConfig | None:
        """Return Consul watcher settings, or ``None`` when Consul is off."""
        if not self.consul_endpoint:
            return None
        return ConsulConfig(
            endpoint=self.consul_endpoint, namespace=self.consul_namespace
        )

    def cloudmap_config(self) -> CloudMapConfig | None:
        """Return Cloud Map watcher settings, or ``None`` when disabled."""
        if not self.cloudmap_enabled:
            return None
        return CloudMapConfig(
            region=self.cloudmap_region,
            access_key_id=self.aws_access_key_id,
            secret_access_key=self.aws_secret_access_key,
        )

    def to_env(self) -> dict[str, str]:
        """Return the ``MESHSYNC_*`` variables that reproduce this config."""
        env = {
            "MESHSYNC_NAMESPACE": self.namespace,
            "MESHSYNC_SYNC_INTERVAL_S": repr(self.sync_interval_s),
            "MESHSYNC_CACHE_REFRESH_INTERVAL_S": repr(self.cache_refresh_interval_s),
            "MESHSYNC_CLOUDMAP_ENABLED": "true" if self.cloudmap_enabled else "false",
        }
        optional = {
            "MESHSYNC_CONSUL_ENDPOINT": self.consul_endpoint,
            "MESHSYNC_CONSUL_NAMESPACE": self.consul_namespace,
            "MESHSYNC_CLOUDMAP_REGION": self.cloudmap_region,
            "MESHSYNC_AWS_ACCESS_KEY_ID": self.aws_access_key_id,
            "MESHSYNC_AWS_SECRET_ACCESS_KEY": self.aws_secret_access_key,
            "MESHSYNC_KUBECONFIG": self.kubeconfig,
        }
        env.update({key: value for key, value in optional.items() if value})
        return env

    def redacted(self) -> dict[str, object]:
        """Return the settings as a dict with credentials masked."""
        values = dc.asdict(self)
        if values["aws_secret_access_key"]:
            values["aws_secret_access_key"] = _REDACTED
        return values


def _optional(env_var: str) -> str | None:
    raw = os.environ.get(env_var, "").strip()
    return raw or None


def _require_positive(env_var: str, value: float) -> None:
    if not math.isfinite(value) or value <= 0:
        raise ConfigError.not_positive(env_var, value)


def _parse_interval(env_var: str, default: float) -> float:
    """Read a positive number of seconds, falling back to ``default``."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError.not_a_number(env_var, raw) from exc
    _require_positive(env_var, value)
    return value


def _parse_bool(env_var: str) -> bool:
    raw = os.environ.get(env_var, "").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ConfigError.not_a_boolean(env_var, raw)


__all__ = ["ConfigError", "SyncConfig"]
