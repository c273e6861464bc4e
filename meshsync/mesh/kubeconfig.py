"""Kubernetes API connection settings.

Only what the ServiceEntry client needs is read: the API server URL, the CA
bundle, a bearer token or client certificate files, and the context's
default namespace. Settings come either from a kubeconfig file (parsed with a
YAML 1.2 safe loader) or from the pod's service account when running
in-cluster.
"""

from __future__ import annotations

import base64
import dataclasses
import os
import ssl
import typing as typ
from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import KubeConfigError

YAML_VERSION = (1, 2)
SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
DEFAULT_KUBECONFIG = Path("~/.kube/config")


@dataclasses.dataclass(frozen=True, slots=True)
class KubeConfig:
    """Resolved connection settings for one Kubernetes API server."""

    server: str
    token: str | None = None
    ca_file: str | None = None
    ca_data: str | None = None
    client_cert_file: str | None = None
    client_key_file: str | None = None
    insecure_skip_tls_verify: bool = False
    namespace: str | None = None

    def ssl_verify(self) -> ssl.SSLContext | bool:
        """Return the ``verify`` argument for httpx."""
        if self.insecure_skip_tls_verify:
            return False
        if not (self.ca_file or self.ca_data or self.client_cert_file):
            return True
        context = ssl.create_default_context(
            cafile=self.ca_file, cadata=self.ca_data
        )
        if self.client_cert_file and self.client_key_file:
            context.load_cert_chain(self.client_cert_file, self.client_key_file)
        return context

    def headers(self) -> dict[str, str]:
        """Return authentication headers for API requests."""
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    @classmethod
    def in_cluster(cls, root: Path = SERVICE_ACCOUNT_DIR) -> KubeConfig:
        """Build settings from the mounted service account."""
        host = os.environ.get("KUBERNETES_SERVICE_HOST", "")
        port = os.environ.get("KUBERNETES_SERVICE_PORT", "443")
        if not host:
            raise KubeConfigError.unreadable(
                str(root), "KUBERNETES_SERVICE_HOST is not set"
            )
        if ":" in host:
            host = f"[{host}]"
        try:
            token = (root / "token").read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise KubeConfigError.unreadable(str(root), str(exc)) from exc
        namespace_path = root / "namespace"
        namespace = (
            namespace_path.read_text(encoding="utf-8").strip()
            if namespace_path.exists()
            else None
        )
        ca_path = root / "ca.crt"
        return cls(
            server=f"https://{host}:{port}",
            token=token,
            ca_file=str(ca_path) if ca_path.exists() else None,
            namespace=namespace,
        )

    @classmethod
    def from_file(cls, path: Path | str, context: str | None = None) -> KubeConfig:
        """Load settings for ``context`` (or the current context) from ``path``."""
        path_obj = Path(path).expanduser()
        try:
            loaded = _yaml().load(path_obj.read_text(encoding="utf-8"))
        except (OSError, YAMLError) as exc:
            raise KubeConfigError.unreadable(str(path_obj), str(exc)) from exc
        if not isinstance(loaded, dict):
            raise KubeConfigError.unreadable(str(path_obj), "not a mapping")
        return _from_document(loaded, context, base_dir=path_obj.parent)

    @classmethod
    def load(cls, path: Path | str | None = None) -> KubeConfig:
        """Resolve settings from ``path``, in-cluster, or ``~/.kube/config``."""
        if path:
            return cls.from_file(path)
        if os.environ.get("KUBERNETES_SERVICE_HOST"):
            return cls.in_cluster()
        env_path = os.environ.get("KUBECONFIG", "").split(os.pathsep)[0]
        return cls.from_file(env_path or DEFAULT_KUBECONFIG)


def _yaml() -> YAML:
    yaml = YAML(typ="safe")
    yaml.version = YAML_VERSION
    return yaml


def _named(
    document: dict[str, typ.Any], section: str, kind: str, name: str
) -> dict[str, typ.Any]:
    """Return the body of the ``name`` entry in a kubeconfig list section."""
    for entry in document.get(section) or []:
        if isinstance(entry, dict) and entry.get("name") == name:
            body = entry.get(kind)
            return body if isinstance(body, dict) else {}
    raise KubeConfigError.missing_entry(kind, name)


def _resolve_path(value: object, base_dir: Path) -> str | None:
    if not isinstance(value, str) or not value:
        return None
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return str(candidate)


def _decode_data(value: object) -> str | None:
    if not isinstance(value, str) or not value:
        return None
    return base64.b64decode(value).decode("utf-8")


def _from_document(
    document: dict[str, typ.Any], context: str | None, *, base_dir: Path
) -> KubeConfig:
    context_name = context or document.get("current-context")
    if not context_name:
        raise KubeConfigError.no_current_context()
    ctx = _named(document, "contexts", "context", context_name)

    cluster_name = ctx.get("cluster", "")
    cluster = _named(document, "clusters", "cluster", cluster_name)
    server = cluster.get("server")
    if not isinstance(server, str) or not server:
        raise KubeConfigError.missing_server(cluster_name)

    user_name = ctx.get("user")
    user = _named(document, "users", "user", user_name) if user_name else {}
    token = user.get("token")
    if not token and user.get("tokenFile"):
        token_path = _resolve_path(user.get("tokenFile"), base_dir)
        if token_path is not None:
            try:
                token = Path(token_path).read_text(encoding="utf-8").strip()
            except OSError as exc:
                raise KubeConfigError.unreadable(token_path, str(exc)) from exc

    return KubeConfig(
        server=server.rstrip("/"),
        token=token if isinstance(token, str) and token else None,
        ca_file=_resolve_path(cluster.get("certificate-authority"), base_dir),
        ca_data=_decode_data(cluster.get("certificate-authority-data")),
        client_cert_file=_resolve_path(user.get("client-certificate"), base_dir),
        client_key_file=_resolve_path(user.get("client-key"), base_dir),
        insecure_skip_tls_verify=bool(cluster.get("insecure-skip-tls-verify")),
        namespace=ctx.get("namespace"),
    )


__all__ = ["KubeConfig"]
