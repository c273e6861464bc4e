"""Errors raised by the ServiceEntry client and kubeconfig loading."""

from __future__ import annotations


class MeshError(Exception):
    """Base class for control-plane errors."""


class ServiceEntryNotFoundError(MeshError):
    """Raised when a ServiceEntry does not exist on the control plane."""

    def __init__(self, name: str) -> None:
        """Initialise with the missing object name."""
        self.name = name
        super().__init__(f"ServiceEntry not found: {name}")


class ServiceEntryAPIError(MeshError):
    """Raised when the Kubernetes API rejects or fails a ServiceEntry call."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(
        cls, operation: str, name: str, status_code: int, detail: str = ""
    ) -> ServiceEntryAPIError:
        """Return an error for a non-2xx response to ``operation``."""
        suffix = f": {detail}" if detail else ""
        return cls(
            f"{operation} {name} failed with HTTP {status_code}{suffix}",
            status_code=status_code,
        )

    @classmethod
    def timeout(cls, operation: str, name: str) -> ServiceEntryAPIError:
        """Return an error for a request that timed out."""
        return cls(f"{operation} {name} timed out")

    @classmethod
    def network_error(
        cls, operation: str, name: str, detail: str
    ) -> ServiceEntryAPIError:
        """Return an error for a transport failure."""
        return cls(f"{operation} {name} network error: {detail}")

    @classmethod
    def invalid_body(cls, operation: str, name: str) -> ServiceEntryAPIError:
        """Return an error for a response body that is not a ServiceEntry."""
        return cls(f"{operation} {name} returned an undecodable body")


class KubeConfigError(MeshError):
    """Raised when Kubernetes API connection settings cannot be loaded."""

    @classmethod
    def unreadable(cls, path: str, detail: str) -> KubeConfigError:
        """Return an error for a kubeconfig that cannot be read or parsed."""
        return cls(f"failed to read kubeconfig {path}: {detail}")

    @classmethod
    def missing_entry(cls, kind: str, name: str) -> KubeConfigError:
        """Return an error for a context, cluster or user that is not defined."""
        return cls(f"kubeconfig has no {kind} named {name!r}")

    @classmethod
    def no_current_context(cls) -> KubeConfigError:
        """Return an error for a kubeconfig without a current context."""
        return cls("kubeconfig has no current-context and none was requested")

    @classmethod
    def missing_server(cls, cluster: str) -> KubeConfigError:
        """Return an error for a cluster entry without a server URL."""
        return cls(f"kubeconfig cluster {cluster!r} has no server")
