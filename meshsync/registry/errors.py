"""Errors raised while configuring or polling registry backends."""

from __future__ import annotations


class RegistryError(Exception):
    """Base class for registry backend errors."""


class RegistryConfigError(RegistryError):
    """Raised when a registry watcher cannot be constructed."""

    @classmethod
    def missing_endpoint(cls, backend: str) -> RegistryConfigError:
        """Return an error for a backend configured without an endpoint."""
        return cls(f"{backend} endpoint not specified")

    @classmethod
    def invalid_endpoint(cls, backend: str, endpoint: str) -> RegistryConfigError:
        """Return an error for an endpoint that is not an absolute URL."""
        return cls(f"{backend} endpoint {endpoint!r} must include scheme and host")

    @classmethod
    def missing_region(cls) -> RegistryConfigError:
        """Return an error when no AWS region is configured."""
        return cls(
            "AWS region must be specified (MESHSYNC_CLOUDMAP_REGION or AWS_REGION)"
        )


class RegistryAPIError(RegistryError):
    """Raised when a registry backend returns an error or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, backend: str, status_code: int) -> RegistryAPIError:
        """Return an error for a non-2xx HTTP response."""
        return cls(f"{backend} HTTP {status_code}", status_code=status_code)

    @classmethod
    def network_error(cls, backend: str, detail: str) -> RegistryAPIError:
        """Return an error for a transport failure."""
        return cls(f"{backend} network error: {detail}")

    @classmethod
    def invalid_response(cls, backend: str, detail: str) -> RegistryAPIError:
        """Return an error for a response body of unexpected shape."""
        return cls(f"{backend} returned an unexpected response: {detail}")
