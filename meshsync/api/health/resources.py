"""Health probe resources for Kubernetes liveness and readiness checks.

``/health`` only proves the process is serving requests. ``/ready`` asks an
optional readiness probe, normally the controller's ``ready`` flag, so the
pod is not marked ready before the first reconciliation cycle completes.

Usage
-----
Register health endpoints on the Falcon app::

    from meshsync.api.health.resources import HealthResource, ReadyResource

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(lambda: controller.ready))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from falcon.asgi import Request, Response

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``.

    Always responds with HTTP 200 to indicate the process is alive.

    """

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with liveness status.

        """
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource.

    Responds ``200 {"status": "ready"}`` when the probe passes (or when no
    probe is configured) and ``503 {"status": "starting"}`` otherwise.

    Parameters
    ----------
    probe
        Zero-argument callable returning ``True`` once the service is ready.

    """

    def __init__(self, probe: cabc.Callable[[], bool] | None = None) -> None:
        """Initialize the resource with an optional readiness probe."""
        self._probe = probe

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with readiness status.

        """
        if self._probe is None or self._probe():
            resp.media = {"status": "ready"}
            resp.status = HTTPStatus.OK
            return
        resp.media = {"status": "starting"}
        resp.status = HTTPStatus.SERVICE_UNAVAILABLE
