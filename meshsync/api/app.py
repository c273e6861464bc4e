"""Application factory for the meshsync Falcon ASGI application.

This module provides ``create_app()`` which builds the Falcon ASGI
application serving the health probes and, when a controller is supplied,
running that controller for the lifetime of the server.

Usage
-----
Create a probe-only app (no controller)::

    app = create_app()

Create an app that runs the synchronizer::

    from meshsync.api.app import AppDependencies, create_app

    app = create_app(AppDependencies(controller=controller))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from meshsync.api.health.resources import HealthResource, ReadyResource

if typ.TYPE_CHECKING:
    from meshsync.control.controller import Controller

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    controller
        Controller started on ASGI startup and stopped on shutdown. Its
        ``ready`` flag drives ``/ready``.

    """

    controller: Controller | None = None


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None`` or without a
        controller, ``/ready`` always reports ready.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    middleware: list[object] = []
    controller = dependencies.controller if dependencies is not None else None
    ready = ReadyResource()

    if controller is not None:
        from meshsync.api.middleware import ControllerLifespan

        middleware.append(ControllerLifespan(controller))
        ready = ReadyResource(lambda: controller.ready)

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ready)

    return app
