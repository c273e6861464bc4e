"""meshsync HTTP surface.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application exposing the liveness and readiness probes, and the
lifespan middleware that runs the controller alongside the server.

Usage
-----
Create and run the application::

    from meshsync.api import create_app

    app = create_app()              # probes only
    app = create_app(dependencies)  # probes plus a running controller

"""

from meshsync.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
