"""ASGI lifespan middleware running the meshsync controller.

The controller's loops live for as long as the server does: they start on
the ASGI ``lifespan.startup`` event and are asked to stop, then awaited, on
``lifespan.shutdown``.

Usage
-----
Register the middleware when creating the Falcon app::

    from meshsync.api.middleware import ControllerLifespan

    app = falcon.asgi.App(middleware=[ControllerLifespan(controller)])

"""

from __future__ import annotations

import asyncio
import contextlib
import typing as typ

from meshsync.logging import get_logger, log_info, log_warning

if typ.TYPE_CHECKING:
    from meshsync.control.controller import Controller

__all__ = ["ControllerLifespan"]

logger = get_logger(__name__)

_DEFAULT_SHUTDOWN_TIMEOUT_S = 30.0


class ControllerLifespan:
    """Falcon middleware tying a :class:`Controller` to the server lifespan.

    Parameters
    ----------
    controller
        Controller whose ``run`` coroutine is started as a background task.
    shutdown_timeout_s
        Seconds to wait for the loops to finish before cancelling them.

    """

    def __init__(
        self,
        controller: Controller,
        *,
        shutdown_timeout_s: float = _DEFAULT_SHUTDOWN_TIMEOUT_S,
    ) -> None:
        """Initialize the middleware for ``controller``."""
        self._controller = controller
        self._shutdown_timeout_s = shutdown_timeout_s
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Return ``True`` while the controller task is alive."""
        return self._task is not None and not self._task.done()

    async def process_startup(self, _scope: object, _event: object) -> None:
        """Start the controller loops in a background task."""
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(
            self._controller.run(self._stop), name="meshsync-controller"
        )
        log_info(logger, "[lifespan.startup] controller task started")

    async def process_shutdown(self, _scope: object, _event: object) -> None:
        """Signal the loops to stop and wait for them to drain."""
        task = self._task
        if task is None:
            return
        self._stop.set()
        try:
            await asyncio.wait_for(asyncio.shield(task), self._shutdown_timeout_s)
        except TimeoutError:
            log_warning(
                logger,
                "[lifespan.shutdown] controller did not stop within %.1fs; "
                "cancelling",
                self._shutdown_timeout_s,
            )
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._task = None
        log_info(logger, "[lifespan.shutdown] controller task stopped")
