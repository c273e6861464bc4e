"""Unit tests for the Falcon application and its controller lifespan.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_app.py

"""

from __future__ import annotations

import asyncio
from http import HTTPStatus

import falcon.asgi
import falcon.testing
import pytest

from meshsync.api.app import AppDependencies, create_app
from meshsync.api.middleware import ControllerLifespan


class _FakeController:
    """Controller stand-in recording lifespan transitions."""

    def __init__(self, *, ready: bool = False, honour_stop: bool = True) -> None:
        self.ready = ready
        self.started = asyncio.Event()
        self.stopped = False
        self.cancelled = False
        self.closed = False
        self._honour_stop = honour_stop

    async def run(self, stop: asyncio.Event) -> None:
        self.started.set()
        try:
            if self._honour_stop:
                await stop.wait()
            else:
                await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        finally:
            await self._aclose()
        self.stopped = True

    async def _aclose(self) -> None:
        await asyncio.sleep(0)
        self.closed = True


def _client(controller: _FakeController | None) -> falcon.testing.TestClient:
    deps = AppDependencies(controller=controller)  # type: ignore[arg-type]
    return falcon.testing.TestClient(create_app(deps))


class TestProbeOnlyApp:
    """Behaviour without a controller."""

    def test_create_app_returns_falcon_app(self) -> None:
        """create_app returns a Falcon ASGI App instance."""
        assert isinstance(create_app(), falcon.asgi.App)

    def test_health_returns_ok(self) -> None:
        """GET /health returns HTTP 200 with status ok."""
        result = _client(None).simulate_get("/health")
        assert result.status_code == HTTPStatus.OK
        assert result.json == {"status": "ok"}
        assert result.headers.get("content-type", "").startswith("application/json")

    def test_ready_without_probe_is_ready(self) -> None:
        """GET /ready returns 200 when nothing gates readiness."""
        result = _client(None).simulate_get("/ready")
        assert result.status_code == HTTPStatus.OK
        assert result.json == {"status": "ready"}


class TestReadiness:
    """/ready follows the controller's ready flag."""

    def test_not_ready_before_first_cycle(self) -> None:
        """A controller that has not synced yet reports 503."""
        result = _client(_FakeController(ready=False)).simulate_get("/ready")
        assert result.status_code == HTTPStatus.SERVICE_UNAVAILABLE
        assert result.json == {"status": "starting"}

    def test_ready_after_first_cycle(self) -> None:
        """A controller that has synced reports 200."""
        result = _client(_FakeController(ready=True)).simulate_get("/ready")
        assert result.status_code == HTTPStatus.OK
        assert result.json == {"status": "ready"}

    def test_health_ignores_readiness(self) -> None:
        """Liveness never depends on the controller."""
        result = _client(_FakeController(ready=False)).simulate_get("/health")
        assert result.status_code == HTTPStatus.OK


class TestControllerLifespan:
    """Lifespan events start and stop the controller."""

    async def test_conductor_runs_controller(self) -> None:
        """Startup launches the controller; shutdown drains it."""
        controller = _FakeController(ready=True)
        deps = AppDependencies(controller=controller)  # type: ignore[arg-type]
        app = create_app(deps)

        async with falcon.testing.ASGIConductor(app) as conductor:
            await asyncio.wait_for(controller.started.wait(), timeout=1)
            result = await conductor.simulate_get("/ready")
            assert result.status_code == HTTPStatus.OK
            assert not controller.stopped

        assert controller.stopped, "shutdown must let the controller finish"

    async def test_shutdown_timeout_cancels_controller(self) -> None:
        """A controller ignoring the stop signal is cancelled."""
        controller = _FakeController(honour_stop=False)
        lifespan = ControllerLifespan(
            controller,  # type: ignore[arg-type]
            shutdown_timeout_s=0.05,
        )

        await lifespan.process_startup(None, None)
        await asyncio.wait_for(controller.started.wait(), timeout=1)
        assert lifespan.running

        await lifespan.process_shutdown(None, None)

        assert controller.cancelled
        assert controller.closed, "cancelled controller must finish its cleanup"
        assert not lifespan.running

    async def test_shutdown_without_startup_is_noop(self) -> None:
        """Shutdown before startup does nothing."""
        lifespan = ControllerLifespan(_FakeController())  # type: ignore[arg-type]

        await lifespan.process_shutdown(None, None)

        assert not lifespan.running


@pytest.mark.parametrize("path", ["/metrics", "/sync"])
def test_unknown_routes_are_not_found(path: str) -> None:
    """Only the probes are served."""
    result = _client(None).simulate_get(path)
    assert result.status_code == HTTPStatus.NOT_FOUND
