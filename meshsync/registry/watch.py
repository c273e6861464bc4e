"""Polling loop shared by all registry watchers."""

from __future__ import annotations

import asyncio
import contextlib
import typing as typ

from meshsync.logging import get_logger, log_error, log_exception, log_info

from .models import Failed, Unchanged, Updated

if typ.TYPE_CHECKING:
    from .protocol import Watcher

logger = get_logger(__name__)


async def wait_for_stop(stop: asyncio.Event, timeout: float) -> bool:
    """Sleep up to ``timeout`` seconds, returning early once ``stop`` is set.

    Returns
    -------
    bool
        ``True`` when the stop signal fired.

    """
    with contextlib.suppress(TimeoutError):
        await asyncio.wait_for(stop.wait(), timeout)
    return stop.is_set()


async def refresh_once(watcher: Watcher) -> bool:
    """Poll ``watcher`` once and apply the result to its store.

    Returns ``True`` when the store received a new snapshot. Any exception
    escaping :meth:`Watcher.poll` is logged and treated as a failed poll so
    the previous snapshot stays in place.
    """
    try:
        result = await watcher.poll()
    except Exception as exc:  # noqa: BLE001 - a poll failure must not end the loop
        log_exception(
            logger,
            f"[registry.poll.failed] prefix={watcher.prefix} "
            f"error_type={type(exc).__name__} error_message={exc}",
            exc,
        )
        return False

    match result:
        case Updated(snapshot=snapshot):
            watcher.store.set(snapshot)
            log_info(
                logger,
                "[registry.poll.updated] prefix=%s hosts=%d",
                watcher.prefix,
                len(snapshot),
            )
            return True
        case Unchanged(detail=detail):
            log_info(
                logger,
                "[registry.poll.unchanged] prefix=%s detail=%s",
                watcher.prefix,
                detail,
            )
        case Failed(reason=reason, error=error):
            log_error(
                logger,
                "[registry.poll.failed] prefix=%s reason=%s",
                watcher.prefix,
                reason,
                exc_info=error,
            )
    return False


async def run_watcher(watcher: Watcher, stop: asyncio.Event, interval: float) -> None:
    """Poll immediately, then every ``interval`` seconds until ``stop`` is set."""
    log_info(
        logger,
        "[registry.watch.started] prefix=%s interval_seconds=%.1f",
        watcher.prefix,
        interval,
    )
    while not stop.is_set():
        await refresh_once(watcher)
        if await wait_for_stop(stop, interval):
            break
    log_info(logger, "[registry.watch.stopped] prefix=%s", watcher.prefix)


__all__ = ["refresh_once", "run_watcher", "wait_for_stop"]
