"""Structured sync events and error categorization.

Every reconciliation outcome is emitted as a ``[sync.<event>] key=value``
log line so log aggregators can count writes and failures per backend
without a separate metrics pipeline.
"""

from __future__ import annotations

import enum
import typing as typ

from meshsync.config import ConfigError
from meshsync.logging import get_logger, log_debug, log_error, log_info
from meshsync.mesh.errors import (
    KubeConfigError,
    ServiceEntryAPIError,
    ServiceEntryNotFoundError,
)
from meshsync.registry.errors import RegistryAPIError, RegistryConfigError

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from .synchronizer import SyncResult

logger = get_logger(__name__)

# HTTP status code threshold for server errors (5xx)
_HTTP_SERVER_ERROR_THRESHOLD = 500


class SyncEventType(enum.StrEnum):
    """Structured log event types emitted by the synchronizer."""

    CYCLE_STARTED = "sync.cycle.started"
    CYCLE_COMPLETED = "sync.cycle.completed"
    CYCLE_FAILED = "sync.cycle.failed"
    ENTRY_CREATED = "sync.entry.created"
    ENTRY_UPDATED = "sync.entry.updated"
    ENTRY_DELETED = "sync.entry.deleted"
    ENTRY_UNCHANGED = "sync.entry.unchanged"
    OPERATION_FAILED = "sync.operation.failed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    NOT_FOUND = "not_found"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (ServiceEntryNotFoundError, ErrorCategory.NOT_FOUND),
    (KubeConfigError, ErrorCategory.CONFIGURATION),
    (RegistryConfigError, ErrorCategory.CONFIGURATION),
    (ConfigError, ErrorCategory.CONFIGURATION),
    (TimeoutError, ErrorCategory.TRANSIENT),
    (ConnectionError, ErrorCategory.TRANSIENT),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    API errors with a 5xx status, or with no status at all (timeouts and
    transport failures), are transient; other statuses are client errors.
    """
    if isinstance(exc, ServiceEntryAPIError | RegistryAPIError):
        if (
            exc.status_code is None
            or exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
        ):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class SyncEventLogger:
    """Emit structured synchronizer events through femtologging.

    Writes are logged at INFO, no-ops at DEBUG and failures at ERROR with
    the exception attached.
    """

    def log_cycle_started(self, backends: int) -> None:
        """Log the start of a reconciliation cycle."""
        log_debug(logger, "[%s] backends=%d", SyncEventType.CYCLE_STARTED, backends)

    def log_cycle_completed(
        self, results: cabc.Sequence[SyncResult], duration: dt.timedelta
    ) -> None:
        """Log a finished cycle with per-backend counters."""
        for result in results:
            log_info(
                logger,
                "[%s] prefix=%s duration_seconds=%.3f created=%d updated=%d "
                "unchanged=%d deleted=%d failed=%d",
                SyncEventType.CYCLE_COMPLETED,
                result.prefix,
                duration.total_seconds(),
                result.created,
                result.updated,
                result.unchanged,
                result.deleted,
                result.failed,
            )

    def log_cycle_failed(self, error: BaseException) -> None:
        """Log a cycle that raised unexpectedly."""
        log_error(
            logger,
            "[%s] error_type=%s error_category=%s error_message=%s",
            SyncEventType.CYCLE_FAILED,
            type(error).__name__,
            categorize_error(error),
            error,
            exc_info=error,
        )

    def log_entry_written(
        self, event: SyncEventType, prefix: str, host: str, name: str
    ) -> None:
        """Log a create, update or delete of ``name``."""
        log_info(
            logger,
            "[%s] prefix=%s host=%s name=%s",
            event,
            prefix,
            host,
            name,
        )

    def log_entry_unchanged(self, prefix: str, host: str, name: str) -> None:
        """Log that ``name`` already matches its desired spec."""
        log_debug(
            logger,
            "[%s] prefix=%s host=%s name=%s",
            SyncEventType.ENTRY_UNCHANGED,
            prefix,
            host,
            name,
        )

    def log_operation_failed(
        self, prefix: str, host: str, operation: str, error: BaseException
    ) -> None:
        """Log a failed control-plane call for one host."""
        log_error(
            logger,
            "[%s] prefix=%s host=%s operation=%s error_type=%s "
            "error_category=%s error_message=%s",
            SyncEventType.OPERATION_FAILED,
            prefix,
            host,
            operation,
            type(error).__name__,
            categorize_error(error),
            error,
            exc_info=error,
        )


__all__ = [
    "ErrorCategory",
    "SyncEventLogger",
    "SyncEventType",
    "categorize_error",
]
