"""
Rolling Logger Utilities
Diagnostic logging for the logger itself and I/O error classification.
"""

import errno
import logging
import sys
from typing import Optional

import orjson
import structlog


DIAGNOSTICS_LOGGER = "rolling_logger"

# stdlib handlers lock with an RLock, so a signal handler that interrupts a
# diagnostics write in the main thread can still emit its own events
diagnostics_handler = logging.StreamHandler(sys.stderr)
diagnostics_handler.setFormatter(logging.Formatter("%(message)s"))


def _diagnostics_logger(*_args) -> logging.Logger:
    return logging.getLogger(DIAGNOSTICS_LOGGER)


def configure_diagnostics(force: bool = False) -> None:
    """
    Configure structlog for the logger's own operational events.

    Leaves an existing host configuration alone unless `force` is set.
    """
    if structlog.is_configured() and not force:
        return

    stdlib_logger = logging.getLogger(DIAGNOSTICS_LOGGER)
    if diagnostics_handler not in stdlib_logger.handlers:
        stdlib_logger.addHandler(diagnostics_handler)
    stdlib_logger.setLevel(logging.INFO)
    stdlib_logger.propagate = False

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(serializer=lambda obj, **kw: orjson.dumps(obj, **kw).decode("utf-8")),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=_diagnostics_logger,
        cache_logger_on_first_use=True,
    )


configure_diagnostics()

logger = structlog.get_logger()


def classify_io_error(exception: BaseException) -> tuple[str, str]:
    """
    Classify file layer failures for structured logging.

    Args:
        exception: The exception to classify; chained causes are inspected

    Returns:
        Tuple of (category, reason) where:
        - category: "storage" (disk/permissions) or "lifecycle" (handle state)
        - reason: specific failure for logging
    """
    cause = exception
    while cause is not None and not isinstance(cause, (OSError, ValueError)):
        cause = cause.__cause__

    if isinstance(cause, OSError):
        if cause.errno in (errno.ENOSPC, errno.EDQUOT):
            return ("storage", "disk_full")
        if cause.errno in (errno.EACCES, errno.EPERM, errno.EROFS):
            return ("storage", "permission_denied")
        if cause.errno == errno.ENOTDIR or isinstance(cause, (NotADirectoryError, FileExistsError)):
            return ("storage", "not_a_directory")
        if cause.errno == errno.EBADF:
            return ("lifecycle", "handle_closed")
        return ("storage", f"io_error_{cause.errno}")

    if isinstance(cause, ValueError):
        # io raises ValueError for operations on a closed file
        return ("lifecycle", "handle_closed")

    return ("lifecycle", f"unknown_error_{type(exception).__name__}")


def log_write_failure(
    exception: BaseException,
    level: Optional[str] = None,
    path: Optional[str] = None,
):
    """
    Log a dropped record.

    Args:
        exception: Failure raised while opening, rotating or writing
        level: Severity of the dropped record
        path: Active file at the time of the failure, if any
    """
    category, reason = classify_io_error(exception)
    log_data = {
        "error_type": type(exception).__name__,
        "category": category,
        "failure_reason": reason,
        "error": str(exception),
    }

    if level:
        log_data["record_level"] = level
    if path:
        log_data["path"] = path

    logger.error("log_record_dropped", **log_data)
