"""
Rolling Logger Write Serializer
Single writer thread that applies rotation and appends records in submission
order on behalf of any number of submitting threads.
"""

import queue
import threading
from datetime import datetime
from typing import Callable, Optional

import structlog

from file_handles import FileHandleManager, utc_now
from line_format import LineFormatter, LogRecord
from log_config import RollingConfig
from log_errors import DirectoryError, FileOpenError, WriteError
from log_levels import LogLevel
from log_utils import log_write_failure
from rotation import RotationPolicy

logger = structlog.get_logger()

_STOP = object()


class _FlushMarker:
    """Queued behind earlier records; set once the writer reaches it."""

    __slots__ = ("done",)

    def __init__(self):
        self.done = threading.Event()


class WriteSerializer:
    """Serialize writes and rotations against one FileHandleManager."""

    def __init__(
        self,
        file_manager: FileHandleManager,
        thresholds: RollingConfig,
        min_level: LogLevel = LogLevel.Info,
        policy: Optional[RotationPolicy] = None,
        formatter: Optional[LineFormatter] = None,
        clock: Optional[Callable[[], datetime]] = None,
        on_error: Optional[Callable[[Exception, LogRecord], None]] = None,
        thread_name: str = "rolling-logger-writer",
    ):
        self.file_manager = file_manager
        self.thresholds = thresholds
        self.min_level = min_level
        self.policy = policy or RotationPolicy()
        self.formatter = formatter or LineFormatter()
        self._clock = clock or utc_now
        self._on_error = on_error or self._report_failure
        self._thread_name = thread_name

        # SimpleQueue.put is reentrant, so signal handlers may submit
        self._queue = queue.SimpleQueue()
        self._thread: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()
        self._accepting = True

        self.records_written = 0
        self.records_dropped = 0
        self.rotations = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def accepting(self) -> bool:
        return self._accepting

    def start(self) -> None:
        """Start the writer thread; calling again is a no-op."""
        with self._start_lock:
            if self._thread is not None:
                return
            # Daemon so interpreter exit reaches the atexit drain instead of joining us
            self._thread = threading.Thread(target=self._run, name=self._thread_name, daemon=True)
            self._thread.start()

    def submit(self, record: LogRecord) -> bool:
        """
        Queue a record for writing without waiting for I/O.

        Returns False when the record is below the minimum level or the
        writer has been stopped.
        """
        if record.level < self.min_level:
            return False

        if not self._accepting:
            logger.warning("log_record_rejected", reason="writer_stopped", record_level=LogLevel.to_string(record.level))
            return False

        self._queue.put(record)
        return True

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait until every record submitted before this call has been handled."""
        if threading.current_thread() is self._thread:
            return True
        if not self.running:
            return self._queue.empty()

        marker = _FlushMarker()
        self._queue.put(marker)
        return marker.done.wait(timeout)

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Drain, then stop the writer thread. Later submissions are rejected."""
        self._accepting = False
        drained = self.drain(timeout)

        thread = self._thread
        if thread is not None and thread.is_alive():
            self._queue.put(_STOP)
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("log_writer_stop_timeout", timeout=timeout)
                return False

        self._discard_leftovers()
        return drained

    def _discard_leftovers(self) -> None:
        discarded = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if isinstance(item, _FlushMarker):
                item.done.set()
            elif isinstance(item, LogRecord):
                discarded += 1

        if discarded:
            self.records_dropped += discarded
            logger.warning("log_records_discarded", count=discarded, reason="writer_stopped")

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            if isinstance(item, _FlushMarker):
                item.done.set()
                continue

            try:
                self._write(item)
            except Exception:
                # A broken formatter must not take the writer thread down
                self.records_dropped += 1
                logger.exception("log_record_format_failed", record_level=LogLevel.to_string(item.level))

    def _write(self, record: LogRecord) -> None:
        line = self.formatter.format(record).encode("utf-8")

        try:
            if not self.file_manager.is_open:
                self.file_manager.open_new()
            else:
                active = self.file_manager.active_file
                decision = self.policy.evaluate(active, self.thresholds, self._clock(), len(line))
                if decision.rotate:
                    logger.info(
                        "log_file_rotating",
                        path=str(active.path),
                        reason=decision.reason,
                        rationale=decision.rationale,
                    )
                    self.file_manager.rotate()
                    self.rotations += 1

            self.file_manager.write(line)
            self.records_written += 1

        except (DirectoryError, FileOpenError, WriteError) as e:
            self.records_dropped += 1
            try:
                self._on_error(e, record)
            except Exception:
                # Already counted as dropped above
                logger.exception(
                    "log_error_callback_failed",
                    record_level=LogLevel.to_string(record.level),
                    error_type=type(e).__name__,
                )

    def _report_failure(self, error: Exception, record: LogRecord) -> None:
        active = self.file_manager.active_file
        log_write_failure(
            error,
            level=LogLevel.to_string(record.level),
            path=str(active.path) if active is not None else None,
        )
