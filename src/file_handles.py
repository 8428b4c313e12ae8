"""
Rolling Logger File Handles
Owns the single active log file: directory setup, unique naming, appends
and durable close.
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

import structlog

from log_errors import DirectoryError, FileOpenError, WriteError
from rotation import to_utc

logger = structlog.get_logger()

# Suffixes tried when several files are opened within the same second
MAX_NAME_ATTEMPTS = 1000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActiveFile:
    """The log file currently receiving appends."""

    def __init__(self, handle, path: Path, opened_at: datetime):
        self.handle = handle
        self.path = path
        self.opened_at = opened_at
        self.bytes_written = 0

    @property
    def closed(self) -> bool:
        return self.handle.closed

    def __repr__(self):
        state = "closed" if self.closed else "open"
        return f"<ActiveFile {self.path} {state} bytes_written={self.bytes_written}>"


class FileHandleManager:
    """Open, append to, rotate and close the active log file."""

    def __init__(
        self,
        directory: Union[str, Path] = "logs",
        prefix: str = "",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.directory = Path(directory)
        self.prefix = prefix
        self._clock = clock or utc_now
        self._active: Optional[ActiveFile] = None

    @property
    def active_file(self) -> Optional[ActiveFile]:
        return self._active

    @property
    def is_open(self) -> bool:
        return self._active is not None and not self._active.closed

    def ensure_directory(self) -> Path:
        """Create the log directory if needed and check it is writable."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except FileExistsError as e:
            raise DirectoryError(f"{self.directory} exists and is not a directory") from e
        except OSError as e:
            raise DirectoryError(f"Cannot create log directory {self.directory}: {e}") from e

        if not self.directory.is_dir():
            raise DirectoryError(f"{self.directory} exists and is not a directory")
        if not os.access(self.directory, os.W_OK | os.X_OK):
            raise DirectoryError(f"Log directory {self.directory} is not writable")
        return self.directory

    def file_name(self, opened_at: datetime, attempt: int = 0) -> str:
        """`<prefix><ISO-8601 seconds>.log`, with `.N` before the extension on collisions."""
        stamp = to_utc(opened_at).strftime("%Y-%m-%dT%H:%M:%S")
        if attempt:
            return f"{self.prefix}{stamp}.{attempt}.log"
        return f"{self.prefix}{stamp}.log"

    def _create(self, path: Path):
        # O_EXCL: an existing file is never reopened, truncated or appended to
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL | os.O_APPEND, 0o644)
        try:
            return os.fdopen(fd, "ab")
        except BaseException:
            os.close(fd)
            raise

    def open_new(self) -> ActiveFile:
        """Open a fresh, uniquely named log file and make it the active one."""
        if self.is_open:
            raise FileOpenError(f"{self._active.path} is still open; rotate() replaces it")

        self.ensure_directory()
        opened_at = self._clock()

        for attempt in range(MAX_NAME_ATTEMPTS):
            path = self.directory / self.file_name(opened_at, attempt)
            try:
                handle = self._create(path)
            except FileExistsError:
                continue
            except OSError as e:
                raise FileOpenError(f"Cannot open log file {path}: {e}") from e
            break
        else:
            raise FileOpenError(
                f"No free log file name for {self.file_name(opened_at)} after {MAX_NAME_ATTEMPTS} attempts"
            )

        self._active = ActiveFile(handle, path, opened_at)
        logger.info("log_file_opened", path=str(path))
        return self._active

    def write(self, data: bytes) -> int:
        """Append `data` to the active file and return the new byte count."""
        active = self._active
        if active is None or active.closed:
            raise WriteError("No open log file")

        try:
            active.handle.write(data)
            active.handle.flush()
        except (OSError, ValueError) as e:
            raise WriteError(f"Append to {active.path} failed: {e}") from e

        active.bytes_written += len(data)
        return active.bytes_written

    def close(self) -> None:
        """Flush and fsync, then close the active file. Closing twice is a no-op."""
        active = self._active
        if active is None or active.closed:
            return

        error = None
        try:
            active.handle.flush()
            os.fsync(active.handle.fileno())
        except (OSError, ValueError) as e:
            error = e

        try:
            active.handle.close()
        except OSError as e:
            error = error or e

        logger.info("log_file_closed", path=str(active.path), bytes_written=active.bytes_written)
        if error is not None:
            raise WriteError(f"Flushing {active.path} failed: {error}") from error

    def rotate(self) -> ActiveFile:
        """
        Replace the active file.

        The old handle is fully closed before the new one is opened. If the
        open fails no file is active until a later open succeeds.
        """
        previous = self._active
        try:
            self.close()
        except WriteError as e:
            # The handle is closed either way; the new file can still be opened
            logger.warning("log_file_close_failed", path=str(previous.path), error=str(e))

        self._active = None
        return self.open_new()
