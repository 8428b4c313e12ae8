"""
Rolling Logger
Process-local logger that appends formatted lines to calendar- and
size-rotated files.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import structlog

from caller_resolver import CallerResolver, FrameCallerResolver
from file_handles import FileHandleManager, utc_now
from line_format import LineFormatter, LogRecord
from log_config import LogConfig
from log_errors import ConfigError
from log_levels import LogLevel, RollingTimeOption
from rotation import RotationPolicy
from shutdown import ShutdownCoordinator, ShutdownState
from write_serializer import WriteSerializer

logger = structlog.get_logger()


class Logger:
    """
    Rotating file logger.

    Example
    ```python
    log = Logger.with_config(LogConfig.with_defaults().with_file_prefix("api_"))
    log.info("service started")
    ```

    Submission never waits for disk I/O; a single writer thread appends the
    records in the order they were submitted. SIGINT, SIGTERM and interpreter
    exit drain pending records and close the file.
    """

    def __init__(
        self,
        config: Optional[LogConfig] = None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        formatter: Optional[LineFormatter] = None,
        caller_resolver: Optional[CallerResolver] = None,
        policy: Optional[RotationPolicy] = None,
        on_error: Optional[Callable[[Exception, LogRecord], None]] = None,
        install_handlers: bool = True,
        shutdown_timeout: Optional[float] = 10.0,
    ):
        config = config if config is not None else LogConfig.with_defaults()
        if not isinstance(config, LogConfig):
            raise ConfigError(f"config must be a LogConfig, got {type(config).__name__}")

        self._config = config
        self._clock = clock or utc_now
        self._caller_resolver = caller_resolver or FrameCallerResolver(skip_files=[__file__])

        self._file_manager = FileHandleManager(config.directory, config.file_prefix, clock=self._clock)
        self._serializer = WriteSerializer(
            self._file_manager,
            config.rolling,
            min_level=config.level,
            policy=policy,
            formatter=formatter,
            clock=self._clock,
            on_error=on_error,
        )
        self._shutdown = ShutdownCoordinator(
            self._serializer,
            self._file_manager,
            announce=self.critical,
            drain_timeout=shutdown_timeout,
        )

        self._serializer.start()
        if install_handlers:
            self._shutdown.register()

        logger.debug(
            "rolling_logger_ready",
            level=LogLevel.to_string(config.level),
            directory=config.directory,
            file_prefix=config.file_prefix,
            time_interval=config.rolling.time_interval.value,
            max_bytes=config.rolling.max_bytes,
        )

    @classmethod
    def with_defaults(cls) -> "Logger":
        """A logger with the default configuration."""
        return cls()

    @classmethod
    def with_config(cls, config: LogConfig, **kwargs) -> "Logger":
        """A logger with the given configuration."""
        return cls(config, **kwargs)

    def get_log_caller(self) -> str:
        """`file:line function()` of the code calling into the logger."""
        return self._caller_resolver.resolve()

    def _log(self, message, level: LogLevel) -> None:
        # Filter before resolving the caller or touching the queue
        if level < self._config.level:
            return

        record = LogRecord(
            timestamp=self._clock(),
            level=level,
            caller=self._caller_resolver.resolve(),
            message=str(message),
        )
        self._serializer.submit(record)

    def debug(self, message) -> None:
        self._log(message, LogLevel.Debug)

    def info(self, message) -> None:
        self._log(message, LogLevel.Info)

    def warn(self, message) -> None:
        self._log(message, LogLevel.Warn)

    warning = warn

    def error(self, message) -> None:
        self._log(message, LogLevel.Error)

    def critical(self, message) -> None:
        self._log(message, LogLevel.Critical)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until everything submitted so far has been written."""
        return self._serializer.drain(timeout)

    def close(self) -> None:
        """Drain, close the active file and detach the shutdown hooks."""
        self._shutdown.trigger("close", announce=False)
        self._shutdown.unregister()

    async def aflush(self, timeout: Optional[float] = None) -> bool:
        """Awaitable flush() that keeps the event loop free."""
        return await asyncio.to_thread(self.flush, timeout)

    async def aclose(self) -> None:
        """Awaitable close() for application lifespans."""
        await asyncio.to_thread(self._shutdown.trigger, "close", False)
        # Signal handlers can only be restored from the loop (main) thread
        self._shutdown.unregister()

    def __enter__(self) -> "Logger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "Logger":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # Accessors

    @property
    def config(self) -> LogConfig:
        return self._config

    @property
    def level(self) -> LogLevel:
        return self._config.level

    @property
    def file_prefix(self) -> str:
        return self._config.file_prefix

    @property
    def directory(self) -> Path:
        return Path(self._config.directory)

    @property
    def time_threshold(self) -> RollingTimeOption:
        return self._config.rolling.time_interval

    @property
    def size_threshold(self) -> int:
        return self._config.rolling.max_bytes

    @property
    def current_file(self) -> Optional[Path]:
        """Path of the most recently opened log file, if any."""
        active = self._file_manager.active_file
        return active.path if active is not None else None

    @property
    def shutdown_state(self) -> ShutdownState:
        return self._shutdown.state
