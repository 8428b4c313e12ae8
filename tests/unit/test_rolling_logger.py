import re
from datetime import datetime, timezone

import pytest

from caller_resolver import FrameCallerResolver
from line_format import LineFormatter, LogRecord
from log_config import LogConfig
from log_errors import ConfigError
from log_levels import LogLevel, RollingTimeOption
from rolling_logger import Logger
from shutdown import ShutdownState

NOW = datetime(2026, 10, 19, 5, 35, 12, 345000, tzinfo=timezone.utc)

LINE_PATTERN = re.compile(
    r"^\[2026-10-19T05:35:12\.345Z\] \[(DEBUG|INFO|WARN|ERROR|CRITICAL)\]: (\S+:\d+ \S+\(\)) (.*)$"
)


def _logger(tmp_path, level=LogLevel.Info, **kwargs):
    config = (
        LogConfig.with_defaults()
        .with_directory(tmp_path / "logs")
        .with_file_prefix("t-")
        .with_log_level(level)
    )
    return Logger(config, clock=lambda: NOW, install_handlers=False, **kwargs)


def test_accessors_reflect_config(tmp_path):
    config = (
        LogConfig.with_defaults()
        .with_directory(tmp_path)
        .with_file_prefix("svc-")
        .with_log_level("warn")
        .with_time_interval("day")
        .with_max_bytes(1234)
    )
    log = Logger.with_config(config, install_handlers=False)

    assert log.level == LogLevel.Warn
    assert log.file_prefix == "svc-"
    assert log.time_threshold == RollingTimeOption.Day
    assert log.size_threshold == 1234
    assert log.directory == tmp_path
    assert log.config is config
    log.close()


def test_rejects_non_config_objects():
    with pytest.raises(ConfigError):
        Logger({"level": "info"}, install_handlers=False)


def test_lines_carry_timestamp_level_and_caller(tmp_path):
    log = _logger(tmp_path, level=LogLevel.Debug)
    log.debug("d")
    log.info("i")
    log.warn("w")
    log.error("e")
    log.critical("c")
    log.close()

    lines = log.current_file.read_text().splitlines()
    parsed = [LINE_PATTERN.match(line) for line in lines]
    assert all(parsed), lines
    assert [m.group(1) for m in parsed] == ["DEBUG", "INFO", "WARN", "ERROR", "CRITICAL"]
    assert [m.group(3) for m in parsed] == ["d", "i", "w", "e", "c"]
    for match in parsed:
        assert "test_rolling_logger.py:" in match.group(2)
        assert match.group(2).endswith("test_lines_carry_timestamp_level_and_caller()")


def test_below_level_writes_nothing(tmp_path):
    log = _logger(tmp_path, level=LogLevel.Error)
    log.debug("no")
    log.info("no")
    log.warn("no")
    assert log.flush(timeout=5)
    assert log.current_file is None
    assert not (tmp_path / "logs").exists()
    log.close()


def test_get_log_caller_points_at_calling_code(tmp_path):
    log = _logger(tmp_path)

    def some_handler():
        return log.get_log_caller()

    caller = some_handler()
    assert "test_rolling_logger.py:" in caller
    assert caller.endswith("some_handler()")
    log.close()


def test_caller_cache_is_per_call_site():
    resolver = FrameCallerResolver()

    def site_a():
        return resolver.resolve()

    def site_b():
        return resolver.resolve()

    first = {site_a() for _ in range(5)}
    second = site_b()

    assert len(first) == 1
    assert first.pop() != second
    assert resolver.cache_size() == 2


def test_formatter_and_resolver_are_pluggable(tmp_path):
    class Fixed:
        def resolve(self):
            return "here:1 there()"

    class Plain(LineFormatter):
        def format(self, record):
            return f"{record.caller}|{record.message}\n"

    log = _logger(tmp_path, formatter=Plain(), caller_resolver=Fixed())
    log.info("hello")
    log.close()
    assert log.current_file.read_text() == "here:1 there()|hello\n"


def test_default_formatter_without_caller():
    record = LogRecord(timestamp=NOW, level=LogLevel.Warn, message="bare")
    assert LineFormatter().format(record) == "[2026-10-19T05:35:12.345Z] [WARN]: bare\n"


def test_context_manager_closes(tmp_path):
    with _logger(tmp_path) as log:
        log.info("inside")
    assert log.shutdown_state == ShutdownState.CLOSED
    assert log.current_file.read_text().endswith("inside\n")

    log.info("after close")
    assert log.current_file.read_text().count("\n") == 1


def test_close_is_idempotent(tmp_path):
    log = _logger(tmp_path)
    log.info("x")
    log.close()
    log.close()
    assert log.shutdown_state == ShutdownState.CLOSED


@pytest.mark.asyncio
async def test_aflush_and_aclose(tmp_path):
    log = _logger(tmp_path)
    log.info("from a coroutine")
    assert await log.aflush(timeout=5)
    assert log.current_file.read_text().endswith("from a coroutine\n")

    await log.aclose()
    assert log.shutdown_state == ShutdownState.CLOSED


@pytest.mark.asyncio
async def test_async_context_manager(tmp_path):
    async with _logger(tmp_path) as log:
        log.error("async body")
    assert log.shutdown_state == ShutdownState.CLOSED
    assert "[ERROR]" in log.current_file.read_text()


def test_size_rotation_through_logger(tmp_path):
    class Plain(LineFormatter):
        def format(self, record):
            return record.message + "\n"

    config = (
        LogConfig.with_defaults()
        .with_directory(tmp_path)
        .with_file_prefix("t-")
        .with_time_interval("year")
        .with_max_bytes(100)
    )
    log = Logger(config, clock=lambda: NOW, formatter=Plain(), install_handlers=False)
    for i in range(5):
        log.info(str(i) * 29)
    log.close()

    files = sorted(tmp_path.glob("t-*.log"))
    assert len(files) == 2
    assert sum(f.stat().st_size for f in files) == 150
    assert (tmp_path / "t-2026-10-19T05:35:12.log").read_text().count("\n") == 3
    assert (tmp_path / "t-2026-10-19T05:35:12.1.log").read_text().count("\n") == 2
