import os
from datetime import datetime, timezone

import pytest

import file_handles
from file_handles import FileHandleManager
from log_errors import DirectoryError, FileOpenError, WriteError

OPENED_AT = datetime(2026, 10, 19, 5, 35, 12, 345000, tzinfo=timezone.utc)


def _manager(tmp_path, prefix="t-"):
    return FileHandleManager(tmp_path / "logs", prefix, clock=lambda: OPENED_AT)


def test_open_new_creates_directory_and_timestamped_file(tmp_path):
    manager = _manager(tmp_path)
    active = manager.open_new()

    assert (tmp_path / "logs").is_dir()
    assert active.path == tmp_path / "logs" / "t-2026-10-19T05:35:12.log"
    assert active.path.exists()
    assert active.bytes_written == 0
    assert active.opened_at == OPENED_AT
    manager.close()


def test_nested_directory_is_created(tmp_path):
    manager = FileHandleManager(tmp_path / "a" / "b", "x-", clock=lambda: OPENED_AT)
    manager.open_new()
    assert (tmp_path / "a" / "b").is_dir()
    manager.close()


def test_directory_path_occupied_by_file_raises(tmp_path):
    (tmp_path / "logs").write_text("not a directory")
    with pytest.raises(DirectoryError):
        _manager(tmp_path).open_new()


def test_unwritable_directory_raises(tmp_path, monkeypatch):
    monkeypatch.setattr(file_handles.os, "access", lambda _path, _mode: False)
    with pytest.raises(DirectoryError):
        _manager(tmp_path).open_new()


def test_open_failure_raises_file_open_error(tmp_path, monkeypatch):
    def denied(*_args, **_kwargs):
        raise PermissionError(13, "Permission denied")

    manager = _manager(tmp_path)
    manager.ensure_directory()
    monkeypatch.setattr(file_handles.os, "open", denied)

    with pytest.raises(FileOpenError):
        manager.open_new()
    assert manager.active_file is None


def test_write_appends_and_counts_bytes(tmp_path):
    manager = _manager(tmp_path)
    active = manager.open_new()

    assert manager.write(b"hello\n") == 6
    manager.write("héllo\n".encode("utf-8"))

    assert active.bytes_written == 13
    assert active.path.read_bytes() == "hello\nhéllo\n".encode("utf-8")
    manager.close()


def test_write_without_open_file_raises(tmp_path):
    with pytest.raises(WriteError):
        _manager(tmp_path).write(b"x\n")


def test_write_after_close_raises_and_keeps_count(tmp_path):
    manager = _manager(tmp_path)
    active = manager.open_new()
    manager.write(b"abc\n")
    manager.close()

    with pytest.raises(WriteError):
        manager.write(b"more\n")
    assert active.bytes_written == 4


def test_close_is_idempotent(tmp_path):
    manager = _manager(tmp_path)
    manager.close()
    manager.open_new()
    manager.close()
    manager.close()
    assert manager.active_file.closed


def test_close_syncs_to_disk(tmp_path, monkeypatch):
    synced = []
    real_fsync = os.fsync

    def spy_fsync(fd):
        synced.append(fd)
        real_fsync(fd)

    monkeypatch.setattr(file_handles.os, "fsync", spy_fsync)
    manager = _manager(tmp_path)
    manager.open_new()
    manager.write(b"data\n")
    manager.close()
    assert len(synced) == 1


def test_open_new_while_open_is_refused(tmp_path):
    manager = _manager(tmp_path)
    manager.open_new()
    with pytest.raises(FileOpenError):
        manager.open_new()
    manager.close()


def test_rotate_closes_old_before_opening_new(tmp_path):
    manager = _manager(tmp_path)
    first = manager.open_new()
    manager.write(b"one\n")

    second = manager.rotate()

    assert first.closed
    assert not second.closed
    assert second.path != first.path
    assert second.path.name == "t-2026-10-19T05:35:12.1.log"
    assert second.bytes_written == 0
    manager.write(b"two\n")
    manager.close()

    assert first.path.read_bytes() == b"one\n"
    assert second.path.read_bytes() == b"two\n"


def test_existing_files_are_never_overwritten(tmp_path):
    logs = tmp_path / "logs"
    logs.mkdir()
    (logs / "t-2026-10-19T05:35:12.log").write_bytes(b"previous run\n")
    (logs / "t-2026-10-19T05:35:12.1.log").write_bytes(b"previous rotation\n")

    manager = _manager(tmp_path)
    active = manager.open_new()
    manager.write(b"new run\n")
    manager.close()

    assert active.path.name == "t-2026-10-19T05:35:12.2.log"
    assert (logs / "t-2026-10-19T05:35:12.log").read_bytes() == b"previous run\n"
    assert (logs / "t-2026-10-19T05:35:12.1.log").read_bytes() == b"previous rotation\n"


def test_file_name_uses_utc_seconds(tmp_path):
    manager = _manager(tmp_path, prefix="api_")
    assert manager.file_name(OPENED_AT) == "api_2026-10-19T05:35:12.log"
    assert manager.file_name(OPENED_AT, attempt=3) == "api_2026-10-19T05:35:12.3.log"
