from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from sqlitewrap.command import Command
from sqlitewrap.config import Settings
from sqlitewrap.database import MEMORY_PATH, Database
from sqlitewrap.domain.result_codes import ResultCode
from sqlitewrap.errors import DatabaseConnectionError
from sqlitewrap.infra.engine.sqlite_native import SqliteNativeEngine
from sqlitewrap.query import Query


def _settings(tmp_path: Path) -> Settings:
    return Settings(lock_dir=str(tmp_path / "locks"))


def _open_db(tmp_path: Path, name: str = "test", **kwargs) -> Database:
    return Database.open(str(tmp_path / name), _settings(tmp_path), **kwargs)


def test_connect_appends_extension_once(tmp_path: Path):
    db = Database(_settings(tmp_path))
    assert db.connect(str(tmp_path / "testDB")) == ResultCode.OK
    assert db.path == str(tmp_path / "testDB.sqlite")

    assert db.connect(db.path) == ResultCode.OK
    assert db.path == str(tmp_path / "testDB.sqlite")
    db.disconnect()

    assert (tmp_path / "testDB.sqlite").exists()
    assert not (tmp_path / "testDB.sqlite.sqlite").exists()


def test_normalize_path_is_absolute(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    db = Database(_settings(tmp_path))
    assert db.normalize_path("relative") == os.path.join(str(tmp_path), "relative.sqlite")
    assert db.normalize_path(MEMORY_PATH) == MEMORY_PATH


def test_lock_path_derived_from_normalized_path(tmp_path: Path):
    first = _open_db(tmp_path, "shared")
    second = _open_db(tmp_path, "shared.sqlite")
    try:
        assert first.lock_path == second.lock_path
        name = os.path.basename(first.lock_path)
        expected = "sqlite3-db-" + str(tmp_path / "shared.sqlite").replace("/", "-").replace(".", "-") + ".lock"
        assert name == expected
        assert os.path.dirname(first.lock_path) == str(tmp_path / "locks")
    finally:
        first.disconnect()
        second.disconnect()


def test_disconnect_is_idempotent(tmp_path: Path):
    db = _open_db(tmp_path)
    db.disconnect()
    db.disconnect()

    assert not db.is_connected
    assert db.path is None
    assert db.lock_path is None
    assert db.execute("SELECT 1;") == ResultCode.MISUSE
    assert db.last_error() == "database is not connected"


def test_open_failure_raises_connection_error(tmp_path: Path):
    with pytest.raises(DatabaseConnectionError) as excInfo:
        Database.open(str(tmp_path / "missing" / "db"), _settings(tmp_path))

    assert excInfo.value.status == ResultCode.CANTOPEN
    assert excInfo.value.code == "CONNECTION_ERROR"
    assert excInfo.value.details["path"] == str(tmp_path / "missing" / "db")


def test_connect_failure_returns_status(tmp_path: Path):
    db = Database(_settings(tmp_path))
    rc = db.connect(str(tmp_path / "missing" / "db"))

    assert rc == ResultCode.CANTOPEN
    assert not db.is_connected
    assert db.last_error()


def test_busy_timeout_is_applied_only_when_configured(tmp_path: Path, monkeypatch):
    calls: list[int] = []
    realBusyTimeout = SqliteNativeEngine.busy_timeout

    def recordingBusyTimeout(self, handle, ms):
        calls.append(ms)
        return realBusyTimeout(self, handle, ms)

    monkeypatch.setattr(SqliteNativeEngine, "busy_timeout", recordingBusyTimeout)

    with Database.open(str(tmp_path / "plain"), _settings(tmp_path)):
        pass
    assert calls == []

    settings = Settings(lock_dir=str(tmp_path / "locks"), busy_timeout_ms=250)
    with Database.open(str(tmp_path / "waiting"), settings) as db:
        assert db.execute("CREATE TABLE t(x);") == ResultCode.OK
    assert calls == [250]


def test_memory_database_has_no_lock_file(tmp_path: Path):
    with Database.open(MEMORY_PATH, _settings(tmp_path)) as db:
        assert db.path == MEMORY_PATH
        assert db.lock_path is None
        assert db.execute("CREATE TABLE t(x);") == ResultCode.OK
        assert db.check_table_exists("t")


def test_execute_formats_arguments(tmp_path: Path):
    with _open_db(tmp_path) as db:
        assert db.execute("CREATE TABLE t(id INTEGER, name TEXT);") == ResultCode.OK
        assert db.execute("INSERT INTO t VALUES(%d, '%s');", 7, "seven") == ResultCode.OK
        assert db.changes() == 1
        assert db.last_insert_rowid() == 1
        assert db.check_key_exists("t", "name", "seven")


def test_execute_reports_engine_error(tmp_path: Path):
    with _open_db(tmp_path) as db:
        rc = db.execute("INSERT INTO nowhere VALUES(1);")
        assert rc == ResultCode.ERROR
        assert "no such table" in db.last_error()
        assert db.error_code() == ResultCode.ERROR


def test_check_table_exists(tmp_path: Path):
    with _open_db(tmp_path) as db:
        db.execute("CREATE TABLE ccc(id INTEGER PRIMARY KEY);")
        assert db.check_table_exists("ccc") is True
        assert db.check_table_exists("cccc") is False


def test_check_key_exists_binds_value(tmp_path: Path):
    tricky = "O'Brien'; DROP TABLE ccc; --"
    with _open_db(tmp_path) as db:
        db.execute("CREATE TABLE ccc(id INTEGER PRIMARY KEY, name TEXT);")
        with Command(db, "INSERT INTO ccc(name) VALUES(?);") as cmd:
            cmd.bind(1, tricky)
            assert cmd.execute() == ResultCode.OK

        assert db.check_key_exists("ccc", "name", tricky) is True
        assert db.check_key_exists("ccc", "name", "O'Brien") is False
        assert db.check_table_exists("ccc") is True


def test_check_key_exists_missing_table_is_false(tmp_path: Path, caplog):
    with _open_db(tmp_path) as db:
        caplog.set_level(logging.WARNING, logger="sqlitewrap")
        assert db.check_key_exists("nope", "name", "x") is False
        assert "prepare failed" in caplog.text


def test_disconnect_finalizes_live_statements(tmp_path: Path):
    db = _open_db(tmp_path)
    query = Query(db, "SELECT 1;")
    assert query.is_prepared

    db.disconnect()

    assert not query.is_prepared
    assert query.finish() == ResultCode.OK


def test_show_sql_logs_statements(tmp_path: Path, caplog):
    logger = logging.getLogger("tests.sqlitewrap.trace")
    caplog.set_level(logging.INFO, logger="tests.sqlitewrap.trace")
    with _open_db(tmp_path, logger=logger, showSql=True) as db:
        db.execute("CREATE   TABLE\n t(x);")

    assert 'sql="CREATE TABLE t(x);"' in caplog.text
    assert "rc=0" in caplog.text


def test_garbage_collection_releases_lock_file(tmp_path: Path):
    fcntl = pytest.importorskip("fcntl")
    db = _open_db(tmp_path)
    lockPath = db.lock_path
    with db.locked():
        pass
    del db

    fd = os.open(lockPath, os.O_RDWR)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)
