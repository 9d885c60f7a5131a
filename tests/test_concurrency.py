from __future__ import annotations

import multiprocessing
import sys
import threading
import time
from pathlib import Path

import pytest

from sqlitewrap.command import Command
from sqlitewrap.config import Settings
from sqlitewrap.database import Database
from sqlitewrap.domain.result_codes import ResultCode
from sqlitewrap.query import Query


def _settings(tmp_path: Path) -> Settings:
    return Settings(lock_dir=str(tmp_path / "locks"))


def _count(db: Database, sql: str = "SELECT count(*) FROM t;") -> int:
    with Query(db, sql) as query:
        return next(iter(query)).get_int(0)


def _insert_in_child(path: str, lockDir: str, value: int) -> None:
    db = Database.open(path, Settings(lock_dir=lockDir))
    rc = db.execute("INSERT INTO t(x) VALUES(%d);", value)
    db.disconnect()
    sys.exit(0 if rc == ResultCode.OK else 1)


def _fork_context():
    if "fork" not in multiprocessing.get_all_start_methods():
        pytest.skip("fork start method is not available")
    return multiprocessing.get_context("fork")


def test_threads_sharing_one_handle(tmp_path: Path):
    db = Database.open(str(tmp_path / "threads"), _settings(tmp_path))
    db.execute("CREATE TABLE t(worker INTEGER, n INTEGER);")
    errors: list[str] = []

    def worker(workerId: int) -> None:
        for n in range(50):
            with Command(db, "INSERT INTO t VALUES(?, ?);") as cmd:
                cmd.binder().bind(workerId).bind(n)
                rc = cmd.execute()
            if rc != ResultCode.OK:
                errors.append(f"{workerId}/{n}: rc={rc}")

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(30)

    assert errors == []
    assert _count(db) == 200
    assert _count(db, "SELECT count(DISTINCT worker) FROM t;") == 4


def test_threads_with_separate_handles_on_one_file(tmp_path: Path):
    setup = Database.open(str(tmp_path / "shared"), _settings(tmp_path))
    setup.execute("CREATE TABLE t(x INTEGER);")
    errors: list[str] = []

    def worker(offset: int) -> None:
        db = Database.open(str(tmp_path / "shared"), _settings(tmp_path))
        try:
            for n in range(25):
                rc = db.execute("INSERT INTO t VALUES(%d);", offset + n)
                if rc != ResultCode.OK:
                    errors.append(f"{offset + n}: {db.last_error()}")
        finally:
            db.disconnect()

    threads = [threading.Thread(target=worker, args=(i * 100,)) for i in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(30)

    assert errors == []
    assert _count(setup) == 75


def test_cross_process_write_waits_for_lock_holder(tmp_path: Path):
    ctx = _fork_context()
    db = Database.open(str(tmp_path / "procs"), _settings(tmp_path))
    db.execute("CREATE TABLE t(x INTEGER);")

    with db.locked():
        child = ctx.Process(target=_insert_in_child, args=(str(tmp_path / "procs"), str(tmp_path / "locks"), 7))
        child.start()
        time.sleep(0.5)
        assert child.is_alive()
        assert _count(db) == 0

    child.join(30)
    assert child.exitcode == 0
    assert _count(db) == 1


def test_processes_serialize_writes(tmp_path: Path):
    ctx = _fork_context()
    db = Database.open(str(tmp_path / "many"), _settings(tmp_path))
    db.execute("CREATE TABLE t(x INTEGER);")

    children = [
        ctx.Process(target=_insert_in_child, args=(str(tmp_path / "many"), str(tmp_path / "locks"), i))
        for i in range(6)
    ]
    for child in children:
        child.start()
    for child in children:
        child.join(30)

    assert [child.exitcode for child in children] == [0] * 6
    assert _count(db) == 6
