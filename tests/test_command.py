from __future__ import annotations

from pathlib import Path

import pytest

from sqlitewrap.command import Command
from sqlitewrap.config import Settings
from sqlitewrap.database import Database
from sqlitewrap.domain.result_codes import ResultCode
from sqlitewrap.errors import BindError
from sqlitewrap.query import Query


def _open_db(tmp_path: Path) -> Database:
    db = Database.open(str(tmp_path / "cmd"), Settings(lock_dir=str(tmp_path / "locks")))
    db.execute(
        """
        CREATE TABLE ccc (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            phone TEXT NOT NULL,
            address TEXT,
            UNIQUE(name, phone));
        """
    )
    return db


def _rows(db: Database, sql: str) -> list[tuple]:
    with Query(db, sql) as query:
        return [row.values() for row in query]


def test_execute_maps_done_to_ok(tmp_path: Path):
    db = _open_db(tmp_path)
    with Command(db, "INSERT INTO ccc VALUES(:id, :name, :phone, :address);") as cmd:
        cmd.bind(":id", 1)
        cmd.bind(":name", "Name1")
        cmd.bind(":phone", "Phone1")
        cmd.bind(":address", "Address1")
        assert cmd.execute() == ResultCode.OK

    assert _rows(db, "SELECT * FROM ccc;") == [(1, "Name1", "Phone1", "Address1")]


def test_execute_returns_row_for_select(tmp_path: Path):
    db = _open_db(tmp_path)
    with Command(db, "SELECT 1;") as cmd:
        assert cmd.execute() == ResultCode.ROW


def test_execute_returns_constraint_violation(tmp_path: Path):
    db = _open_db(tmp_path)
    db.execute("INSERT INTO ccc VALUES(1, 'n', 'p', NULL);")
    with Command(db, "INSERT INTO ccc VALUES(2, 'n', 'p', NULL);") as cmd:
        assert cmd.execute() == ResultCode.CONSTRAINT
    assert "UNIQUE" in db.last_error()


def test_execute_all_forwards_named_bindings(tmp_path: Path):
    db = _open_db(tmp_path)
    script = (
        "INSERT INTO ccc(name, phone, address) VALUES(:name, 'Phone1', :address);"
        "INSERT INTO ccc(name, phone, address) VALUES(:name, 'Phone2', :address);\n"
        "INSERT INTO ccc(address, name, phone) VALUES(:address, :name, 'Phone3');"
    )
    with Command(db, script) as cmd:
        cmd.bind(":name", "Batch")
        cmd.bind(":address", "Street")
        assert cmd.execute_all() == ResultCode.OK

    assert _rows(db, "SELECT name, phone, address FROM ccc ORDER BY phone;") == [
        ("Batch", "Phone1", "Street"),
        ("Batch", "Phone2", "Street"),
        ("Batch", "Phone3", "Street"),
    ]


def test_execute_all_forwards_positional_bindings(tmp_path: Path):
    db = _open_db(tmp_path)
    db.execute("CREATE TABLE t(a, b);")
    with Command(db, "INSERT INTO t VALUES(?, 1); INSERT INTO t VALUES(?, 2); INSERT INTO t VALUES(3, 3);") as cmd:
        cmd.binder().bind("x")
        assert cmd.execute_all() == ResultCode.OK

    assert _rows(db, "SELECT a, b FROM t ORDER BY b;") == [("x", 1), ("x", 2), (3, 3)]


def test_execute_all_stops_at_first_failure(tmp_path: Path):
    db = _open_db(tmp_path)
    script = (
        "INSERT INTO ccc VALUES(1, 'a', 'b', NULL);"
        "INSERT INTO missing VALUES(1);"
        "INSERT INTO ccc VALUES(2, 'c', 'd', NULL);"
    )
    with Command(db, script) as cmd:
        assert cmd.execute_all() == ResultCode.ERROR
        assert not cmd.is_prepared

    assert "no such table" in db.last_error()
    assert _rows(db, "SELECT id FROM ccc;") == [(1,)]


def test_execute_all_stops_at_failing_step(tmp_path: Path):
    db = _open_db(tmp_path)
    script = (
        "INSERT INTO ccc VALUES(1, 'a', 'b', NULL);"
        "INSERT INTO ccc VALUES(1, 'dup', 'dup', NULL);"
        "INSERT INTO ccc VALUES(3, 'c', 'd', NULL);"
    )
    with Command(db, script) as cmd:
        assert cmd.execute_all() == ResultCode.CONSTRAINT

    assert _rows(db, "SELECT id FROM ccc;") == [(1,)]


def test_execute_all_ignores_trailing_whitespace_and_comments(tmp_path: Path):
    db = _open_db(tmp_path)
    with Command(db, "INSERT INTO ccc VALUES(1, 'a', 'b', NULL);\n  -- done\n") as cmd:
        assert cmd.execute_all() == ResultCode.OK

    assert _rows(db, "SELECT count(*) FROM ccc;") == [(1,)]


def test_binder_chains_positions(tmp_path: Path):
    db = _open_db(tmp_path)
    db.execute("INSERT INTO ccc VALUES(1, 'Name1', 'Phone1', 'Address1');")
    with Command(db, "UPDATE ccc SET name = ?, phone = ?, address = ? WHERE id = ?;") as cmd:
        binder = cmd.binder().bind("Changed Name1").bind("Changed Phone1").bind("Changed Address1").bind(1)
        assert binder.position == 5
        assert cmd.execute() == ResultCode.OK

    assert _rows(db, "SELECT * FROM ccc WHERE id = 1;") == [(1, "Changed Name1", "Changed Phone1", "Changed Address1")]


def test_binder_raises_bind_error(tmp_path: Path):
    db = _open_db(tmp_path)
    with Command(db, "UPDATE ccc SET name = ? WHERE id = ?;") as cmd:
        with pytest.raises(BindError) as excInfo:
            cmd.binder(2).bind(1).bind("overflow")

    assert excInfo.value.status == ResultCode.RANGE
    assert excInfo.value.details["position"] == 3
    assert excInfo.value.code == "BIND_ERROR"
