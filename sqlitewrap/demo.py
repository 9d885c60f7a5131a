from __future__ import annotations

import logging
from typing import Callable

from .command import Command
from .database import Database
from .domain.result_codes import ResultCode
from .loggingSetup import logEvent
from .query import Query

CCC_SCHEMA = """
    CREATE TABLE ccc (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        phone TEXT NOT NULL,
        address TEXT,
        UNIQUE(name, phone));
"""

CCC_ROWS = [
    (1, "Name1", "Phone1", "Address1"),
    (2, "Name2", "Phone2", "Address2"),
]


def formatRow(values) -> str:
    parts = []
    for value in values:
        if value is None:
            parts.append("NULL")
        elif isinstance(value, bytes):
            parts.append(value.hex())
        else:
            parts.append(str(value))
    return "\t".join(parts)


def printTable(db: Database, echo: Callable[[str], None]) -> None:
    query = Query(db, "SELECT * FROM ccc;")
    with query:
        iterator = query.begin()
        while iterator != query.end():
            row = iterator.row
            echo(formatRow(row.get_columns(0, 1, 2, 3, types=(int, str, str, str))))
            iterator.advance()


def runDemo(db: Database, echo: Callable[[str], None], runId: str | None = None) -> int:
    """
    Назначение:
        Сценарий-пример над таблицей ccc: создание, вставка по именованным
        параметрам, выборка, UPDATE по позиционным параметрам, проверки
        существования таблицы и ключа.

    Выходные данные:
        0 — сценарий выполнен; 2 — ошибка на одном из шагов (текст в echo и логе).
    """
    rc = db.execute("DROP TABLE IF EXISTS ccc;")
    if rc == ResultCode.OK:
        rc = db.execute(CCC_SCHEMA)
    if rc != ResultCode.OK:
        echo(f"ERROR: schema: {db.last_error()}")
        return 2

    for row in CCC_ROWS:
        with Command(db, "INSERT INTO ccc VALUES(:id, :name, :phone, :address);") as cmd:
            for key, value in zip((":id", ":name", ":phone", ":address"), row):
                cmd.bind(key, value)
            rc = cmd.execute()
        if rc != ResultCode.OK:
            echo(f"ERROR: insert: {db.last_error()}")
            return 2
    printTable(db, echo)

    with Command(db, "UPDATE ccc SET name = ?, phone = ?, address = ? WHERE id = ?;") as cmd:
        cmd.binder().bind("Changed Name1").bind("Changed Phone1").bind("Changed Address1").bind(1)
        rc = cmd.execute()
    if rc != ResultCode.OK:
        echo(f"ERROR: update: {db.last_error()}")
        return 2

    for row in Query(db, "SELECT * FROM ccc;"):
        echo(formatRow(row.values()))

    echo(f"Table: ccc  - {db.check_table_exists('ccc')}")
    echo(f"Table: cccc - {db.check_table_exists('cccc')}")
    echo(f"Table key is exists: {db.check_key_exists('ccc', 'name', 'Name1')}")
    echo(f"Table key is exists: {db.check_key_exists('ccc', 'name', 'Name2')}")

    logEvent(db.logger, logging.INFO, runId, "demo", "Demo scenario finished")
    return 0


__all__ = ["CCC_ROWS", "CCC_SCHEMA", "formatRow", "printTable", "runDemo"]
