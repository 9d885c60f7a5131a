from __future__ import annotations

import ctypes
from ctypes import byref, c_void_p

from sqlitewrap.domain.ports.engine import NativeEngineProtocol
from sqlitewrap.domain.result_codes import ColumnType
from sqlitewrap.infra.engine.library import SQLITE_TRANSIENT, load_library


def _decode(value: bytes | None) -> str | None:
    if value is None:
        return None
    return value.decode("utf-8", errors="replace")


class SqliteNativeEngine(NativeEngineProtocol):
    """
    Назначение/ответственность:
        Тонкая обёртка над C API libsqlite3 через ctypes.
        Переводит str <-> UTF-8 и указатели <-> int, больше ничего не делает:
        ни блокировок, ни исключений — только нативные коды результата.
    """

    def __init__(self, libraryPath: str | None = None):
        self._lib = load_library(libraryPath)

    def version(self) -> str:
        return _decode(self._lib.sqlite3_libversion()) or ""

    # ---- connection -------------------------------------------------------

    def open(self, path: str, flags: int) -> tuple[int, int | None]:
        handle = c_void_p()
        rc = self._lib.sqlite3_open_v2(path.encode("utf-8"), byref(handle), int(flags), None)
        return rc, handle.value

    def close(self, db: int) -> int:
        # close_v2: незавершённые stmt не мешают закрытию, соединение станет "зомби" до их finalize.
        return self._lib.sqlite3_close_v2(db)

    def exec(self, db: int, sql: str) -> int:
        return self._lib.sqlite3_exec(db, sql.encode("utf-8"), None, None, None)

    def errmsg(self, db: int) -> str:
        return _decode(self._lib.sqlite3_errmsg(db)) or ""

    def errcode(self, db: int) -> int:
        return self._lib.sqlite3_errcode(db)

    def busy_timeout(self, db: int, ms: int) -> int:
        return self._lib.sqlite3_busy_timeout(db, int(ms))

    def changes(self, db: int) -> int:
        return self._lib.sqlite3_changes(db)

    def last_insert_rowid(self, db: int) -> int:
        return self._lib.sqlite3_last_insert_rowid(db)

    # ---- statements -------------------------------------------------------

    def prepare(self, db: int, sql: str) -> tuple[int, int | None, str]:
        data = sql.encode("utf-8")
        buf = ctypes.create_string_buffer(data)
        stmt = c_void_p()
        tail = c_void_p()
        rc = self._lib.sqlite3_prepare_v2(db, buf, -1, byref(stmt), byref(tail))

        offset = len(data)
        if tail.value:
            offset = tail.value - ctypes.addressof(buf)
        remaining = data[offset:].decode("utf-8", errors="replace")
        return rc, stmt.value, remaining

    def finalize(self, stmt: int) -> int:
        return self._lib.sqlite3_finalize(stmt)

    def reset(self, stmt: int) -> int:
        return self._lib.sqlite3_reset(stmt)

    def step(self, stmt: int) -> int:
        return self._lib.sqlite3_step(stmt)

    def clear_bindings(self, stmt: int) -> int:
        return self._lib.sqlite3_clear_bindings(stmt)

    # ---- binding ----------------------------------------------------------

    def bind_null(self, stmt: int, idx: int) -> int:
        return self._lib.sqlite3_bind_null(stmt, idx)

    def bind_int(self, stmt: int, idx: int, value: int) -> int:
        return self._lib.sqlite3_bind_int(stmt, idx, value)

    def bind_int64(self, stmt: int, idx: int, value: int) -> int:
        return self._lib.sqlite3_bind_int64(stmt, idx, value)

    def bind_double(self, stmt: int, idx: int, value: float) -> int:
        return self._lib.sqlite3_bind_double(stmt, idx, value)

    def bind_text(self, stmt: int, idx: int, value: str) -> int:
        data = value.encode("utf-8")
        return self._lib.sqlite3_bind_text(stmt, idx, data, len(data), SQLITE_TRANSIENT)

    def bind_blob(self, stmt: int, idx: int, value: bytes) -> int:
        data = bytes(value)
        return self._lib.sqlite3_bind_blob(stmt, idx, data, len(data), SQLITE_TRANSIENT)

    def bind_parameter_index(self, stmt: int, name: str) -> int:
        return self._lib.sqlite3_bind_parameter_index(stmt, name.encode("utf-8"))

    def bind_parameter_count(self, stmt: int) -> int:
        return self._lib.sqlite3_bind_parameter_count(stmt)

    def bind_parameter_name(self, stmt: int, idx: int) -> str | None:
        return _decode(self._lib.sqlite3_bind_parameter_name(stmt, idx))

    # ---- result columns ---------------------------------------------------

    def data_count(self, stmt: int) -> int:
        return self._lib.sqlite3_data_count(stmt)

    def column_count(self, stmt: int) -> int:
        return self._lib.sqlite3_column_count(stmt)

    def column_name(self, stmt: int, idx: int) -> str | None:
        return _decode(self._lib.sqlite3_column_name(stmt, idx))

    def column_decltype(self, stmt: int, idx: int) -> str | None:
        return _decode(self._lib.sqlite3_column_decltype(stmt, idx))

    def column_type(self, stmt: int, idx: int) -> int:
        return self._lib.sqlite3_column_type(stmt, idx)

    def column_bytes(self, stmt: int, idx: int) -> int:
        return self._lib.sqlite3_column_bytes(stmt, idx)

    def column_int(self, stmt: int, idx: int) -> int:
        return self._lib.sqlite3_column_int(stmt, idx)

    def column_int64(self, stmt: int, idx: int) -> int:
        return self._lib.sqlite3_column_int64(stmt, idx)

    def column_double(self, stmt: int, idx: int) -> float:
        return self._lib.sqlite3_column_double(stmt, idx)

    def column_text(self, stmt: int, idx: int) -> str | None:
        # column_bytes вызывается после column_text: длина в байтах уже преобразованного значения.
        ptr = self._lib.sqlite3_column_text(stmt, idx)
        if not ptr:
            return self._empty_or_null(stmt, idx, "")
        size = self._lib.sqlite3_column_bytes(stmt, idx)
        return ctypes.string_at(ptr, size).decode("utf-8", errors="replace")

    def column_blob(self, stmt: int, idx: int) -> bytes | None:
        ptr = self._lib.sqlite3_column_blob(stmt, idx)
        if not ptr:
            # Пустой blob тоже приходит как NULL-указатель.
            return self._empty_or_null(stmt, idx, b"")
        size = self._lib.sqlite3_column_bytes(stmt, idx)
        return ctypes.string_at(ptr, size)

    def _empty_or_null(self, stmt: int, idx: int, empty):
        if self._lib.sqlite3_column_type(stmt, idx) == ColumnType.NULL:
            return None
        return empty


__all__ = ["SqliteNativeEngine"]
