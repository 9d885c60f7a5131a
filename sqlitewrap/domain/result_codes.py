from __future__ import annotations

from enum import IntEnum


class ResultCode(IntEnum):
    """
    Назначение:
        Первичные коды результата движка SQLite (sqlite3.h).
        Значения совпадают с нативными, поэтому ResultCode сравним с int.
    """

    OK = 0
    ERROR = 1
    INTERNAL = 2
    PERM = 3
    ABORT = 4
    BUSY = 5
    LOCKED = 6
    NOMEM = 7
    READONLY = 8
    INTERRUPT = 9
    IOERR = 10
    CORRUPT = 11
    NOTFOUND = 12
    FULL = 13
    CANTOPEN = 14
    PROTOCOL = 15
    EMPTY = 16
    SCHEMA = 17
    TOOBIG = 18
    CONSTRAINT = 19
    MISMATCH = 20
    MISUSE = 21
    NOLFS = 22
    AUTH = 23
    FORMAT = 24
    RANGE = 25
    NOTADB = 26
    NOTICE = 27
    WARNING = 28
    ROW = 100
    DONE = 101

    @classmethod
    def from_native(cls, rc: int) -> "ResultCode | int":
        """
        Назначение:
            Приводит нативный код к ResultCode.
            Расширенные коды сводятся к первичному (младший байт).
        """
        try:
            return cls(rc)
        except ValueError:
            pass
        try:
            return cls(rc & 0xFF)
        except ValueError:
            return rc

    @property
    def is_error(self) -> bool:
        return self not in (ResultCode.OK, ResultCode.ROW, ResultCode.DONE)


class ColumnType(IntEnum):
    """
    Назначение:
        Классы хранения значения колонки в текущей строке (sqlite3_column_type).
    """

    INTEGER = 1
    FLOAT = 2
    TEXT = 3
    BLOB = 4
    NULL = 5


class OpenFlag(IntEnum):
    READONLY = 0x00000001
    READWRITE = 0x00000002
    CREATE = 0x00000004
    URI = 0x00000040
    NOMUTEX = 0x00008000
    FULLMUTEX = 0x00010000


DEFAULT_OPEN_FLAGS = OpenFlag.READWRITE | OpenFlag.CREATE

RETRYABLE_CODES = frozenset({ResultCode.BUSY, ResultCode.LOCKED})


__all__ = ["ResultCode", "ColumnType", "OpenFlag", "DEFAULT_OPEN_FLAGS", "RETRYABLE_CODES"]
