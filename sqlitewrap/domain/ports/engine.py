from __future__ import annotations

from typing import Protocol


class NativeEngineProtocol(Protocol):
    """
    Назначение:
        Порт к встраиваемому движку: ровно то подмножество C API, которое нужно
        слою доступа (open/close, prepare/step/finalize/reset, bind по индексу,
        типизированное чтение колонок, текст последней ошибки).
    Взаимодействия:
        Database/Statement вызывают порт только под парой блокировок.
    Ограничения:
        Хендлы (db, stmt) — непрозрачные int-адреса; 0/None означает отсутствие хендла.
        Все методы возвращают нативные коды результата, исключений не бросают.
    """

    def version(self) -> str: ...

    def open(self, path: str, flags: int) -> tuple[int, int | None]: ...
    def close(self, db: int) -> int: ...
    def exec(self, db: int, sql: str) -> int: ...
    def errmsg(self, db: int) -> str: ...
    def errcode(self, db: int) -> int: ...
    def busy_timeout(self, db: int, ms: int) -> int: ...
    def changes(self, db: int) -> int: ...
    def last_insert_rowid(self, db: int) -> int: ...

    def prepare(self, db: int, sql: str) -> tuple[int, int | None, str]:
        """
        Контракт (вход/выход):
            - Вход: SQL-текст (возможно, несколько операторов через ';').
            - Выход: (rc, stmt, tail), где tail — ещё не разобранный остаток текста.
        """
        ...

    def finalize(self, stmt: int) -> int: ...
    def reset(self, stmt: int) -> int: ...
    def step(self, stmt: int) -> int: ...
    def clear_bindings(self, stmt: int) -> int: ...

    def bind_null(self, stmt: int, idx: int) -> int: ...
    def bind_int(self, stmt: int, idx: int, value: int) -> int: ...
    def bind_int64(self, stmt: int, idx: int, value: int) -> int: ...
    def bind_double(self, stmt: int, idx: int, value: float) -> int: ...
    def bind_text(self, stmt: int, idx: int, value: str) -> int: ...
    def bind_blob(self, stmt: int, idx: int, value: bytes) -> int: ...
    def bind_parameter_index(self, stmt: int, name: str) -> int: ...
    def bind_parameter_count(self, stmt: int) -> int: ...
    def bind_parameter_name(self, stmt: int, idx: int) -> str | None: ...

    def data_count(self, stmt: int) -> int: ...
    def column_count(self, stmt: int) -> int: ...
    def column_name(self, stmt: int, idx: int) -> str | None: ...
    def column_decltype(self, stmt: int, idx: int) -> str | None: ...
    def column_type(self, stmt: int, idx: int) -> int: ...
    def column_bytes(self, stmt: int, idx: int) -> int: ...
    def column_int(self, stmt: int, idx: int) -> int: ...
    def column_int64(self, stmt: int, idx: int) -> int: ...
    def column_double(self, stmt: int, idx: int) -> float: ...
    def column_text(self, stmt: int, idx: int) -> str | None: ...
    def column_blob(self, stmt: int, idx: int) -> bytes | None: ...


__all__ = ["NativeEngineProtocol"]
