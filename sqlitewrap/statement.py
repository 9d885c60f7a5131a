from __future__ import annotations

import logging
import time
from typing import Any

from .binding import bind_value
from .database import Database
from .domain.result_codes import ResultCode
from .errors import PrepareError
from .loggingSetup import logEvent


class Statement:
    """
    Назначение/ответственность:
        Один скомпилированный оператор (Prepared Statement) над Database.

    Инварианты/гарантии:
        - finish() идемпотентен: нативный хендл финализируется ровно один раз;
        - prepare() сначала финализирует предыдущий хендл;
        - tail (неразобранный остаток скрипта) валиден, пока жив хендл того же скрипта;
        - каждый step/reset/finish увеличивает generation, что инвалидирует Row.

    Ошибки:
        PrepareError — конструктор с невалидным SQL или на закрытом соединении.
        Остальные операции возвращают нативные коды.
    """

    def __init__(self, db: Database, sql: str | None = None):
        self._db = db
        self._stmt: int | None = None
        self._sql: str | None = None
        self._tail = ""
        self._generation = 0
        self._bindings: dict[int, Any] = {}

        if sql is not None:
            # Текст ошибки читается под той же блокировкой, что и prepare.
            with db.locked():
                rc = self.prepare(sql)
                message = db.last_error() if rc != ResultCode.OK else None
            if message is not None:
                self.finish()
                raise PrepareError(message, status=rc, sql=sql)

    # ---- properties -------------------------------------------------------

    @property
    def database(self) -> Database:
        return self._db

    @property
    def sql(self) -> str | None:
        return self._sql

    @property
    def tail(self) -> str:
        return self._tail

    @property
    def is_prepared(self) -> bool:
        return self._stmt is not None

    @property
    def generation(self) -> int:
        return self._generation

    # ---- lifecycle --------------------------------------------------------

    def _compile(self, sql: str) -> tuple[ResultCode, int | None, str]:
        handle = self._db._require_handle()
        if handle is None:
            return ResultCode.MISUSE, None, ""

        start = time.monotonic()
        rc, stmt, tail = self._db._native_call(self._db.engine.prepare, handle, sql)
        self._db._trace("prepare", sql, start, rc)
        if rc != ResultCode.OK and stmt is not None:
            self._db._native_call(self._db.engine.finalize, stmt)
            stmt = None
        return ResultCode.from_native(rc), stmt, tail

    def _adopt(self, sql: str, stmt: int | None, tail: str) -> None:
        self._stmt = stmt
        self._sql = sql
        self._tail = tail if stmt is not None else ""
        self._bindings = {}
        self._generation += 1
        if stmt is not None:
            self._db._register(self)

    def prepare(self, sql: str) -> ResultCode:
        """
        Назначение:
            Компилирует sql (финализируя предыдущий хендл) и запоминает хвост скрипта.

        Выходные данные:
            ResultCode.OK или код ошибки; текст — Database.last_error().
        """
        self.finish()
        rc, stmt, tail = self._compile(sql)
        self._adopt(sql, stmt, tail)
        return rc

    def finish(self) -> ResultCode:
        """
        Назначение:
            Финализирует нативный хендл (если есть) и сбрасывает хвост скрипта.
            Повторный вызов — no-op с ResultCode.OK.
        """
        rc = ResultCode.OK
        if self._stmt is not None:
            stmt, self._stmt = self._stmt, None
            rc = ResultCode.from_native(self._db._native_call(self._db.engine.finalize, stmt))
            self._db._unregister(self)
            self._generation += 1
        self._tail = ""
        self._bindings = {}
        return rc

    def _detach(self) -> None:
        # Вызывается Database.disconnect() под парой блокировок.
        if self._stmt is not None:
            stmt, self._stmt = self._stmt, None
            self._db.engine.finalize(stmt)
            self._generation += 1
        self._tail = ""
        self._bindings = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.finish()

    def __del__(self) -> None:
        try:
            self.finish()
        except Exception as exc:
            logEvent(self._db.logger, logging.WARNING, None, "statement", f"finish() in __del__ failed: {exc}")

    # ---- execution --------------------------------------------------------

    def _no_statement(self) -> ResultCode:
        return self._db._fail_local("statement is not prepared")

    def step(self) -> ResultCode:
        if self._stmt is None:
            return self._no_statement()
        self._generation += 1
        return ResultCode.from_native(self._db._native_call(self._db.engine.step, self._stmt))

    def reset(self) -> ResultCode:
        """
        Назначение:
            Перематывает оператор для повторного выполнения без перекомпиляции.
            Привязанные значения сохраняются.
        """
        if self._stmt is None:
            return ResultCode.OK
        self._generation += 1
        return ResultCode.from_native(self._db._native_call(self._db.engine.reset, self._stmt))

    # ---- binding ----------------------------------------------------------

    def parameter_count(self) -> int:
        if self._stmt is None:
            return 0
        return self._db._native_call(self._db.engine.bind_parameter_count, self._stmt)

    def parameter_name(self, idx: int) -> str | None:
        if self._stmt is None:
            return None
        return self._db._native_call(self._db.engine.bind_parameter_name, self._stmt, idx)

    def parameter_index(self, name: str) -> int:
        """
        Назначение:
            Позиция именованного параметра; name включает маркер (':id', '@id', '$id').
            0 — параметр не найден.
        """
        if self._stmt is None:
            return 0
        return self._db._native_call(self._db.engine.bind_parameter_index, self._stmt, name)

    def bind(self, key: int | str, value: Any = None) -> ResultCode:
        """
        Назначение:
            Привязывает value к параметру по 1-based позиции (int) или имени (str).
            Без value привязывается NULL.

        Выходные данные:
            ResultCode.OK; RANGE — позиция вне диапазона или имя не найдено.
        """
        if self._stmt is None:
            return self._no_statement()
        idx = self.parameter_index(key) if isinstance(key, str) else int(key)
        return self._bind_position(self._stmt, idx, value)

    def _bind_position(self, stmt: int, idx: int, value: Any) -> ResultCode:
        rc = ResultCode.from_native(self._db._native_call(bind_value, self._db.engine, stmt, idx, value))
        if rc == ResultCode.OK:
            self._bindings[idx] = value
        elif rc == ResultCode.TOOBIG:
            self._db._fail_local(f"integer out of 64-bit range for parameter {idx}", rc)
        return rc

    def clear_bindings(self) -> ResultCode:
        if self._stmt is None:
            return ResultCode.OK
        self._bindings = {}
        return ResultCode.from_native(self._db._native_call(self._db.engine.clear_bindings, self._stmt))


__all__ = ["Statement"]
