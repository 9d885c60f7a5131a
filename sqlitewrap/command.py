from __future__ import annotations

import logging
from typing import Any

from .domain.result_codes import ResultCode
from .errors import BindError
from .loggingSetup import logEvent
from .statement import Statement


class Binder:
    """
    Назначение:
        Последовательная привязка значений начиная с позиции idx.
        Любой статус кроме OK превращается в BindError, чтобы ошибка
        не потерялась посреди цепочки.
    """

    def __init__(self, statement: Statement, idx: int = 1):
        self._statement = statement
        self._idx = idx

    @property
    def position(self) -> int:
        return self._idx

    def bind(self, value: Any) -> "Binder":
        rc = self._statement.bind(self._idx, value)
        if rc != ResultCode.OK:
            raise BindError(
                self._statement.database.last_error(),
                status=rc,
                position=self._idx,
                sql=self._statement.sql,
            )
        self._idx += 1
        return self


class Command(Statement):
    """
    Назначение/ответственность:
        Оператор без результирующих строк (INSERT/UPDATE/DELETE/DDL),
        в том числе скрипт из нескольких операторов через execute_all().
    """

    def binder(self, idx: int = 1) -> Binder:
        return Binder(self, idx)

    def execute(self) -> ResultCode:
        rc = self.step()
        if rc == ResultCode.DONE:
            return ResultCode.OK
        return rc

    def execute_all(self) -> ResultCode:
        """
        Назначение:
            Выполняет текущий оператор, затем по очереди все операторы из хвоста скрипта.

        Алгоритм:
            - компилируется следующий оператор из tail;
            - привязки старого оператора переносятся в новый: по имени параметра,
              для анонимных параметров — по той же позиции;
            - старый оператор финализируется, новый выполняется.

        Выходные данные:
            Первый статус, отличный от OK, либо OK, если выполнен весь скрипт.
            Хвост из пробелов и комментариев завершает выполнение.
        """
        rc = self.execute()
        while rc == ResultCode.OK and self._tail.strip():
            script = self._tail
            with self._db.locked():
                rc, stmt, tail = self._compile(script)
                if rc != ResultCode.OK:
                    message = self._db.last_error()
                    self.finish()
                    return self._db._fail_local(message, rc)
                if stmt is None:
                    break
                carried = self._transfer_bindings(stmt)
                self.finish()
                self._adopt(script, stmt, tail)
                self._bindings = carried
            rc = self.execute()
        return rc

    def _transfer_bindings(self, target: int) -> dict[int, Any]:
        engine = self._db.engine
        source = self._stmt
        bindings = dict(self._bindings)
        count = self._db._native_call(engine.bind_parameter_count, target)

        carried: dict[int, Any] = {}
        for idx, value in bindings.items():
            name = self._db._native_call(engine.bind_parameter_name, source, idx)
            if name:
                newIdx = self._db._native_call(engine.bind_parameter_index, target, name)
            elif idx <= count and self._db._native_call(engine.bind_parameter_name, target, idx) is None:
                newIdx = idx
            else:
                newIdx = 0
            if newIdx > 0:
                carried[newIdx] = value

        for idx, value in carried.items():
            rc = self._bind_position(target, idx, value)
            if rc != ResultCode.OK:
                logEvent(
                    self._db.logger, logging.WARNING, None, "command",
                    f"binding transfer failed at position {idx}: rc={rc}",
                )
        return carried


__all__ = ["Binder", "Command"]
