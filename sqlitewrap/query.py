from __future__ import annotations

from typing import Any, Iterator, Optional, Sequence

from .domain.result_codes import ColumnType, ResultCode
from .errors import RowExpiredError, StepError
from .statement import Statement

_READERS = {
    int: "get_int64",
    float: "get_double",
    str: "get_text",
    bytes: "get_blob",
}


class Row:
    """
    Назначение/ответственность:
        Представление текущей строки результата (не копия).

    Инварианты/гарантии:
        - валидно только до следующего step/reset/finish оператора;
        - после этого любое чтение бросает RowExpiredError;
        - приведение типов — по правилам движка (числа конвертируются,
          text/blob в числа — как получится), строгой проверки типа нет.
    """

    def __init__(self, query: "Query"):
        self._query = query
        self._generation = query.generation

    @property
    def is_valid(self) -> bool:
        return self._query.is_prepared and self._query.generation == self._generation

    def _call(self, method: str, *args: Any) -> Any:
        if not self.is_valid:
            raise RowExpiredError(
                "row is no longer valid: the cursor has moved",
                sql=self._query.sql,
            )
        db = self._query.database
        return db._native_call(getattr(db.engine, method), self._query._stmt, *args)

    def data_count(self) -> int:
        return self._call("data_count")

    def column_type(self, idx: int) -> ColumnType:
        return ColumnType(self._call("column_type", idx))

    def column_bytes(self, idx: int) -> int:
        return self._call("column_bytes", idx)

    def get_int(self, idx: int) -> int:
        return self._call("column_int", idx)

    def get_int64(self, idx: int) -> int:
        return self._call("column_int64", idx)

    def get_double(self, idx: int) -> float:
        return self._call("column_double", idx)

    def get_text(self, idx: int) -> str | None:
        return self._call("column_text", idx)

    def get_blob(self, idx: int) -> bytes | None:
        return self._call("column_blob", idx)

    def get_value(self, idx: int) -> Any:
        """
        Назначение:
            Значение колонки в естественном для Python типе по её фактическому типу хранения.
        """
        kind = self.column_type(idx)
        if kind == ColumnType.NULL:
            return None
        if kind == ColumnType.INTEGER:
            return self.get_int64(idx)
        if kind == ColumnType.FLOAT:
            return self.get_double(idx)
        if kind == ColumnType.BLOB:
            return self.get_blob(idx)
        return self.get_text(idx)

    def get(self, idx: int, type_: Optional[type] = None) -> Any:
        """
        Назначение:
            Чтение колонки с запрошенным типом (int, float, str, bytes).
            Без type_ — как get_value().

        Ошибки:
            TypeError — неподдерживаемый тип.
        """
        if type_ is None:
            return self.get_value(idx)
        reader = _READERS.get(type_)
        if reader is None:
            raise TypeError(f"Unsupported column type: {type_!r}")
        return getattr(self, reader)(idx)

    def get_columns(self, *idxs: int, types: Optional[Sequence[Optional[type]]] = None) -> tuple[Any, ...]:
        """
        Назначение:
            Несколько колонок за один вызов, позиционно.

        Входные данные:
            idxs: int
                Индексы колонок (с нуля).
            types: Sequence[type] | None
                Типы для каждого индекса; None — естественные типы.
        """
        if types is None:
            return tuple(self.get_value(idx) for idx in idxs)
        if len(types) != len(idxs):
            raise ValueError(f"Expected {len(idxs)} types, got {len(types)}")
        return tuple(self.get(idx, type_) for idx, type_ in zip(idxs, types))

    def getter(self, idx: int = 0) -> "RowReader":
        return RowReader(self, idx)

    def values(self) -> tuple[Any, ...]:
        return tuple(self.get_value(idx) for idx in range(self.data_count()))

    def __len__(self) -> int:
        return self.data_count()

    def __getitem__(self, idx: int) -> Any:
        return self.get_value(idx)


class RowReader:
    """
    Назначение:
        Последовательное чтение колонок строки: каждый read() сдвигает позицию на одну колонку.
    """

    def __init__(self, row: Row, idx: int = 0):
        self._row = row
        self._idx = idx

    @property
    def position(self) -> int:
        return self._idx

    def read(self, type_: Optional[type] = None) -> Any:
        value = self._row.get(self._idx, type_)
        self._idx += 1
        return value


class QueryIterator:
    """
    Назначение/ответственность:
        Однопроходный курсор по строкам Query.

    Инварианты/гарантии:
        - состояние — результат последнего step (ROW или DONE);
        - два итератора равны, если оба исчерпаны (сравнение с end());
        - в памяти только текущая строка.
    """

    def __init__(self, query: Optional["Query"] = None, status: ResultCode = ResultCode.DONE):
        self._query = query
        self._status = status
        self._fresh = True

    @property
    def status(self) -> ResultCode:
        return self._status

    @property
    def exhausted(self) -> bool:
        return self._status == ResultCode.DONE

    def advance(self) -> "QueryIterator":
        if self.exhausted or self._query is None:
            return self
        self._status = self._query._step_checked()
        return self

    @property
    def row(self) -> Row:
        if self.exhausted or self._query is None:
            raise StepError("cursor is exhausted", status=ResultCode.DONE)
        return Row(self._query)

    def current(self) -> Row:
        return self.row

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryIterator):
            return NotImplemented
        return self.exhausted and other.exhausted

    __hash__ = None  # type: ignore[assignment]

    def __iter__(self) -> "QueryIterator":
        return self

    def __next__(self) -> Row:
        if self._fresh:
            self._fresh = False
        else:
            self.advance()
        if self.exhausted:
            raise StopIteration
        return self.row


class Query(Statement):
    """
    Назначение/ответственность:
        Оператор, возвращающий строки; ленивый однопроходный курсор.

    Пример:
        for row in Query(db, "SELECT id, name FROM ccc;"):
            row.get_int(0), row.get_text(1)

    Ошибки:
        StepError — begin()/advance() получили статус, отличный от ROW/DONE.
    """

    def _step_checked(self) -> ResultCode:
        with self._db.locked():
            rc = self.step()
            if rc in (ResultCode.ROW, ResultCode.DONE):
                return rc
            message = self._db.last_error()
        raise StepError(message, status=rc, sql=self._sql)

    def begin(self) -> QueryIterator:
        return QueryIterator(self, self._step_checked())

    def end(self) -> QueryIterator:
        return QueryIterator()

    def __iter__(self) -> Iterator[Row]:
        self.reset()
        return self.begin()

    # ---- result metadata ---------------------------------------------------

    def column_count(self) -> int:
        if self._stmt is None:
            return 0
        return self._db._native_call(self._db.engine.column_count, self._stmt)

    def column_name(self, idx: int) -> str | None:
        if self._stmt is None:
            return None
        return self._db._native_call(self._db.engine.column_name, self._stmt, idx)

    def column_decl_type(self, idx: int) -> str | None:
        if self._stmt is None:
            return None
        return self._db._native_call(self._db.engine.column_decltype, self._stmt, idx)

    def column_names(self) -> list[str | None]:
        return [self.column_name(idx) for idx in range(self.column_count())]


__all__ = ["Query", "QueryIterator", "Row", "RowReader"]
