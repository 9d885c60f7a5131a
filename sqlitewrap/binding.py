from __future__ import annotations

from typing import Union

from .domain.ports.engine import NativeEngineProtocol
from .domain.result_codes import ResultCode

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

BindValue = Union[None, bool, int, float, str, bytes, bytearray, memoryview]


def bind_value(engine: NativeEngineProtocol, stmt: int, idx: int, value: BindValue) -> int:
    """
    Назначение:
        Привязка значения к параметру по 1-based позиции с выбором нативного типа.

    Правила:
        None -> NULL; bool/int -> int (32 бита, если помещается) или int64;
        float -> double; str -> text (копируется движком); bytes-like -> blob.

    Выходные данные:
        int — нативный код результата.

    Ошибки:
        TypeError — неподдерживаемый тип значения.
    """
    if value is None:
        return engine.bind_null(stmt, idx)
    if isinstance(value, bool):
        return engine.bind_int(stmt, idx, int(value))
    if isinstance(value, int):
        if INT32_MIN <= value <= INT32_MAX:
            return engine.bind_int(stmt, idx, value)
        if INT64_MIN <= value <= INT64_MAX:
            return engine.bind_int64(stmt, idx, value)
        return ResultCode.TOOBIG
    if isinstance(value, float):
        return engine.bind_double(stmt, idx, value)
    if isinstance(value, str):
        return engine.bind_text(stmt, idx, value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return engine.bind_blob(stmt, idx, bytes(value))
    raise TypeError(f"Unsupported parameter type: {type(value).__name__}")


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


__all__ = ["BindValue", "bind_value", "quote_identifier"]
