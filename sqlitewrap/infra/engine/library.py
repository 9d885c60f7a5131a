from __future__ import annotations

import ctypes
import ctypes.util
import importlib
import threading
from ctypes import POINTER, c_char_p, c_double, c_int, c_longlong, c_void_p

from sqlitewrap.errors import EngineUnavailableError

# sqlite3_destructor_type SQLITE_TRANSIENT: движок копирует буфер до возврата из bind.
SQLITE_TRANSIENT = c_void_p(-1)

_COMMON_NAMES = ("libsqlite3.so.0", "libsqlite3.so", "libsqlite3.dylib", "sqlite3.dll", "winsqlite3.dll")

_cache: dict[str, ctypes.CDLL] = {}
_cacheLock = threading.Lock()


def _declare(lib: ctypes.CDLL) -> None:
    """
    Назначение:
        Объявляет сигнатуры используемых функций C API (argtypes/restype).
        Без этого ctypes усекает указатели до int на 64-битных платформах.
    """
    sigs = {
        "sqlite3_libversion": ([], c_char_p),
        "sqlite3_open_v2": ([c_char_p, POINTER(c_void_p), c_int, c_char_p], c_int),
        "sqlite3_close_v2": ([c_void_p], c_int),
        "sqlite3_exec": ([c_void_p, c_char_p, c_void_p, c_void_p, c_void_p], c_int),
        "sqlite3_errmsg": ([c_void_p], c_char_p),
        "sqlite3_errcode": ([c_void_p], c_int),
        "sqlite3_busy_timeout": ([c_void_p, c_int], c_int),
        "sqlite3_changes": ([c_void_p], c_int),
        "sqlite3_last_insert_rowid": ([c_void_p], c_longlong),
        "sqlite3_prepare_v2": ([c_void_p, c_void_p, c_int, POINTER(c_void_p), POINTER(c_void_p)], c_int),
        "sqlite3_finalize": ([c_void_p], c_int),
        "sqlite3_reset": ([c_void_p], c_int),
        "sqlite3_step": ([c_void_p], c_int),
        "sqlite3_clear_bindings": ([c_void_p], c_int),
        "sqlite3_bind_null": ([c_void_p, c_int], c_int),
        "sqlite3_bind_int": ([c_void_p, c_int, c_int], c_int),
        "sqlite3_bind_int64": ([c_void_p, c_int, c_longlong], c_int),
        "sqlite3_bind_double": ([c_void_p, c_int, c_double], c_int),
        "sqlite3_bind_text": ([c_void_p, c_int, c_char_p, c_int, c_void_p], c_int),
        "sqlite3_bind_blob": ([c_void_p, c_int, c_void_p, c_int, c_void_p], c_int),
        "sqlite3_bind_parameter_index": ([c_void_p, c_char_p], c_int),
        "sqlite3_bind_parameter_count": ([c_void_p], c_int),
        "sqlite3_bind_parameter_name": ([c_void_p, c_int], c_char_p),
        "sqlite3_data_count": ([c_void_p], c_int),
        "sqlite3_column_count": ([c_void_p], c_int),
        "sqlite3_column_name": ([c_void_p, c_int], c_char_p),
        "sqlite3_column_decltype": ([c_void_p, c_int], c_char_p),
        "sqlite3_column_type": ([c_void_p, c_int], c_int),
        "sqlite3_column_bytes": ([c_void_p, c_int], c_int),
        "sqlite3_column_int": ([c_void_p, c_int], c_int),
        "sqlite3_column_int64": ([c_void_p, c_int], c_longlong),
        "sqlite3_column_double": ([c_void_p, c_int], c_double),
        "sqlite3_column_text": ([c_void_p, c_int], c_void_p),
        "sqlite3_column_blob": ([c_void_p, c_int], c_void_p),
    }
    for name, (argtypes, restype) in sigs.items():
        func = getattr(lib, name)
        func.argtypes = argtypes
        func.restype = restype


def candidate_paths(explicitPath: str | None = None) -> list[str]:
    """
    Назначение:
        Порядок поиска нативной библиотеки.

    Алгоритм:
        - явный путь (настройка library_path), если задан — только он;
        - ctypes.util.find_library("sqlite3");
        - типовые имена so/dylib/dll;
        - модуль расширения _sqlite3 самого интерпретатора
          (dlsym ищет символы и в его зависимостях).
    """
    if explicitPath:
        return [explicitPath]

    paths: list[str] = []
    found = ctypes.util.find_library("sqlite3")
    if found:
        paths.append(found)
    paths.extend(_COMMON_NAMES)
    try:
        module = importlib.import_module("_sqlite3")
        if getattr(module, "__file__", None):
            paths.append(module.__file__)
    except ImportError:
        pass

    unique: list[str] = []
    for p in paths:
        if p not in unique:
            unique.append(p)
    return unique


def load_library(explicitPath: str | None = None) -> ctypes.CDLL:
    """
    Назначение:
        Загружает libsqlite3 (с кешированием по пути) и объявляет сигнатуры.

    Ошибки:
        EngineUnavailableError — ни один кандидат не загрузился.
    """
    attempts: list[str] = []
    with _cacheLock:
        for path in candidate_paths(explicitPath):
            if path in _cache:
                return _cache[path]
            try:
                lib = ctypes.CDLL(path)
                _declare(lib)
            except (OSError, AttributeError) as exc:
                attempts.append(f"{path}: {exc}")
                continue
            _cache[path] = lib
            return lib

    raise EngineUnavailableError(
        "SQLite library not found",
        candidates=attempts,
    )


__all__ = ["SQLITE_TRANSIENT", "candidate_paths", "load_library"]
