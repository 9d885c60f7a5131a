from __future__ import annotations

import logging
import os
import time
import weakref
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from .binding import bind_value, quote_identifier
from .config import Settings
from .domain.ports.engine import NativeEngineProtocol
from .domain.ports.locks import LockFactory, LockNameFunc, ProcessLockProtocol
from .domain.result_codes import DEFAULT_OPEN_FLAGS, ResultCode
from .errors import DatabaseConnectionError
from .infra.engine.sqlite_native import SqliteNativeEngine
from .infra.locking.file_lock import ProcessFileLock, default_lock_dir, lock_name_for
from .infra.locking.lock_pair import LockPair
from .loggingSetup import getLibraryLogger, logEvent, logSqlTrace, printableSql
from .timeUtils import getDurationMs

if TYPE_CHECKING:
    from .statement import Statement
    from .transaction import Transaction

MEMORY_PATH = ":memory:"

T = TypeVar("T")


class Database:
    """
    Назначение/ответственность:
        Одно соединение с одним файлом БД (Engine Handle):
        владеет нативным хендлом, внутрипроцессной и межпроцессной блокировками.

    Инварианты/гарантии:
        - не более одного живого нативного хендла на экземпляр;
        - имя lock-файла — чистая функция нормализованного пути, поэтому
          независимые процессы, открывшие один файл, конкурируют за одну блокировку;
        - disconnect() идемпотентен и безусловно освобождает хендл и lock-файл;
        - каждый нативный вызов выполняется под парой (RLock -> файловая блокировка).

    Взаимодействия:
        Statement/Command/Query держат сильную ссылку на Database и обращаются
        к движку только через _native_call().
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        engine: NativeEngineProtocol | None = None,
        lockFactory: LockFactory | None = None,
        lockName: LockNameFunc | None = None,
        logger: logging.Logger | None = None,
        runId: str | None = None,
        showSql: bool | None = None,
    ):
        self._settings = settings or Settings()
        self._engine = engine or SqliteNativeEngine(self._settings.library_path)
        self._lockFactory = lockFactory or ProcessFileLock
        self._lockName = lockName
        self._logger = logger or getLibraryLogger()
        self._runId = runId
        self._showSql = self._settings.show_sql if showSql is None else showSql

        self._locks = LockPair()
        self._handle: int | None = None
        self._path: str | None = None
        self._lockPath: str | None = None
        self._statements: "weakref.WeakSet[Statement]" = weakref.WeakSet()
        self._localFailure: str | None = None

    @classmethod
    def open(cls, path: str, settings: Settings | None = None, **kwargs: Any) -> "Database":
        """
        Назначение:
            Фабрика: создаёт Database и подключает её к path.

        Ошибки:
            DatabaseConnectionError — подключение не удалось; объект наружу не попадает.
        """
        db = cls(settings, **kwargs)
        rc = db.connect(path)
        if rc != ResultCode.OK:
            message = db.last_error()
            db.disconnect()
            raise DatabaseConnectionError(message, status=rc, path=path)
        return db

    # ---- properties -------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def engine(self) -> NativeEngineProtocol:
        return self._engine

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def lock_path(self) -> str | None:
        return self._lockPath

    @property
    def is_connected(self) -> bool:
        return self._handle is not None

    @property
    def show_sql(self) -> bool:
        return self._showSql

    # ---- paths ------------------------------------------------------------

    def normalize_path(self, path: str | os.PathLike[str]) -> str:
        """
        Назначение:
            Абсолютный путь с каноническим расширением (добавляется ровно один раз).
            ":memory:" возвращается как есть.
        """
        raw = os.fspath(path)
        if raw == MEMORY_PATH:
            return raw
        normalized = os.path.abspath(os.path.expanduser(raw))
        extension = self._settings.extension
        if extension and not normalized.endswith(extension):
            normalized += extension
        return normalized

    def lock_path_for(self, normalizedPath: str) -> str:
        lockDir = self._settings.lock_dir or default_lock_dir()
        if self._lockName is not None:
            name = self._lockName(normalizedPath)
        else:
            name = lock_name_for(normalizedPath, self._settings.lock_prefix)
        return os.path.join(lockDir, name)

    # ---- lifecycle --------------------------------------------------------

    def connect(self, path: str | os.PathLike[str], flags: int = DEFAULT_OPEN_FLAGS) -> ResultCode:
        """
        Назначение:
            Закрывает текущее соединение и открывает новое.

        Выходные данные:
            ResultCode — нативный код sqlite3_open_v2; текст ошибки доступен через last_error().
        """
        self.disconnect()

        with self._locks.thread_only():
            normalized = self.normalize_path(path)
            processLock: ProcessLockProtocol | None = None
            lockPath = None
            if normalized != MEMORY_PATH:
                lockPath = self.lock_path_for(normalized)
                processLock = self._lockFactory(lockPath)
            self._locks.replace_process_lock(processLock)

            with self._locks:
                self._localFailure = None
                rc, handle = self._engine.open(normalized, int(flags))
                if rc != ResultCode.OK:
                    self._localFailure = self._engine.errmsg(handle) if handle else "unable to open database"
                    if handle:
                        self._engine.close(handle)
                elif self._settings.busy_timeout_ms > 0:
                    self._engine.busy_timeout(handle, self._settings.busy_timeout_ms)

            code = ResultCode.from_native(rc)
            if code != ResultCode.OK:
                self._locks.replace_process_lock(None)
                if processLock is not None:
                    processLock.close()
                logEvent(
                    self._logger, logging.WARNING, self._runId, "connect",
                    f"Failed to open {normalized}: rc={code} msg={self._localFailure}",
                )
                return code

            self._handle = handle
            self._path = normalized
            self._lockPath = lockPath
            logEvent(self._logger, logging.DEBUG, self._runId, "connect", f"Connected: {normalized} lock={lockPath}")
            return code

    def disconnect(self) -> None:
        """
        Назначение:
            Закрывает соединение: финализирует живые statement'ы, закрывает
            нативный хендл, освобождает lock-файл. Идемпотентен, исключений не бросает.
        """
        with self._locks.thread_only():
            try:
                if self._handle is not None:
                    with self._locks:
                        for statement in list(self._statements):
                            statement._detach()
                        self._statements.clear()
                        rc = self._engine.close(self._handle)
                        self._handle = None
                    if rc != ResultCode.OK:
                        logEvent(self._logger, logging.WARNING, self._runId, "connect", f"close() returned rc={rc}")
                    else:
                        logEvent(self._logger, logging.DEBUG, self._runId, "connect", f"Disconnected: {self._path}")
            except Exception as exc:
                logEvent(self._logger, logging.WARNING, self._runId, "connect", f"Disconnect failed: {exc}")
            finally:
                self._handle = None
                self._path = None
                self._lockPath = None
                processLock = self._locks.replace_process_lock(None)
                if processLock is not None:
                    try:
                        processLock.close()
                    except OSError as exc:
                        logEvent(self._logger, logging.WARNING, self._runId, "lock", f"Lock close failed: {exc}")

    close = disconnect

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def __del__(self) -> None:
        try:
            self.disconnect()
        except Exception:
            pass

    # ---- locking / native access -------------------------------------------

    def locked(self) -> LockPair:
        """
        Назначение:
            Пара блокировок соединения как context manager; повторный захват
            тем же потоком не блокирует (операции внутри with выполняются атомарно
            относительно других потоков и процессов).
        """
        return self._locks

    def _native_call(self, func: Callable[..., T], *args: Any) -> T:
        with self._locks:
            self._localFailure = None
            return func(*args)

    def _fail_local(self, message: str, code: ResultCode = ResultCode.MISUSE) -> ResultCode:
        self._localFailure = message
        return code

    def _require_handle(self) -> int | None:
        if self._handle is None:
            self._fail_local("database is not connected")
        return self._handle

    def _register(self, statement: "Statement") -> None:
        self._statements.add(statement)

    def _unregister(self, statement: "Statement") -> None:
        self._statements.discard(statement)

    def _trace(self, component: str, sql: str, startMonotonic: float, rc: int) -> None:
        if not self._showSql:
            return
        durationMs = getDurationMs(startMonotonic, time.monotonic())
        logSqlTrace(self._logger, self._runId, component, sql, durationMs, rc)

    # ---- operations -------------------------------------------------------

    def execute(self, sql: str, *args: Any) -> ResultCode:
        """
        Назначение:
            Разовое выполнение SQL (DDL, BEGIN/COMMIT, единичные операторы)
            без переиспользуемого statement'а.

        Входные данные:
            sql: str
                Шаблон в стиле printf; форматируется только если переданы args.
                Значения в шаблон подставляются как есть: для данных от
                пользователя используйте Command с bind().
        """
        if args:
            sql = sql % args
        handle = self._require_handle()
        if handle is None:
            return ResultCode.MISUSE

        start = time.monotonic()
        rc = self._native_call(self._engine.exec, handle, sql)
        self._trace("execute", sql, start, rc)
        return ResultCode.from_native(rc)

    def _lookup(self, sql: str, params: tuple[Any, ...] = ()) -> bool:
        handle = self._require_handle()
        if handle is None:
            return False

        with self._locks:
            start = time.monotonic()
            self._localFailure = None
            rc, stmt, _tail = self._engine.prepare(handle, sql)
            if rc != ResultCode.OK or stmt is None:
                logEvent(
                    self._logger, logging.WARNING, self._runId, "lookup",
                    f"prepare failed: {self._engine.errmsg(handle)} sql=\"{printableSql(sql)}\"",
                )
                return False
            try:
                for idx, value in enumerate(params, start=1):
                    rc = bind_value(self._engine, stmt, idx, value)
                    if rc != ResultCode.OK:
                        logEvent(
                            self._logger, logging.WARNING, self._runId, "lookup",
                            f"bind failed: {self._engine.errmsg(handle)} idx={idx}",
                        )
                        return False
                rc = self._engine.step(stmt)
            finally:
                self._engine.finalize(stmt)
            self._trace("lookup", sql, start, rc)
        return rc == ResultCode.ROW

    def check_table_exists(self, name: str) -> bool:
        return self._lookup("SELECT name FROM sqlite_master WHERE type='table' AND name = ?;", (name,))

    def check_key_exists(self, table: str, field: str, value: Any) -> bool:
        """
        Назначение:
            Есть ли в table строка с field = value.
            value всегда передаётся параметром, идентификаторы экранируются.
        """
        sql = "SELECT {field} FROM {table} WHERE {field} = ? LIMIT 1;".format(
            field=quote_identifier(field),
            table=quote_identifier(table),
        )
        return self._lookup(sql, (value,))

    def last_error(self) -> str:
        if self._localFailure is not None:
            return self._localFailure
        if self._handle is None:
            return "database is not connected"
        return self._engine.errmsg(self._handle)

    def error_code(self) -> int:
        if self._handle is None:
            return ResultCode.MISUSE
        return ResultCode.from_native(self._engine.errcode(self._handle))

    def changes(self) -> int:
        handle = self._require_handle()
        if handle is None:
            return 0
        return self._native_call(self._engine.changes, handle)

    def last_insert_rowid(self) -> int:
        handle = self._require_handle()
        if handle is None:
            return 0
        return self._native_call(self._engine.last_insert_rowid, handle)

    def transaction(self, commit: bool = False, immediate: bool = False) -> "Transaction":
        from .transaction import Transaction

        return Transaction(self, commit=commit, immediate=immediate)


__all__ = ["Database", "MEMORY_PATH"]
