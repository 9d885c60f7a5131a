from __future__ import annotations

import logging

from .database import Database
from .domain.result_codes import ResultCode
from .errors import TransactionError
from .loggingSetup import logEvent


class Transaction:
    """
    Назначение/ответственность:
        Скоуп BEGIN ... COMMIT/ROLLBACK над Database.

    Инварианты/гарантии:
        - завершающий оператор (COMMIT или ROLLBACK) выполняется ровно один раз;
        - commit() и rollback() помечают скоуп завершённым, повторные вызовы — OK без SQL;
        - close()/сборка мусора незавершённого скоупа применяет исход по умолчанию
          (commit=True -> COMMIT, иначе ROLLBACK), ошибки только логируются;
        - в with-блоке исключение всегда приводит к ROLLBACK.

    Ошибки:
        TransactionError — BEGIN не выполнен (например, write-lock занят другим соединением).
    """

    def __init__(self, db: Database, commit: bool = False, immediate: bool = False):
        self._db = db
        self._commitByDefault = commit
        self._immediate = immediate
        # До BEGIN скоуп считается завершённым: при ошибке __del__ ничего не делает.
        self._resolved = True

        rc = db.execute("BEGIN IMMEDIATE;" if immediate else "BEGIN;")
        if rc != ResultCode.OK:
            raise TransactionError(db.last_error(), status=rc, immediate=immediate)
        self._resolved = False

    @property
    def resolved(self) -> bool:
        return self._resolved

    @property
    def commit_by_default(self) -> bool:
        return self._commitByDefault

    @property
    def immediate(self) -> bool:
        return self._immediate

    def _finish(self, sql: str) -> ResultCode:
        if self._resolved:
            return ResultCode.OK
        self._resolved = True
        return self._db.execute(sql)

    def commit(self) -> ResultCode:
        return self._finish("COMMIT;")

    def rollback(self) -> ResultCode:
        return self._finish("ROLLBACK;")

    def close(self) -> None:
        if self._resolved:
            return
        rc = self.commit() if self._commitByDefault else self.rollback()
        if rc != ResultCode.OK:
            logEvent(
                self._db.logger, logging.WARNING, None, "transaction",
                f"Default {'COMMIT' if self._commitByDefault else 'ROLLBACK'} failed: rc={rc} msg={self._db.last_error()}",
            )

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None and not self._resolved:
            rc = self.rollback()
            if rc != ResultCode.OK:
                logEvent(
                    self._db.logger, logging.WARNING, None, "transaction",
                    f"ROLLBACK after {exc_type.__name__} failed: rc={rc}",
                )
            return
        self.close()

    def __del__(self) -> None:
        try:
            self.close()
        except Exception as exc:
            logEvent(self._db.logger, logging.WARNING, None, "transaction", f"close() in __del__ failed: {exc}")


__all__ = ["Transaction"]
