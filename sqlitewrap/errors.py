from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from .domain.error_codes import ErrorCode
from .domain.result_codes import RETRYABLE_CODES, ResultCode


@dataclass
class AppError(Exception):
    """
    Унифицированная ошибка приложения.
    """

    category: str
    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details or {},
        }


class DatabaseError(AppError):
    """
    Назначение:
        Базовая ошибка слоя доступа к БД.

    Входные данные:
        message: str
            Текст ошибки (как правило, sqlite3_errmsg движка).
        status: int | None
            Нативный код результата, если он известен.
        **details
            Дополнительный контекст (sql, path, name, ...); None отбрасываются.

    Поведение:
        - retryable=True для BUSY/LOCKED.
    """

    errorCode: ErrorCode = ErrorCode.UNEXPECTED_ERROR

    def __init__(self, message: str, status: int | None = None, **details: Any):
        payload = {k: v for k, v in details.items() if v is not None}
        if status is not None:
            payload["status"] = int(status)
        super().__init__(
            category=self.errorCode.category,
            code=self.errorCode.value,
            message=message,
            retryable=status is not None and ResultCode.from_native(status) in RETRYABLE_CODES,
            details=payload,
        )

    @property
    def status(self) -> int | None:
        return self.details.get("status")


class DatabaseConnectionError(DatabaseError):
    errorCode = ErrorCode.CONNECTION_ERROR


class PrepareError(DatabaseError):
    errorCode = ErrorCode.PREPARE_ERROR


class BindError(DatabaseError):
    errorCode = ErrorCode.BIND_ERROR


class StepError(DatabaseError):
    errorCode = ErrorCode.STEP_ERROR


class TransactionError(DatabaseError):
    errorCode = ErrorCode.TRANSACTION_ERROR


class RowExpiredError(DatabaseError):
    """
    Назначение:
        Чтение Row после того, как курсор сдвинулся (step/reset/finish).
    """

    errorCode = ErrorCode.ROW_EXPIRED


class EngineUnavailableError(DatabaseError):
    """
    Назначение:
        Нативная библиотека SQLite не найдена или не загружается.
    """

    errorCode = ErrorCode.ENGINE_UNAVAILABLE


__all__ = [
    "AppError",
    "DatabaseError",
    "DatabaseConnectionError",
    "PrepareError",
    "BindError",
    "StepError",
    "TransactionError",
    "RowExpiredError",
    "EngineUnavailableError",
]
