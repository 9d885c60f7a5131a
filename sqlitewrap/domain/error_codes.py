from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """
    Назначение:
        Единая таксономия кодов ошибок слоя доступа к БД.
    """

    CONNECTION_ERROR = "CONNECTION_ERROR"
    PREPARE_ERROR = "PREPARE_ERROR"
    BIND_ERROR = "BIND_ERROR"
    STEP_ERROR = "STEP_ERROR"
    TRANSACTION_ERROR = "TRANSACTION_ERROR"
    ROW_EXPIRED = "ROW_EXPIRED"
    ENGINE_UNAVAILABLE = "ENGINE_UNAVAILABLE"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"

    @property
    def category(self) -> str:
        """
        Назначение:
            Короткая категория для AppError.category (connection, prepare, ...).
        """
        return self.value.lower().rsplit("_", 1)[0] if self.value.endswith("_ERROR") else self.value.lower()
