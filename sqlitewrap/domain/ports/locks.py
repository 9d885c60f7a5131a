from __future__ import annotations

from typing import Callable, Protocol


class ProcessLockProtocol(Protocol):
    """
    Назначение:
        Межпроцессная блокировка, привязанная к одному пути БД.
    Ограничения:
        acquire() блокирует без таймаута; release() без захвата — no-op;
        close() освобождает ресурс блокировки (файловый дескриптор) идемпотентно.
    """

    @property
    def path(self) -> str: ...

    def acquire(self) -> None: ...
    def release(self) -> None: ...
    def close(self) -> None: ...


LockNameFunc = Callable[[str], str]
LockFactory = Callable[[str], ProcessLockProtocol]


__all__ = ["ProcessLockProtocol", "LockNameFunc", "LockFactory"]
