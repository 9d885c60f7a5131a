from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from sqlitewrap.domain.ports.locks import ProcessLockProtocol


class LockPair:
    """
    Назначение:
        Двухуровневая блокировка одного соединения:
        (1) внутрипроцессный RLock, (2) межпроцессная файловая блокировка.

    Инварианты/гарантии:
        - захват строго в порядке (1) -> (2), освобождение в обратном;
        - повторный захват тем же потоком не блокирует: файловая блокировка
          берётся на глубине 0 и отпускается при возврате на глубину 0;
        - без файловой блокировки (соединение закрыто) работает только (1).
    """

    def __init__(self, processLock: ProcessLockProtocol | None = None):
        self._mutex = threading.RLock()
        self._processLock = processLock
        self._depth = 0

    @property
    def process_lock(self) -> ProcessLockProtocol | None:
        return self._processLock

    @property
    def depth(self) -> int:
        return self._depth

    def replace_process_lock(self, processLock: ProcessLockProtocol | None) -> ProcessLockProtocol | None:
        """
        Назначение:
            Подменяет файловую блокировку (connect/disconnect) и возвращает прежнюю.
            Вызывающий обязан держать mutex (см. thread_only).
        """
        previous = self._processLock
        self._processLock = processLock
        return previous

    def acquire(self) -> None:
        self._mutex.acquire()
        try:
            if self._depth == 0 and self._processLock is not None:
                self._processLock.acquire()
        except BaseException:
            self._mutex.release()
            raise
        self._depth += 1

    def release(self) -> None:
        self._depth -= 1
        try:
            if self._depth == 0 and self._processLock is not None:
                self._processLock.release()
        finally:
            self._mutex.release()

    def __enter__(self) -> "LockPair":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    @contextmanager
    def thread_only(self) -> Iterator[None]:
        with self._mutex:
            yield


__all__ = ["LockPair"]
