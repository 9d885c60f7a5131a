from __future__ import annotations

import logging
import os
import sys
import tempfile
import time
from pathlib import Path

from sqlitewrap.domain.ports.locks import ProcessLockProtocol

if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

DEFAULT_LOCK_PREFIX = "sqlite3-db-"

_SEPARATORS = ("\\", "/", ".", ":")

log = logging.getLogger(__name__)


def lock_name_for(dbPath: str, prefix: str = DEFAULT_LOCK_PREFIX) -> str:
    """
    Назначение:
        Имя lock-файла как чистая функция нормализованного пути БД:
        разделители пути и расширения заменяются на '-'.

    Пример:
        /tmp/testDB.sqlite -> sqlite3-db--tmp-testDB-sqlite.lock
    """
    name = dbPath
    for sep in _SEPARATORS:
        name = name.replace(sep, "-")
    return f"{prefix}{name}.lock"


def default_lock_dir() -> str:
    return tempfile.gettempdir()


class ProcessFileLock(ProcessLockProtocol):
    """
    Назначение:
        Межпроцессная advisory-блокировка на отдельном lock-файле (flock).

    Инварианты/гарантии:
        - acquire() блокирует без таймаута;
        - lock-файл не удаляется при release/close: другой процесс может
          ждать на том же inode;
        - блокировка привязана к открытому дескриптору, поэтому два объекта
          в одном процессе тоже исключают друг друга.
    """

    def __init__(self, path: str | Path):
        self._path = str(path)
        self._fd: int | None = None
        self._held = False

    @property
    def path(self) -> str:
        return self._path

    @property
    def held(self) -> bool:
        return self._held

    def _open(self) -> int:
        if self._fd is None:
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o666)
        return self._fd

    def acquire(self) -> None:
        fd = self._open()
        if sys.platform == "win32":
            os.lseek(fd, 0, os.SEEK_SET)
            while True:
                try:
                    msvcrt.locking(fd, msvcrt.LK_LOCK, 1)
                    break
                except OSError:
                    # LK_LOCK сдаётся через ~10 секунд, продолжаем ждать.
                    time.sleep(0.05)
        else:
            fcntl.flock(fd, fcntl.LOCK_EX)
        self._held = True

    def release(self) -> None:
        if not self._held or self._fd is None:
            return
        try:
            if sys.platform == "win32":
                os.lseek(self._fd, 0, os.SEEK_SET)
                msvcrt.locking(self._fd, msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            self._held = False

    def close(self) -> None:
        if self._fd is None:
            return
        try:
            self.release()
        finally:
            try:
                os.close(self._fd)
            except OSError as exc:
                log.debug("Error closing lock file descriptor %s: %s", self._path, exc)
            self._fd = None

    def __enter__(self) -> "ProcessFileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __del__(self) -> None:
        if self._fd is not None:
            self.close()


__all__ = ["DEFAULT_LOCK_PREFIX", "ProcessFileLock", "default_lock_dir", "lock_name_for"]
