from __future__ import annotations

import threading
from pathlib import Path

import pytest

from sqlitewrap.config import Settings
from sqlitewrap.database import Database
from sqlitewrap.domain.result_codes import ResultCode
from sqlitewrap.infra.locking.file_lock import ProcessFileLock, lock_name_for
from sqlitewrap.infra.locking.lock_pair import LockPair


class RecordingLock:
    def __init__(self, path: str = "fake.lock", events: list[str] | None = None):
        self._path = path
        self.events = events if events is not None else []
        self.closed = False

    @property
    def path(self) -> str:
        return self._path

    def acquire(self) -> None:
        self.events.append("acquire")

    def release(self) -> None:
        self.events.append("release")

    def close(self) -> None:
        self.closed = True


def test_lock_name_replaces_separators():
    assert lock_name_for("/tmp/testDB.sqlite") == "sqlite3-db--tmp-testDB-sqlite.lock"
    assert lock_name_for("C:\\data\\a.sqlite", prefix="x-") == "x-C--data-a-sqlite.lock"


def test_lock_pair_is_reentrant_and_takes_file_lock_once():
    recording = RecordingLock()
    pair = LockPair(recording)

    with pair:
        with pair:
            assert pair.depth == 2
        assert recording.events == ["acquire"]

    assert recording.events == ["acquire", "release"]
    assert pair.depth == 0


def test_lock_pair_without_process_lock_uses_mutex_only():
    pair = LockPair()
    with pair:
        assert pair.depth == 1
    assert pair.process_lock is None


def test_lock_pair_excludes_other_threads():
    pair = LockPair(RecordingLock())
    entered = threading.Event()

    def worker():
        with pair:
            entered.set()

    with pair:
        thread = threading.Thread(target=worker)
        thread.start()
        assert not entered.wait(0.2)

    assert entered.wait(5)
    thread.join(5)


def test_lock_pair_releases_mutex_when_file_lock_fails():
    class FailingLock(RecordingLock):
        def acquire(self) -> None:
            raise OSError("no lock")

    pair = LockPair(FailingLock())
    with pytest.raises(OSError):
        pair.acquire()
    assert pair.depth == 0

    pair.replace_process_lock(None)
    done = threading.Event()
    thread = threading.Thread(target=lambda: (pair.acquire(), pair.release(), done.set()))
    thread.start()
    assert done.wait(5)
    thread.join(5)


def test_file_lock_excludes_second_descriptor(tmp_path: Path):
    pytest.importorskip("fcntl")
    path = tmp_path / "locks" / "a.lock"
    first = ProcessFileLock(path)
    second = ProcessFileLock(path)
    acquired = threading.Event()

    def worker():
        second.acquire()
        acquired.set()
        second.release()

    first.acquire()
    thread = threading.Thread(target=worker)
    thread.start()
    try:
        assert not acquired.wait(0.3)
    finally:
        first.release()

    assert acquired.wait(5)
    thread.join(5)
    first.close()
    second.close()
    assert path.exists()


def test_database_uses_injected_lock_factory_and_name(tmp_path: Path):
    events: list[str] = []
    created: list[RecordingLock] = []

    def factory(path: str) -> RecordingLock:
        lock = RecordingLock(path, events)
        created.append(lock)
        return lock

    db = Database(
        Settings(lock_dir=str(tmp_path / "locks")),
        lockFactory=factory,
        lockName=lambda normalized: "custom.lock",
    )
    assert db.connect(str(tmp_path / "inj")) == ResultCode.OK
    assert db.lock_path == str(tmp_path / "locks" / "custom.lock")
    assert created[0].path == db.lock_path

    events.clear()
    assert db.execute("CREATE TABLE t(x);") == ResultCode.OK
    assert events == ["acquire", "release"]

    events.clear()
    with db.locked():
        db.execute("INSERT INTO t VALUES(1);")
        db.execute("INSERT INTO t VALUES(2);")
    assert events == ["acquire", "release"]

    db.disconnect()
    assert created[0].closed
