from __future__ import annotations

import logging
from pathlib import Path

LIBRARY_LOGGER_NAME = "sqlitewrap"
SQL_LOG_MAX_LENGTH = 500

class EnsureFieldsFilter(logging.Filter):
    """
    Назначение:
        Гарантирует наличие полей runId и component в LogRecord:
        записи библиотечного логгера (Database/Statement) приходят без extra.

    Входные данные:
        runId: str
            Идентификатор запуска CLI-команды.
        defaultComponent: str
            Компонент для записей без component.
    """

    def __init__(self, runId: str, defaultComponent: str = "db"):
        super().__init__()
        self.runId = runId
        self.defaultComponent = defaultComponent

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "runId"):
            record.runId = self.runId
        if not hasattr(record, "component"):
            record.component = self.defaultComponent
        return True

class StdStreamToLogger:
    """
    Назначение:
        Построчно пересылает вывод команды (строки результата query, сообщения demo)
        в log-файл команды.

    Входные данные:
        logger: logging.Logger
            Логгер команды (createCommandLogger).
        level: int
            INFO для stdout, ERROR для stderr.
        runId: str
        component: str
            'stdout' или 'stderr'.

    Инварианты:
        - неполная строка копится в buffer до '\\n' или flush();
        - пустые строки в лог не пишутся.
    """

    def __init__(self, logger: logging.Logger, level: int, runId: str, component: str):
        self.logger = logger
        self.level = level
        self.runId = runId
        self.component = component
        self.buffer = ""

    def _emit(self, line: str) -> None:
        self.logger.log(self.level, line.rstrip(), extra={"runId": self.runId, "component": self.component})

    def write(self, s: str) -> int:
        if not s:
            return 0
        self.buffer += s
        while "\n" in self.buffer:
            line, self.buffer = self.buffer.split("\n", 1)
            if line.strip():
                self._emit(line)
        return len(s)

    def flush(self) -> None:
        if self.buffer.strip():
            self._emit(self.buffer)
        self.buffer = ""

class TeeStream:
    """
    Назначение:
        Дублирует вывод команды: в терминал и в log-файл.

    Входные данные:
        primary:
            Исходный sys.stdout/sys.stderr; его результат write() возвращается вызывающему.
        secondary:
            StdStreamToLogger той же команды.
    """

    def __init__(self, primary, secondary):
        self.primary = primary
        self.secondary = secondary

    def write(self, s: str) -> int:
        written = self.primary.write(s)
        self.secondary.write(s)
        return written

    def flush(self) -> None:
        self.primary.flush()
        self.secondary.flush()

_LEVELS = {
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

def mapLogLevel(levelName: str) -> int:
    """
    Назначение:
        Преобразует строковый уровень (--log-level, SQLITEWRAP_LOG_LEVEL) в logging level.

    Входные данные:
        levelName: str
            ERROR|WARN|WARNING|INFO|DEBUG, регистр не важен.

    Выходные данные:
        int

    Ошибки:
        ValueError — неизвестный уровень.
    """
    value = (levelName or "").strip().upper()
    if value not in _LEVELS:
        raise ValueError(f"Unsupported log level: {levelName}")
    return _LEVELS[value]

def getLibraryLogger() -> logging.Logger:
    """
    Назначение:
        Логгер по умолчанию для Database/Statement/Transaction,
        если вызывающий код не передал свой.
    """
    return logging.getLogger(LIBRARY_LOGGER_NAME)

def createCommandLogger(commandName: str, logDir: str, runId: str, logLevel: str) -> tuple[logging.Logger, str]:
    """
    Назначение:
        Создаёт логгер CLI-команды (exec/query/check-*/demo) с отдельным log-файлом.
        Логгер передаётся в Database, поэтому SQL-трассировка и ошибки движка
        попадают в тот же файл, что и вывод команды.

    Входные данные:
        commandName: str
            Имя команды; часть имени файла и логгера.
        logDir: str
            Каталог логов; создаётся при необходимости.
        runId: str
        logLevel: str
            См. mapLogLevel.

    Выходные данные:
        (logger, logFilePath)
            logFilePath = <logDir>/<commandName>_<runId>.log
    """
    Path(logDir).mkdir(parents=True, exist_ok=True)

    logFilePath = str(Path(logDir) / f"{commandName}_{runId}.log")

    logger = logging.getLogger(f"{LIBRARY_LOGGER_NAME}.{commandName}.{runId}")
    logger.handlers.clear()
    logger.propagate = False

    level = mapLogLevel(logLevel)
    logger.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s runId=%(runId)s comp=%(component)s msg=%(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    fileHandler = logging.FileHandler(logFilePath, encoding="utf-8")
    fileHandler.setLevel(level)
    fileHandler.setFormatter(formatter)
    fileHandler.addFilter(EnsureFieldsFilter(runId=runId))
    logger.addHandler(fileHandler)

    return logger, logFilePath

def closeCommandLogger(logger: logging.Logger) -> None:
    """
    Назначение:
        Закрывает и снимает file-handler'ы логгера команды.
    """
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

def logEvent(logger: logging.Logger, level: int, runId: str | None, component: str, message: str) -> None:
    """
    Назначение:
        Унифицированная запись событий с runId/component.

    Входные данные:
        logger: logging.Logger
        level: int
        runId: str | None
            None для Database, созданной вне CLI; в лог пишется '-'.
        component: str
            connect/execute/prepare/lookup/transaction/...
        message: str
    """
    logger.log(level, message, extra={"runId": runId or "-", "component": component})

def printableSql(sql: str, maxLength: int = SQL_LOG_MAX_LENGTH) -> str:
    """
    Назначение:
        SQL в одну строку для лога: пробельные последовательности схлопываются,
        слишком длинный текст обрезается с '...'.
    """
    flat = " ".join(sql.split())
    if len(flat) > maxLength:
        return flat[:maxLength] + "..."
    return flat

def logSqlTrace(
    logger: logging.Logger,
    runId: str | None,
    component: str,
    sql: str,
    durationMs: float,
    rc: int,
) -> None:
    """
    Назначение:
        Запись трассировки SQL (show_sql): длительность, код результата и текст оператора.
    """
    logEvent(logger, logging.INFO, runId, component, f"{durationMs:.3f}ms rc={int(rc)} sql=\"{printableSql(sql)}\"")
