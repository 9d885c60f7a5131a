from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Any, List, Optional

import typer

from .command import Command
from .common.run_id import generate_run_id
from .config import Settings, load_settings
from .database import Database
from .demo import formatRow, runDemo
from .domain.result_codes import ResultCode
from .errors import AppError
from .loggingSetup import StdStreamToLogger, TeeStream, closeCommandLogger, createCommandLogger, logEvent
from .query import Query
from .timeUtils import getDurationMs

app = typer.Typer(no_args_is_help=True, add_completion=False)

PARAM_MARKERS = (":", "@", "$")


def ensureDir(path: str) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def parseBindValue(raw: str) -> Any:
    """
    Назначение:
        Преобразует текст значения из --bind в тип параметра.

    Правила:
        NULL -> None; целое -> int; число с точкой/экспонентой -> float;
        'x:<hex>' -> bytes; остальное -> str.
    """
    if raw == "NULL":
        return None
    if raw.startswith("x:"):
        return bytes.fromhex(raw[2:])
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw


def parseBindings(items: List[str] | None) -> list[tuple[int | str, Any]]:
    """
    Назначение:
        Разбирает повторяемую опцию --bind KEY=VALUE.
        KEY — 1-based позиция или имя параметра (маркер ':' добавляется, если его нет).

    Ошибки:
        typer.BadParameter — нет '=' или пустой ключ.
    """
    result: list[tuple[int | str, Any]] = []
    for item in items or []:
        key, sep, raw = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got: {item}", param_hint="--bind")
        target: int | str
        if key.isdigit():
            target = int(key)
        elif key.startswith(PARAM_MARKERS):
            target = key
        else:
            target = ":" + key
        result.append((target, parseBindValue(raw)))
    return result


def applyBindings(statement, bindings: list[tuple[int | str, Any]]) -> None:
    for key, value in bindings:
        rc = statement.bind(key, value)
        if rc != ResultCode.OK:
            raise typer.BadParameter(
                f"cannot bind {key}: {statement.database.last_error()} (rc={int(rc)})",
                param_hint="--bind",
            )


def printRunHeader(runId: str, command: str, settings: Settings, sources: list[str]) -> None:
    typer.echo(
        f"run_id={runId} command={command} lock_dir={settings.lock_dir or '-'} "
        f"extension={settings.extension} show_sql={settings.show_sql} sources={sources}"
    )


def runCommand(ctx: typer.Context, commandName: str, dbPath: str, runner) -> None:
    """
    Назначение:
        Унифицированная обвязка выполнения команд:
        - создаёт логгер + файл лога
        - перенаправляет stdout/stderr в лог (tee)
        - открывает Database и гарантирует disconnect в finally

    Входные данные:
        runner: Callable[[Database, logging.Logger], int]
            Тело команды, возвращает exit code.

    Поведение:
        - AppError (ошибки БД, загрузки движка) -> сообщение в stderr и exit code 2.
    """
    runId = ctx.obj["runId"]
    settings: Settings = ctx.obj["settings"]
    sources = ctx.obj["sources"]

    startMonotonic = time.monotonic()

    logger, logFilePath = createCommandLogger(
        commandName=commandName,
        logDir=settings.log_dir,
        runId=runId,
        logLevel=settings.log_level,
    )

    originalStdout = sys.stdout
    originalStderr = sys.stderr

    stdoutLoggerStream = StdStreamToLogger(logger, logging.INFO, runId, "stdout")
    stderrLoggerStream = StdStreamToLogger(logger, logging.ERROR, runId, "stderr")

    sys.stdout = TeeStream(originalStdout, stdoutLoggerStream)
    sys.stderr = TeeStream(originalStderr, stderrLoggerStream)

    exitCode = 0
    db: Database | None = None

    try:
        logEvent(logger, logging.INFO, runId, "core", "Command started")
        logEvent(logger, logging.DEBUG, runId, "config", f"sources={sources}")

        db = Database.open(dbPath, settings, logger=logger, runId=runId)
        exitCode = runner(db, logger)

    except AppError as exc:
        logEvent(logger, logging.ERROR, runId, exc.category, f"Command failed: {exc.to_dict()}")
        typer.echo(f"ERROR: {exc.message}", err=True)
        exitCode = 2

    finally:
        if db is not None:
            db.disconnect()
        durationMs = getDurationMs(startMonotonic, time.monotonic())
        logEvent(logger, logging.INFO, runId, "core", f"Command finished: exit_code={exitCode} duration_ms={durationMs:.1f}")

        sys.stdout.flush()
        sys.stderr.flush()
        sys.stdout = originalStdout
        sys.stderr = originalStderr
        closeCommandLogger(logger)

    if exitCode == 2:
        typer.echo(f"See log: {logFilePath}", err=True)

    if exitCode:
        raise typer.Exit(code=exitCode)


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, "--config", help="Path to config.yml"),
    runId: Optional[str] = typer.Option(None, "--run-id", help="Run identifier (UUID). If omitted, generated."),
    logLevel: Optional[str] = typer.Option(None, "--log-level", help="Log level: ERROR|WARN|INFO|DEBUG"),
    logDir: Optional[str] = typer.Option(None, "--log-dir", help="Directory for logs."),
    lockDir: Optional[str] = typer.Option(None, "--lock-dir", help="Directory for per-database lock files."),
    library: Optional[str] = typer.Option(None, "--library", help="Path to the SQLite shared library."),
    busyTimeoutMs: Optional[int] = typer.Option(None, "--busy-timeout-ms", help="Engine busy timeout (0 = fail fast)."),
    showSql: Optional[bool] = typer.Option(None, "--show-sql/--no-show-sql", help="Trace SQL with durations to the log."),
):
    """
    Назначение:
        Глобальная инициализация CLI:
        - генерирует/принимает run_id
        - загружает настройки (CLI > ENV > config > defaults)
        - создаёт каталоги логов и lock-файлов
        - сохраняет всё в ctx.obj для подкоманд
    """
    if not runId:
        runId = generate_run_id()

    cliOverrides = {
        "log_level": logLevel,
        "log_dir": logDir,
        "lock_dir": lockDir,
        "library_path": library,
        "busy_timeout_ms": busyTimeoutMs,
        "show_sql": showSql,
    }
    try:
        loaded = load_settings(config_path=config, cli_overrides=cliOverrides)
    except ValueError as exc:
        typer.echo(f"ERROR: invalid settings: {exc}", err=True)
        raise typer.Exit(code=2)

    ensureDir(loaded.settings.log_dir)
    if loaded.settings.lock_dir:
        ensureDir(loaded.settings.lock_dir)

    ctx.obj = {
        "runId": runId,
        "settings": loaded.settings,
        "sources": loaded.sources_used,
        "configPath": config,
    }


@app.command("exec")
def execScript(
    ctx: typer.Context,
    database: str = typer.Argument(..., help="Database path (extension appended if missing)"),
    sql: str = typer.Argument(..., help="SQL script; several statements separated by ';'"),
    bind: Optional[List[str]] = typer.Option(None, "--bind", "-b", help="KEY=VALUE, KEY is position or :name"),
):
    bindings = parseBindings(bind)

    def execute(db: Database, logger: logging.Logger) -> int:
        with Command(db, sql) as cmd:
            applyBindings(cmd, bindings)
            rc = cmd.execute_all()
        if rc != ResultCode.OK:
            typer.echo(f"ERROR: {db.last_error()} (rc={int(rc)})", err=True)
            return 2
        typer.echo(f"ok changes={db.changes()} last_insert_rowid={db.last_insert_rowid()}")
        return 0

    runCommand(ctx, "exec", database, execute)


@app.command("query")
def queryRows(
    ctx: typer.Context,
    database: str = typer.Argument(..., help="Database path (extension appended if missing)"),
    sql: str = typer.Argument(..., help="Single SELECT statement"),
    bind: Optional[List[str]] = typer.Option(None, "--bind", "-b", help="KEY=VALUE, KEY is position or :name"),
    header: bool = typer.Option(False, "--header/--no-header", help="Print column names first"),
):
    bindings = parseBindings(bind)

    def execute(db: Database, logger: logging.Logger) -> int:
        with Query(db, sql) as query:
            applyBindings(query, bindings)
            if header:
                typer.echo("\t".join(name or "" for name in query.column_names()))
            count = 0
            for row in query:
                typer.echo(formatRow(row.values()))
                count += 1
        logEvent(logger, logging.INFO, ctx.obj["runId"], "query", f"rows={count}")
        return 0

    runCommand(ctx, "query", database, execute)


@app.command("check-table")
def checkTable(
    ctx: typer.Context,
    database: str = typer.Argument(..., help="Database path"),
    name: str = typer.Argument(..., help="Table name"),
):
    def execute(db: Database, logger: logging.Logger) -> int:
        exists = db.check_table_exists(name)
        typer.echo(f"table={name} exists={str(exists).lower()}")
        return 0 if exists else 1

    runCommand(ctx, "check-table", database, execute)


@app.command("check-key")
def checkKey(
    ctx: typer.Context,
    database: str = typer.Argument(..., help="Database path"),
    table: str = typer.Argument(..., help="Table name"),
    field: str = typer.Argument(..., help="Column name"),
    value: str = typer.Argument(..., help="Value to look up (bound as a parameter)"),
):
    def execute(db: Database, logger: logging.Logger) -> int:
        exists = db.check_key_exists(table, field, parseBindValue(value))
        typer.echo(f"table={table} field={field} exists={str(exists).lower()}")
        return 0 if exists else 1

    runCommand(ctx, "check-key", database, execute)


@app.command("demo")
def demo(
    ctx: typer.Context,
    database: str = typer.Argument(..., help="Database path; table ccc is recreated"),
):
    def execute(db: Database, logger: logging.Logger) -> int:
        printRunHeader(ctx.obj["runId"], "demo", ctx.obj["settings"], ctx.obj["sources"])
        return runDemo(db, typer.echo, runId=ctx.obj["runId"])

    runCommand(ctx, "demo", database, execute)
