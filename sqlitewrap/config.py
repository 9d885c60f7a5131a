from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import yaml


@dataclass(frozen=True)
class Settings:
    # Engine
    library_path: str | None = None
    busy_timeout_ms: int = 0
    show_sql: bool = False

    # Files
    extension: str = ".sqlite"
    lock_dir: str | None = None
    lock_prefix: str = "sqlite3-db-"

    # Logging
    log_dir: str = "./logs"
    log_level: str = "INFO"


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    sources_used: list[str]


_ENV_NAMES = {
    "library_path": "SQLITEWRAP_LIBRARY",
    "busy_timeout_ms": "SQLITEWRAP_BUSY_TIMEOUT_MS",
    "show_sql": "SQLITEWRAP_SHOW_SQL",
    "extension": "SQLITEWRAP_EXTENSION",
    "lock_dir": "SQLITEWRAP_LOCK_DIR",
    "lock_prefix": "SQLITEWRAP_LOCK_PREFIX",
    "log_dir": "SQLITEWRAP_LOG_DIR",
    "log_level": "SQLITEWRAP_LOG_LEVEL",
}


def _read_yaml_config(path: Path) -> dict:
    if not path.exists():
        return {}
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data


def _env_get(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def parse_bool(v: str | None) -> bool | None:
    if v is None:
        return None
    vv = v.lower()
    if vv in ("1", "true", "yes", "y", "on"):
        return True
    if vv in ("0", "false", "no", "n", "off"):
        return False
    raise ValueError(f"Invalid boolean env value: {v}")


def parse_int(v: str | None) -> int | None:
    if v is None:
        return None
    return int(v)


def load_settings(
    config_path: str | None,
    cli_overrides: dict,
) -> LoadedSettings:
    """
    Priority: CLI > ENV > config > defaults
    """
    sources: list[str] = []
    defaults = Settings()

    # 1) config file
    cfg: dict = {}
    if config_path:
        cfg = _read_yaml_config(Path(config_path))
        if cfg:
            sources.append("config")

    # 2) env
    env = {key: _env_get(name) for key, name in _ENV_NAMES.items()}
    if any(v is not None for v in env.values()):
        sources.append("env")

    merged = {key: cfg.get(key, getattr(defaults, key)) for key in _ENV_NAMES}

    # apply env
    for key in ("library_path", "extension", "lock_dir", "lock_prefix", "log_dir", "log_level"):
        if env[key] is not None:
            merged[key] = env[key]
    if env["busy_timeout_ms"] is not None:
        merged["busy_timeout_ms"] = parse_int(env["busy_timeout_ms"])
    if env["show_sql"] is not None:
        merged["show_sql"] = parse_bool(env["show_sql"])

    # 3) apply CLI overrides (only those explicitly passed)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")

    for k, v in cli_overrides.items():
        if v is None:
            continue
        merged[k] = v

    extension = str(merged["extension"])
    if extension and not extension.startswith("."):
        extension = "." + extension

    settings = Settings(
        library_path=merged["library_path"],
        busy_timeout_ms=int(merged["busy_timeout_ms"] or 0),
        show_sql=bool(merged["show_sql"]),
        extension=extension,
        lock_dir=merged["lock_dir"],
        lock_prefix=str(merged["lock_prefix"]),
        log_dir=str(merged["log_dir"]),
        log_level=str(merged["log_level"]),
    )

    return LoadedSettings(settings=settings, sources_used=sources)
