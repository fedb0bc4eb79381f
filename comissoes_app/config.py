"""Configuracao da aplicacao: caminho da base SQLite e nivel de log."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional


BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DB = BASE_DIR / "comissoes.sqlite3"

DB_ENV_VARS = ("COMISSOES_DB_PATH", "DATABASE_PATH")
LOG_LEVEL_ENV_VAR = "COMISSOES_LOG_LEVEL"


@dataclass(frozen=True, slots=True)
class AppConfig:
    db_path: Path = DEFAULT_DB
    log_level: str = "INFO"


def load_config(env: Optional[Mapping[str, str]] = None, **overrides: Any) -> AppConfig:
    """Monta a configuracao: padrao, depois variaveis de ambiente, depois overrides."""
    env = os.environ if env is None else env
    config = AppConfig()
    for var in DB_ENV_VARS:
        value = (env.get(var) or "").strip()
        if value:
            config = replace(config, db_path=Path(value).expanduser())
            break
    level = (env.get(LOG_LEVEL_ENV_VAR) or "").strip()
    if level:
        config = replace(config, log_level=level.upper())

    if overrides.get("db_path") is not None:
        config = replace(config, db_path=Path(overrides["db_path"]).expanduser())
    if overrides.get("log_level") is not None:
        config = replace(config, log_level=str(overrides["log_level"]).upper())
    return config
