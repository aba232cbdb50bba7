from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'sql' (default) or 'memory'
    - DATABASE_URL: SQLAlchemy database URL. Default 'sqlite:///./data/tasks.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: logging level name (default: INFO)
    - SQL_ECHO: 'true' to log every SQL statement (default: false)
    """

    persistence_backend: str = "sql"
    database_url: str = "sqlite:///./data/tasks.db"
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    sql_echo: bool = False


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "sql").strip().lower()
    if backend not in {"memory", "sql"}:
        backend = "sql"

    return Settings(
        persistence_backend=backend,
        database_url=_get_env("DATABASE_URL", "sqlite:///./data/tasks.db").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        sql_echo=_parse_bool(_get_env("SQL_ECHO", "false"), False),
    )


# PUBLIC_INTERFACE
def configure_logging(level: Optional[str] = None) -> None:
    """Install a basic stderr handler on the root logger at the given level."""
    name = (level or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
