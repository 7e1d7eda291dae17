import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float, min_value: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None:
        value = default
    else:
        try:
            value = float(raw)
        except ValueError:
            value = default
    if min_value is not None:
        return max(min_value, value)
    return value


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    store_backend: str
    store_rest_url: str
    store_rest_key: str
    store_timeout_seconds: float
    log_level: str
    sql_echo: bool
    auto_create_schema: bool
    cors_origins: tuple[str, ...]


def load_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "Stock Ledger"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./stockledger.db"),
        store_backend=os.getenv("STORE_BACKEND", "sql").strip().lower(),
        store_rest_url=os.getenv("STORE_REST_URL", "").rstrip("/"),
        store_rest_key=os.getenv("STORE_REST_KEY", ""),
        store_timeout_seconds=_env_float("STORE_TIMEOUT_SECONDS", 5.0, min_value=0.1),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        sql_echo=_env_bool("SQL_ECHO", False),
        auto_create_schema=_env_bool("AUTO_CREATE_SCHEMA", True),
        cors_origins=tuple(
            origin.strip().rstrip("/")
            for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ),
    )


settings = load_settings()
