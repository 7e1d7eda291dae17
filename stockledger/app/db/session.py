from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker

from stockledger.app.core.config import settings


def build_engine(database_url: str, timeout_seconds: float = 5.0, echo: bool = False):
    """
    Engine SQLAlchemy avec un timeout borné sur chaque appel au store.
    - sqlite : busy timeout du driver ; base ":memory:" partagée via StaticPool
    - postgres : connect_timeout + statement_timeout côté serveur
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": timeout_seconds}}
        if ":memory:" in database_url or database_url.rstrip("/") in {"sqlite:", "sqlite+pysqlite:"}:
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)

    connect_args = {
        "connect_timeout": max(1, int(timeout_seconds)),
        "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
    }
    return create_engine(
        database_url,
        echo=echo,
        connect_args=connect_args,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
    )


engine = build_engine(settings.database_url, settings.store_timeout_seconds, settings.sql_echo)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
