from pathlib import Path

from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from cardwise import models  # noqa: F401  (registers the tables)
from cardwise.config import settings


def _is_memory(database: str | None) -> bool:
    return database in (None, "", ":memory:")


def make_engine(url: str, echo: bool = False) -> Engine:
    """
    Build an engine for the given URL.

    SQLite needs check_same_thread=False when shared with web/MCP servers.
    In-memory SQLite gets a StaticPool so every session sees the same tables.
    """
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, echo=echo)

    if _is_memory(parsed.database):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=echo, connect_args={"check_same_thread": False})


engine = make_engine(settings.database_url, echo=settings.sql_echo)


def create_db_and_tables(bind: Engine | None = None) -> None:
    """Create every table defined in cardwise.models. Safe to run repeatedly."""
    bind = bind or engine
    if bind.url.get_backend_name() == "sqlite" and not _is_memory(bind.url.database):
        Path(bind.url.database).parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(bind)


def get_session():
    with Session(engine) as session:
        yield session
