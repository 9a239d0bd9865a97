from contextlib import contextmanager
from typing import Generator

from sqlmodel import create_engine, SQLModel, Session

from storefront.config import DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    # SQLite connections are shared across the request thread pool.
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


# Engine singleton
engine = create_engine(DATABASE_URL, echo=False, **_engine_kwargs(DATABASE_URL))


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one database session per request."""
    with Session(engine) as session:
        yield session


@contextmanager
def get_session_context() -> Generator[Session, None, None]:
    """Session context manager for code running outside FastAPI Depends (seed, scripts)."""
    with Session(engine) as session:
        yield session


def create_tables(bind=None) -> None:
    """Create every table registered on the SQLModel metadata."""
    import storefront.model  # noqa: F401  registers the tables

    SQLModel.metadata.create_all(bind or engine)
