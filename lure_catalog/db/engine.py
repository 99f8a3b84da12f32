"""SQLite engine and sessions for the catalog and workflow tables.

The database location comes from ``DATABASE_URL``: either a full SQLAlchemy
URL or a plain file path. Without it the catalog lives under the user's
home directory. The engine is created on first use and shared by the CLI,
the pipeline and the background jobs.
"""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

DEFAULT_DB_PATH = Path.home() / ".lure_catalog" / "lure_catalog.db"

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_database_url() -> str:
    """Resolve ``DATABASE_URL``, creating the parent directory of a file path."""
    configured = os.environ.get("DATABASE_URL", "")
    if "://" in configured:
        return configured
    path = Path(configured).expanduser() if configured else DEFAULT_DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def _get_engine() -> Engine:
    global _engine
    if _engine is None:
        url = get_database_url()
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        _engine = create_engine(url, connect_args=connect_args)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Shared session factory bound to the configured database."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=_get_engine(), autoflush=False)
    return _session_factory


@contextmanager
def get_session() -> Iterator[Session]:
    """Open a session and close it on exit; callers commit."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def init_db() -> None:
    """Create the catalog and workflow tables if they are missing."""
    from lure_catalog.db.models import Base

    Base.metadata.create_all(bind=_get_engine())


def reset_engine() -> None:
    """Dispose the shared engine so the next call re-reads ``DATABASE_URL``."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
