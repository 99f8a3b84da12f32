"""Database initialization and persistence layer."""

from lure_catalog.db.engine import (
    get_database_url,
    get_session,
    get_session_factory,
    init_db,
    reset_engine,
)
from lure_catalog.db.models import (
    Base,
    LureDB,
    WorkflowEntryDB,
)
from lure_catalog.db.repositories import (
    CatalogRepository,
    WorkflowRepository,
)

__all__ = [
    # Engine
    "get_database_url",
    "get_session",
    "get_session_factory",
    "init_db",
    "reset_engine",
    # Models
    "Base",
    "LureDB",
    "WorkflowEntryDB",
    # Repositories
    "CatalogRepository",
    "WorkflowRepository",
]
