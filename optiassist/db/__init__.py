"""
Optical-Assist Database Module

Database components:
- PostgreSQL with pgvector integration
- SQLAlchemy models
- Pooled connection management
"""

from optiassist.db.models import (
    EMBEDDING_DIMENSION,
    Base,
    Document,
    DocumentChunk,
    QueryLog,
    SeedDocument,
)
from optiassist.db.postgres import (
    check_database_health,
    check_pgvector_extension,
    close_db,
    get_db_session,
    get_engine,
    get_session_maker,
    init_db,
    normalize_database_url,
)

__all__ = [
    # Base
    "Base",
    # Models
    "Document",
    "DocumentChunk",
    "SeedDocument",
    "QueryLog",
    # Constants
    "EMBEDDING_DIMENSION",
    # Functions
    "get_db_session",
    "get_engine",
    "get_session_maker",
    "init_db",
    "close_db",
    "check_database_health",
    "check_pgvector_extension",
    "normalize_database_url",
]
