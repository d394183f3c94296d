"""Database plumbing shared by the relational adapters.

Engine factory, dialect detection, the shared `MetaData`, portable column
types, and the packaged Alembic migrations.
"""

from .dialects import DialectName, UnsupportedDialect
from .engine import is_sqlite, make_engine
from .metadata import metadata

__all__ = ["DialectName", "UnsupportedDialect", "is_sqlite", "make_engine", "metadata"]
