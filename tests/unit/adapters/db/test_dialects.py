"""Unit tests for `DialectName`: name normalization and backend capabilities."""

from types import SimpleNamespace

import pytest

from eventrelay.adapters.db.dialects import DialectName, UnsupportedDialect
from eventrelay.adapters.db.engine import make_engine

POSTGRES_SPELLINGS = ["postgresql", "POSTGRES", " pg ", "postgresql+psycopg", "postgres+psycopg2"]
SQLITE_SPELLINGS = ["sqlite", "SQLite", "sqlite+pysqlite"]


@pytest.mark.parametrize("name", POSTGRES_SPELLINGS)
def test_postgres_spellings(name):
    assert DialectName.from_string(name) is DialectName.POSTGRES


@pytest.mark.parametrize("name", SQLITE_SPELLINGS)
def test_sqlite_spellings(name):
    assert DialectName.from_string(name) is DialectName.SQLITE


@pytest.mark.parametrize("name", [None, "", "   ", "mysql", "mssql+pyodbc", "duckdb"])
def test_unknown_dialects_are_rejected(name):
    with pytest.raises(UnsupportedDialect, match="Unsupported dialect"):
        DialectName.from_string(name)


def test_members_compare_equal_to_sqlalchemy_names():
    assert DialectName.POSTGRES == "postgresql"
    assert DialectName.SQLITE == "sqlite"


@pytest.mark.parametrize(
    ("dialect", "skip_locked", "single_writer"),
    [(DialectName.POSTGRES, True, False), (DialectName.SQLITE, False, True)],
)
def test_claim_capabilities(dialect, skip_locked, single_writer):
    """Postgres claims with SKIP LOCKED; SQLite relies on its single writer."""
    assert dialect.supports_skip_locked is skip_locked
    assert dialect.serializes_writers is single_writer


def test_from_sqlalchemy_reads_dialect_name():
    engine_like = SimpleNamespace(dialect=SimpleNamespace(name="postgresql"))
    assert DialectName.from_sqlalchemy(engine_like) is DialectName.POSTGRES  # type: ignore[arg-type]


def test_from_sqlalchemy_without_dialect():
    with pytest.raises(UnsupportedDialect, match="SimpleNamespace"):
        DialectName.from_sqlalchemy(SimpleNamespace())  # type: ignore[arg-type]


def test_from_sqlalchemy_on_engine_and_connection():
    engine = make_engine("sqlite+pysqlite:///:memory:")
    try:
        assert DialectName.from_sqlalchemy(engine) is DialectName.SQLITE
        with engine.connect() as conn:
            assert DialectName.from_sqlalchemy(conn) is DialectName.SQLITE
    finally:
        engine.dispose()
