"""Event log, dispatch queue and dead-letter adapters.

- `sqlalchemy_adapters`: relational implementation (PostgreSQL, SQLite).
- `in_memory_adapters`: mutex-guarded implementation for tests.
- `schema`: the table definitions shared with the migrations.
- `mapping`: row <-> record conversion and transition value builders.
"""
