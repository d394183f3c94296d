"""Integration tests.

Schema constraints, append-only triggers, migrations, the unit of work and
the dispatcher against real SQLite files and a Postgres container. Postgres
cases skip cleanly when Docker is not available.
"""
