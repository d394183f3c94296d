"""EVENTRELAY test suite.

Folder taxonomy
- unit/         : Pure-Python checks of one module; stores run on the in-memory adapters.
- contract/     : Event log, dispatch queue and dead-letter behavior asserted once and
                  run against every adapter (in-memory, SQLite, Postgres).
- integration/  : Schema, migrations, triggers and the dispatcher against a real database.
- functional/   : What a user sees from the ``eventrelay`` command line.
- e2e/          : Global CLI options and logging wiring through the real entry point.
- fixtures/     : pytest plugins (sqlite, postgres via testcontainers, data generators).
- helpers/      : Shared utilities such as the controllable clock (no tests here).

General guidance
- Inject a clock instead of sleeping; lease expiry and backoff are tested by moving time.
- Postgres tests skip when Docker or testcontainers are unavailable.
- Property-based tests use hypothesis and carry @pytest.mark.property.
"""
