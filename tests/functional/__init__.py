"""Functional tests.

Drive the ``eventrelay`` command the way an operator would, through
CliRunner against a migrated SQLite file (Postgres where marked slow), and
check what lands on stdout, stderr and in the database.
"""
