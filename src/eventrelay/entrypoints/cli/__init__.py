"""The ``eventrelay`` command-line interface."""
