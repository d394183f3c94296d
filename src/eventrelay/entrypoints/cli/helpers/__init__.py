"""CLI helpers for EVENTRELAY.

Utilities used by the command-line interface: database URL resolution and
sanitization for safe display, message emitters that write to stderr with
emoji->ASCII fallbacks, JSON rendering of records, and the logger-level
option parser.
"""

from .db_url import (
    CANNOT_CONNECT_MSG,
    INVALID_URL_FORMAT_MSG,
    MISSING_DB_URL_MSG,
    resolve_db_url,
    sanitize_url,
)
from .messages import error, fields, success, warn
from .render import to_json

__all__ = [
    "CANNOT_CONNECT_MSG",
    "INVALID_URL_FORMAT_MSG",
    "MISSING_DB_URL_MSG",
    "error",
    "fields",
    "resolve_db_url",
    "sanitize_url",
    "success",
    "to_json",
    "warn",
]
