"""JSON rendering of records for CLI output."""

import dataclasses
import json
from datetime import datetime
from enum import Enum
from typing import Any


def _default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(record: Any, *, indent: int | None = 2) -> str:
    """Render a dataclass record (or a list of them) as JSON text."""
    if isinstance(record, list):
        document: Any = [dataclasses.asdict(r) for r in record]
    else:
        document = dataclasses.asdict(record)
    return json.dumps(document, indent=indent, default=_default, sort_keys=True)
