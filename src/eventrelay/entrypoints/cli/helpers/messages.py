"""Terminal message helpers for the EVENTRELAY CLI.

Status lines (`warn`, `success`, `error`) go to **stderr** with an emoji
marker that falls back to ASCII on terminals that cannot encode it, so
stdout stays clean for JSON output. `fields` prints aligned ``label : value``
report lines to stdout.

Example:
    ```py
    success("Recorded event 12")     # ✅  Recorded event 12
    fields([("Pending", 3), ("Dead letters", 0)])
    # Pending      : 3
    # Dead letters : 0
    ```
"""

from collections.abc import Iterable

import click

# kind -> (emoji, ascii fallback, color)
_MARKERS = {
    "warn": ("⚠️", "[!]", "yellow"),
    "success": ("✅", "[OK]", "green"),
    "error": ("❌", "[X]", "red"),
}


def _supports_character(character: str) -> bool:
    """Return True if `character` can be encoded on the current stderr stream.

    The stream is looked up on every call; tests and pagers swap it.
    """
    stream = click.get_text_stream("stderr")  # pragma: no mutate
    try:
        character.encode(getattr(stream, "encoding"))
    except UnicodeEncodeError:
        return False
    return True


def _glyph(kind: str) -> str:
    emoji, fallback, _ = _MARKERS[kind]
    return emoji if _supports_character(emoji) else fallback


def caution_glyph() -> str:
    """Return "⚠️", or "[!]" when stderr cannot encode it."""
    return _glyph("warn")


def success_glyph() -> str:
    """Return "✅", or "[OK]" when stderr cannot encode it."""
    return _glyph("success")


def error_glyph() -> str:
    """Return "❌", or "[X]" when stderr cannot encode it."""
    return _glyph("error")


def _emit(kind: str, msg: str) -> None:
    color = _MARKERS[kind][2]
    click.secho(f"{_glyph(kind)}  {msg}", fg=color, bold=True, err=True)


def warn(msg: str) -> None:
    """Emit a bold yellow warning line to stderr.

    Example:
        ``⚠️  Interrupted; dispatcher stopped``
    """
    _emit("warn", msg)


def success(msg: str) -> None:
    """Emit a bold green success line to stderr.

    Example:
        ``✅  Recovered 2 dispatch entries``
    """
    _emit("success", msg)


def error(msg: str) -> None:
    """Emit a bold red error line to stderr.

    Example:
        ``❌  No event with id 42``
    """
    _emit("error", msg)


def fields(rows: Iterable[tuple[str, object]]) -> None:
    """Echo ``label : value`` lines to stdout with the colons aligned."""
    rows = list(rows)
    width = max((len(label) for label, _ in rows), default=0)
    for label, value in rows:
        click.echo(f"{label.ljust(width)} : {value}")
