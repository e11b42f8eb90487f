from __future__ import annotations

import json
import logging

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from nodeplan.errors import NodeplanError

_err_console = Console(stderr=True)


def get_obj(ctx: typer.Context) -> dict:
    """Resolve the global flags dict through the parent chain (sub-apps start with obj=None)."""
    while ctx is not None:
        if ctx.obj:
            return ctx.obj
        ctx = ctx.parent
    return {}


def json_mode(ctx: typer.Context) -> bool:
    return bool(get_obj(ctx).get("json"))


def setup_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=_err_console, show_path=False)],
        force=True,
    )


def handle_error(ctx: typer.Context, e: Exception) -> None:
    """Print a clean error message and exit 1."""
    obj = get_obj(ctx)

    if isinstance(e, FileNotFoundError):
        msg = f"File not found: {e}"
    elif isinstance(e, ValidationError):
        msg = f"Invalid input: {e}"
    elif isinstance(e, (NodeplanError, ValueError)):
        msg = str(e)
    else:
        msg = f"Error: {e}"

    if obj.get("json"):
        print(json.dumps({"error": msg}))
    else:
        _err_console.print(f"[red]Error:[/red] {msg}")

    if obj.get("verbose"):
        _err_console.print_exception()

    raise typer.Exit(1)


def parse_key_values(raw: str | None, option: str) -> dict[str, str]:
    """'a=1,b=2' -> {'a': '1', 'b': '2'}. Malformed pairs are an error."""
    result: dict[str, str] = {}
    if not raw:
        return result
    for pair in raw.split(","):
        if not pair.strip():
            continue
        key, eq, value = pair.partition("=")
        if not eq or not key.strip() or not value.strip():
            raise typer.BadParameter(f"expected key=value pairs, got {pair.strip()!r}", param_hint=option)
        result[key.strip()] = value.strip()
    return result


def parse_csv(raw: str | None) -> list[str]:
    return [item.strip() for item in (raw or "").split(",") if item.strip()]
