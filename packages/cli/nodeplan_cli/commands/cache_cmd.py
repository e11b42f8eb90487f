from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from nodeplan.config import Settings
from nodeplan.pricing.cache import PricingCacheStore
from rich.console import Console

from nodeplan_cli.utils import json_mode

console = Console()

cache_app = typer.Typer(
    name="cache",
    help="Inspect or clear the persistent pricing cache.",
    no_args_is_help=True,
)

CacheFile = Annotated[Path | None, typer.Option("--cache-file", help="Cache file (default: NODEPLAN_PRICING_CACHE_FILE)")]


def _store(cache_file: Path | None) -> PricingCacheStore:
    settings = Settings.from_env()
    return PricingCacheStore(cache_file=cache_file or settings.cache_file, ttl_seconds=settings.cache_ttl_seconds)


@cache_app.callback(invoke_without_command=True)
def cache_callback(ctx: typer.Context) -> None:
    # Propagate json/verbose flags from parent ctx into this sub-app's ctx
    if ctx.obj is None and ctx.parent and ctx.parent.obj:
        ctx.obj = ctx.parent.obj
    elif ctx.obj is None:
        ctx.ensure_object(dict)


@cache_app.command("info")
def cache_info(ctx: typer.Context, cache_file: CacheFile = None) -> None:
    """Show where the pricing cache lives and how many prices it holds."""
    store = _store(cache_file)
    if json_mode(ctx):
        print(json.dumps({"cache_file": str(store.cache_file), "entries": len(store)}))
        return
    console.print(f"Pricing cache: [cyan]{store.cache_file}[/cyan] ({len(store)} entries)")


@cache_app.command("clear")
def cache_clear(ctx: typer.Context, cache_file: CacheFile = None) -> None:
    """Remove every cached price from the persistent cache file."""
    store = _store(cache_file)
    removed = len(store)
    store.clear()
    written = store.save()
    if json_mode(ctx):
        print(json.dumps({"cache_file": str(store.cache_file), "removed": removed, "written": written}))
        return
    if written:
        console.print(f"[green]Cleared {removed} cached price(s)[/green] from {store.cache_file}")
    else:
        console.print(f"[yellow]Could not write {store.cache_file}[/yellow]")
