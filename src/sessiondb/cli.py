"""sessiondb CLI - maintenance commands for the session collection.

Designed for:
- Cron-driven garbage collection (``sessiondb gc``)
- Deployment hooks (``sessiondb ensure-indexes``)
- Debugging which configuration is active (``sessiondb config --json``)
"""
from __future__ import annotations

import json
import logging
from typing import Optional

import typer
from pymongo.errors import PyMongoError

from sessiondb.exceptions import SessionError

app = typer.Typer(help="sessiondb CLI - Maintain MongoDB session records")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def gc(
    lifetime: Optional[int] = typer.Option(
        None,
        "--lifetime",
        "-l",
        help="Remove records idle for more than this many seconds (default: session.lifetime).",
    ),
) -> None:
    """Remove expired session records.

    Example:
        sessiondb gc
        sessiondb gc --lifetime 3600
    """
    from sessiondb.session import create_session_store, resolve_lifetime
    from sessiondb.settings import load_settings

    try:
        settings = load_settings()
        _configure_logging(settings.advanced.log_level)
        store = create_session_store()
        seconds = lifetime if lifetime is not None else resolve_lifetime(settings)
        store.gc(seconds)
    except (SessionError, PyMongoError) as e:
        typer.echo(f"❌ Garbage collection failed: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"✓ Removed sessions idle for more than {seconds}s")


@app.command("ensure-indexes")
def ensure_indexes() -> None:
    """Create the unique id index and the expiry index.

    Example:
        sessiondb ensure-indexes
    """
    from sessiondb.session import create_session_store
    from sessiondb.settings import load_settings

    try:
        settings = load_settings()
        _configure_logging(settings.advanced.log_level)
        store = create_session_store()
        store.ensure_indexes()
    except (SessionError, PyMongoError) as e:
        typer.echo(f"❌ Failed to create indexes: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"✓ Indexes ready on {store.database_name}.{store.collection_name}")


@app.command()
def config(
    json_out: bool = typer.Option(
        False,
        "--json",
        help="Output JSON for scripting.",
    ),
) -> None:
    """Show loaded configuration (collection, field names, lifetime).

    Examples:
        sessiondb config
        sessiondb config --json
    """
    from sessiondb.session import resolve_session_options
    from sessiondb.settings import load_settings

    try:
        settings = load_settings()
        session_cfg = resolve_session_options(settings)
    except SessionError as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(code=1)

    lifetime = session_cfg.lifetime
    payload = {
        "project_root": str(settings.project_root),
        "database": session_cfg.database,
        "collection": session_cfg.collection,
        "id_field": session_cfg.id_field,
        "data_field": session_cfg.data_field,
        "time_field": session_cfg.time_field,
        "created_field": session_cfg.created_field,
        "lifetime": lifetime,
    }

    if json_out:
        typer.echo(json.dumps(payload, default=str))
        return

    typer.echo("*sessiondb Configuration*")
    typer.echo("")
    typer.echo(f"Database: {payload['database'] or '(not set)'}")
    typer.echo(f"Collection: {payload['collection'] or '(not set)'}")
    typer.echo(f"Lifetime: {lifetime}s")
    typer.echo("")
    typer.echo("Fields:")
    typer.echo(f"  • id: {session_cfg.id_field}")
    typer.echo(f"  • data: {session_cfg.data_field}")
    typer.echo(f"  • time: {session_cfg.time_field}")
    typer.echo(f"  • created: {session_cfg.created_field}")


if __name__ == "__main__":
    app()
