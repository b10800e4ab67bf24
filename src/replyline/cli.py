"""Replyline CLI: Typer app with all subcommands."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Optional

import typer

app = typer.Typer(
    name="replyline",
    help="Conversation and follow-up reconciliation over outreach email logs.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr."),
):
    """Replyline."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@contextmanager
def _service():
    """Service over the configured database, closed on exit."""
    from replyline.config import load_config
    from replyline.database import open_db
    from replyline.service import build_service

    config = load_config()
    with open_db(config) as conn:
        yield build_service(config, conn)


def _fmt_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


# --- Database commands ---

db_app = typer.Typer(help="Database management commands.")
app.add_typer(db_app, name="db")


@db_app.callback(invoke_without_command=True)
def db_callback(
    ctx: typer.Context,
    init: bool = typer.Option(False, "--init", help="Create tables if missing."),
    reset: bool = typer.Option(False, "--reset", help="Wipe and recreate the database."),
    stats: bool = typer.Option(False, "--stats", help="Show row counts for all tables."),
    migrate: bool = typer.Option(False, "--migrate", help="Add columns missing from older databases."),
):
    """Database management."""
    from replyline.config import load_config
    from replyline.database import db_stats, get_db, migrate_db, open_db, reset_db

    config = load_config()

    if reset:
        reset_db(config).close()
        typer.echo("Database reset and initialized.")
        return

    if migrate:
        conn = get_db(config)
        try:
            actions = migrate_db(conn)
        finally:
            conn.close()
        for action in actions:
            typer.echo(f"  {action}")
        typer.echo(f"Schema migrations applied: {len(actions)}.")
        return

    if init or stats:
        with open_db(config) as conn:
            counts = db_stats(conn)
        if init:
            typer.echo(f"Database initialized at {config.storage.sqlite_path}.")
        if stats:
            typer.echo("Table row counts:")
            for table, count in counts.items():
                typer.echo(f"  {table:20s} {count if count >= 0 else 'missing'}")
        return

    # No flags, show help
    typer.echo(ctx.get_help())


# --- Engine commands ---

@app.command()
def conversation(
    account: str = typer.Argument(..., help="Account (sender) address."),
    contact: str = typer.Argument(..., help="Contact address or contact id."),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Only events matching keyword."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON."),
):
    """Show the reconciled conversation with a contact."""
    with _service() as service:
        email = service.resolve_contact_email(contact)
        if not email:
            typer.echo(f"Unknown contact: {contact}", err=True)
            raise typer.Exit(1)

        if search:
            events = service.search_conversation(account, email, search)
        else:
            events = service.get_conversation(account, email)

        if as_json:
            typer.echo(json.dumps([e.to_dict() for e in events], indent=2))
            return

        typer.echo(f"Conversation with {email}: {len(events)} events")
        for e in events:
            typer.echo(f"  {_fmt_time(e.timestamp)}  {e.direction.value:<9} {e.subject}")


@app.command()
def followups(
    account: str = typer.Argument(..., help="Account (sender) address."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON."),
):
    """List contacts overdue for a follow-up, most overdue first."""
    with _service() as service:
        queue = service.get_follow_up_queue(account)
        if as_json:
            typer.echo(json.dumps([s.to_dict() for s in queue], indent=2))
            return

        if not queue:
            typer.echo("No contacts need a follow-up.")
            return
        typer.echo(f"{len(queue)} contacts need a follow-up:")
        for s in queue:
            typer.echo(
                f"  {s.contact.name:<25} {s.email:<35} last {_fmt_time(s.last_communication_at)}"
                f"  sent {s.total_event_count}"
            )


@app.command()
def stats(
    account: str = typer.Argument(..., help="Account (sender) address."),
    contact: str = typer.Argument(..., help="Contact address or contact id."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON."),
):
    """Show conversation statistics for a contact."""
    with _service() as service:
        email = service.resolve_contact_email(contact)
        if not email:
            typer.echo(f"Unknown contact: {contact}", err=True)
            raise typer.Exit(1)

        result = service.get_conversation_stats(account, email)
        if as_json:
            typer.echo(json.dumps(result.to_dict(), indent=2))
            return

        typer.echo(f"Conversation stats for {email}:")
        typer.echo(f"  Total:    {result.total}")
        typer.echo(f"  Outbound: {result.outbound}")
        typer.echo(f"  Inbound:  {result.inbound}")
        typer.echo(f"  First:    {_fmt_time(result.first_at)}")
        typer.echo(f"  Last:     {_fmt_time(result.last_at)}")


@app.command()
def contacts(
    account: str = typer.Argument(..., help="Account (sender) address."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON."),
):
    """List every contact the account has written to, most recent first."""
    with _service() as service:
        summaries = service.list_conversation_contacts(account)
        if as_json:
            typer.echo(json.dumps([s.to_dict() for s in summaries], indent=2))
            return

        typer.echo(f"{len(summaries)} contacts:")
        for s in summaries:
            typer.echo(
                f"  {s.contact.name:<25} {s.email:<35} last {_fmt_time(s.last_communication_at)}"
                f"  emails {s.total_event_count}"
            )


@app.command()
def export(
    account: str = typer.Argument(..., help="Account (sender) address."),
    export_contacts: bool = typer.Option(False, "--contacts", help="Export the contact overview instead of the queue."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file path."),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: csv or excel."),
):
    """Export the follow-up queue (or contact overview) to CSV or Excel."""
    from pathlib import Path

    from replyline.config import load_config
    from replyline.export import FORMATS, export_summaries

    config = load_config()
    fmt = fmt or config.export.default_format
    if fmt not in FORMATS:
        typer.echo(f"Unknown format: {fmt}. Use: {', '.join(FORMATS)}", err=True)
        raise typer.Exit(1)

    with _service() as service:
        if export_contacts:
            summaries = service.list_conversation_contacts(account)
            default_name, title = "contacts_export.csv", "Contacts"
        else:
            summaries = service.get_follow_up_queue(account)
            default_name, title = "followups_export.csv", "Follow-ups"

        output = output or str(Path(config.export.output_dir) / default_name)
        path = export_summaries(summaries, output, fmt=fmt, sheet_title=title)
        typer.echo(f"Exported {len(summaries)} rows to {path}")


# --- Web server ---

@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Bind host."),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port."),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload for development."),
):
    """Start the JSON API."""
    import uvicorn

    typer.echo(f"Starting Replyline API at http://{host}:{port}/api")
    uvicorn.run(
        "replyline.web.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


if __name__ == "__main__":
    app()
