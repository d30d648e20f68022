#!/usr/bin/env python3
"""
Command-line interface for Sandwich Ops.

Provides deletion history, restore and purge tools for administrators.
"""

import functools
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

import click
import pandas as pd  # type: ignore[import-untyped]
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .access_control import Role, User
from .admin import ActionStatus, AdminActionResult, AdminService, create_admin_service
from .config import LogLevel, OpsConfig, get_config, set_config
from .database import create_db_engine, init_db
from .soft_delete import DeletionAuditEntry, SoftDeleteError

console = Console()

F = TypeVar("F", bound=Callable[..., Any])


def configure_logging(level: str) -> None:
    """Route the package's log records through rich on stderr."""
    package_logger = logging.getLogger("sandwich_ops")
    package_logger.setLevel(level)
    package_logger.handlers = [
        RichHandler(console=Console(stderr=True), show_path=False, log_time_format="[%X]")
    ]


def reports_errors(activity: str) -> Callable[[F], F]:
    """Print failures of a command in red and exit with status 1."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except PermissionError as e:
                console.print(f"[red]Permission denied: {escape(str(e))}[/red]")
            except SQLAlchemyError:
                logging.getLogger(__name__).exception(f"Database error while {activity}")
                console.print(
                    f"[red]Error {activity}: the database is unavailable, "
                    "please try again later[/red]"
                )
            except (SoftDeleteError, ValueError) as e:
                console.print(f"[red]Error {activity}: {escape(str(e))}[/red]")
            sys.exit(1)

        return wrapper  # type: ignore[return-value]

    return decorator


def _admin(ctx: click.Context) -> AdminService:
    if "admin" not in ctx.obj:
        ctx.obj["admin"] = create_admin_service(ctx.obj["config"])
    return ctx.obj["admin"]  # type: ignore[no-any-return]


def _user(ctx: click.Context) -> User:
    return ctx.obj["user"]  # type: ignore[no-any-return]


def _format_time(value: Any) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


def _entry_status(entry: DeletionAuditEntry) -> str:
    if entry.is_restored:
        return "[green]restored[/green]"
    if not entry.can_restore:
        return "[red]purged[/red]"
    return "[yellow]deleted[/yellow]"


def _print_result(result: AdminActionResult) -> None:
    """Show an admin outcome; blocked and unavailable outcomes exit with 1."""
    if result.status == ActionStatus.COMPLETED:
        console.print(f"[green]✓[/green] {result.message}")
    elif result.status == ActionStatus.NO_CHANGE:
        console.print(
            f"[dim]No change: {result.table_name} record {result.record_id} "
            "is already in that state or does not exist[/dim]"
        )
    elif result.status == ActionStatus.BLOCKED:
        console.print(f"[red]✗ Blocked:[/red] {escape(result.message)}")
        sys.exit(1)
    else:
        console.print(f"[red]✗ {result.message}[/red]")
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON or YAML configuration file",
)
@click.option("--database-url", envvar="SANDWICH_OPS_DATABASE_URL", help="Database URL")
@click.option(
    "--actor",
    envvar="SANDWICH_OPS_ACTOR_ID",
    help="Acting user id recorded in the deletion ledger",
)
@click.option(
    "--role",
    envvar="SANDWICH_OPS_ACTOR_ROLE",
    type=click.Choice([role.value for role in Role]),
    default=Role.VOLUNTEER.value,
    show_default=True,
    help="Role of the acting user",
)
@click.option(
    "--log-level",
    type=click.Choice([level.value for level in LogLevel], case_sensitive=False),
    help="Log level (defaults to the configured level)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Optional[str],
    database_url: Optional[str],
    actor: Optional[str],
    role: str,
    log_level: Optional[str],
) -> None:
    """Sandwich Ops - soft delete and deletion audit tools."""
    try:
        config = OpsConfig.from_file(config_file) if config_file else get_config()
    except ValueError as e:
        console.print(f"[red]Error loading configuration: {escape(str(e))}[/red]")
        sys.exit(1)

    if database_url:
        config = config.model_copy(update={"database_url": database_url})
    set_config(config)
    configure_logging((log_level or config.log_level.value).upper())

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["user"] = User.with_role(actor or config.default_actor_id, role)

    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                f"[bold blue]Sandwich Ops[/bold blue] v{__version__}\n"
                "[dim]Soft delete and deletion audit tools[/dim]\n\n"
                "Use [bold]sandwich-ops --help[/bold] to see available commands.",
                border_style="blue",
            )
        )


@cli.group()
def config() -> None:
    """Inspect configuration."""
    pass


@config.command("show")
@click.option("--format", type=click.Choice(["table", "json", "yaml"]), default="table")
@click.pass_context
def config_show(ctx: click.Context, format: str) -> None:
    """Display current configuration."""
    config_dict = ctx.obj["config"].to_dict()

    if format == "json":
        click.echo(json.dumps(config_dict, indent=2))
    elif format == "yaml":
        import yaml  # type: ignore[import-untyped]

        click.echo(yaml.dump(config_dict, default_flow_style=False))
    else:
        table = Table(title="Sandwich Ops Configuration", show_header=True)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        categories = {
            "General": ["application_name", "environment", "log_level"],
            "Database": ["database_url", "echo_sql"],
            "Soft Delete": [
                "default_actor_id",
                "default_deletion_reason",
                "bulk_deletion_reason",
                "bulk_max_workers",
            ],
            "Ledger": ["history_page_size"],
        }

        for category, settings in categories.items():
            table.add_row(f"[bold]{category}[/bold]", "")
            for setting in settings:
                value = config_dict[setting]
                if isinstance(value, bool):
                    value = "✓" if value else "✗"
                table.add_row(f"  {setting}", str(value))

        console.print(table)


@config.command("validate")
@click.pass_context
def config_validate(ctx: click.Context) -> None:
    """Validate current configuration."""
    config: OpsConfig = ctx.obj["config"]
    issues = []
    warnings = []

    is_sqlite = config.database_url.startswith("sqlite")
    if config.environment == "production":
        if config.database_url in ("sqlite://", "sqlite:///:memory:"):
            issues.append("In-memory database loses the deletion ledger on exit")
        elif is_sqlite:
            warnings.append("SQLite is not recommended for production")

    if is_sqlite and config.bulk_max_workers > 1:
        warnings.append("SQLite serializes writers; bulk_max_workers > 1 gains nothing")

    if config.echo_sql and config.environment == "production":
        warnings.append("echo_sql logs every statement including record data")

    if issues:
        console.print("[red]✗ Configuration validation failed:[/red]")
        for issue in issues:
            console.print(f"  [red]• {issue}[/red]")
        sys.exit(1)

    console.print("[green]✓ Configuration is valid[/green]")
    if warnings:
        console.print("\n[yellow]⚠ Warnings:[/yellow]")
        for warning in warnings:
            console.print(f"  [yellow]• {warning}[/yellow]")


@cli.group()
def db() -> None:
    """Database management."""
    pass


@db.command("init")
@click.pass_context
@reports_errors("initializing the database")
def db_init(ctx: click.Context) -> None:
    """Create the ledger and entity tables."""
    config: OpsConfig = ctx.obj["config"]
    init_db(create_db_engine(config.database_url, echo=config.echo_sql))
    console.print("[green]✓ Database initialized[/green]")


@cli.group()
def history() -> None:
    """Deletion history and reporting."""
    pass


@history.command("list")
@click.option("--table", "table_name", help="Filter by table name")
@click.option("--record-id", help="Filter by record id")
@click.option("--limit", type=int, help="Entries per page")
@click.option("--cursor", help="Cursor printed by the previous page")
@click.option("--format", type=click.Choice(["table", "json", "csv"]), default="table")
@click.pass_context
@reports_errors("listing deletion history")
def history_list(
    ctx: click.Context,
    table_name: Optional[str],
    record_id: Optional[str],
    limit: Optional[int],
    cursor: Optional[str],
    format: str,
) -> None:
    """List deletion history, most recent first."""
    page = _admin(ctx).history_page(
        _user(ctx), table_name=table_name, record_id=record_id, cursor=cursor, limit=limit
    )

    if format == "json":
        click.echo(json.dumps(page.model_dump(mode="json"), indent=2))
        return
    if format == "csv":
        df = pd.DataFrame([entry.model_dump(mode="json") for entry in page.entries])
        click.echo(df.to_csv(index=False))
        return

    if not page.entries:
        console.print("[yellow]No deletion history found matching criteria[/yellow]")
        return

    table = Table(title=f"Deletion History ({len(page.entries)} entries)")
    table.add_column("ID", style="dim")
    table.add_column("Deleted At", style="cyan")
    table.add_column("Record", style="blue")
    table.add_column("By", style="green")
    table.add_column("Reason")
    table.add_column("Status")

    for entry in page.entries:
        table.add_row(
            str(entry.id),
            _format_time(entry.deleted_at),
            f"{entry.table_name}:{entry.record_id}",
            entry.deleted_by,
            entry.deletion_reason or "",
            _entry_status(entry),
        )

    console.print(table)
    if page.next_cursor:
        console.print(f"[dim]More entries: --cursor {page.next_cursor}[/dim]")


@history.command("export")
@click.option("--output", type=click.Path(), required=True, help="Output file path")
@click.option("--format", type=click.Choice(["json", "csv", "excel"]), default="csv")
@click.option("--table", "table_name", help="Filter by table name")
@click.pass_context
@reports_errors("exporting deletion history")
def history_export(
    ctx: click.Context, output: str, format: str, table_name: Optional[str]
) -> None:
    """Export deletion history for reporting."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Exporting deletion history...", total=None)

        entries = _admin(ctx).deletion_history(_user(ctx), table_name=table_name)
        progress.update(task, description=f"Found {len(entries)} entries, exporting...")

        rows: List[Dict[str, Any]] = []
        for entry in entries:
            row = entry.model_dump(mode="json")
            row["record_data"] = json.dumps(row["record_data"], sort_keys=True)
            rows.append(row)
        df = pd.DataFrame(rows)

        output_path = Path(output)
        if format == "json":
            df.to_json(output_path, orient="records", indent=2)
        elif format == "excel":
            df.to_excel(output_path, index=False, engine="openpyxl")
        else:  # csv
            df.to_csv(output_path, index=False)

        progress.stop()

    console.print(f"[green]✓ Exported {len(entries)} deletion entries to {output_path}[/green]")


@history.command("stats")
@click.pass_context
@reports_errors("calculating statistics")
def history_stats(ctx: click.Context) -> None:
    """Display deletion statistics."""
    summary = _admin(ctx).deletion_summary(_user(ctx))

    if not summary.total_deletions:
        console.print("[yellow]No deletions recorded[/yellow]")
        return

    console.print(
        Panel.fit(
            f"[bold]Deletion Statistics[/bold]\n\n"
            f"Total deletions: [cyan]{summary.total_deletions:,}[/cyan]\n"
            f"Restorable: [yellow]{summary.restorable}[/yellow]\n"
            f"Restored: [green]{summary.restored}[/green]\n"
            f"Purged: [red]{summary.purged}[/red]",
            border_style="blue",
        )
    )

    table = Table(title="Deletions by Table")
    table.add_column("Table", style="cyan")
    table.add_column("Count", style="green")
    for name, count in sorted(summary.by_table.items(), key=lambda x: x[1], reverse=True):
        table.add_row(name, str(count))
    console.print(table)

    console.print()
    table = Table(title="Deletions by Actor")
    table.add_column("Actor", style="cyan")
    table.add_column("Count", style="green")
    for actor, count in sorted(summary.by_actor.items(), key=lambda x: x[1], reverse=True):
        table.add_row(actor, str(count))
    console.print(table)


@history.command("show")
@click.argument("entry_id", type=int)
@click.pass_context
@reports_errors("showing the deletion entry")
def history_show(ctx: click.Context, entry_id: int) -> None:
    """Show one deletion entry with the captured record data."""
    entry = _admin(ctx).audit_entry(_user(ctx), entry_id)
    if entry is None:
        console.print(f"[red]Deletion entry {entry_id} not found[/red]")
        sys.exit(1)

    console.print(
        Panel.fit(
            f"Record: [blue]{entry.table_name}:{entry.record_id}[/blue]\n"
            f"Deleted: [cyan]{_format_time(entry.deleted_at)}[/cyan] "
            f"by [green]{entry.deleted_by}[/green]\n"
            f"Reason: {entry.deletion_reason or '[dim]none[/dim]'}\n"
            f"Status: {_entry_status(entry)}",
            title=f"Deletion Entry {entry.id}",
            border_style="blue",
        )
    )

    table = Table(title="Record Data")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in (entry.record_data or {}).items():
        table.add_row(key, "[dim]null[/dim]" if value is None else str(value))
    console.print(table)


@cli.group()
def records() -> None:
    """Delete, restore and purge records."""
    pass


@records.command("delete")
@click.argument("table")
@click.argument("record_id")
@click.option("--reason", help="Reason recorded in the deletion ledger")
@click.pass_context
@reports_errors("deleting the record")
def records_delete(
    ctx: click.Context, table: str, record_id: str, reason: Optional[str]
) -> None:
    """Soft delete a record (child records follow where configured)."""
    _print_result(_admin(ctx).delete_record(_user(ctx), table, record_id, reason=reason))


@records.command("restore")
@click.argument("table")
@click.argument("record_id")
@click.pass_context
@reports_errors("restoring the record")
def records_restore(ctx: click.Context, table: str, record_id: str) -> None:
    """Restore a soft deleted record."""
    _print_result(_admin(ctx).restore_record(_user(ctx), table, record_id))


@records.command("purge")
@click.argument("table")
@click.argument("record_id")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
@reports_errors("purging the record")
def records_purge(ctx: click.Context, table: str, record_id: str, yes: bool) -> None:
    """Permanently remove a soft deleted record."""
    if not yes:
        click.confirm(
            f"Permanently delete {table} record {record_id}? This cannot be undone",
            abort=True,
        )
    _print_result(_admin(ctx).purge_record(_user(ctx), table, record_id))


@records.command("bulk-delete")
@click.argument("table")
@click.argument("record_ids", nargs=-1, required=True)
@click.option("--reason", help="Reason recorded in the deletion ledger")
@click.pass_context
@reports_errors("bulk deleting records")
def records_bulk_delete(
    ctx: click.Context, table: str, record_ids: Tuple[str, ...], reason: Optional[str]
) -> None:
    """Soft delete several records; failures do not stop the batch."""
    result = _admin(ctx).bulk_delete(_user(ctx), table, record_ids, reason=reason)
    tally = result.bulk
    if tally is None:
        _print_result(result)
        return

    style = "green" if not tally.failed else "yellow"
    console.print(
        f"[{style}]Deleted {tally.success} of {tally.total} records "
        f"({tally.failed} failed)[/{style}]"
    )
    for error in tally.errors:
        console.print(f"  [red]• {escape(error)}[/red]")
    if result.status == ActionStatus.BLOCKED:
        sys.exit(1)


@records.command("deleted")
@click.argument("table")
@click.pass_context
@reports_errors("listing deleted records")
def records_deleted(ctx: click.Context, table: str) -> None:
    """List soft deleted records of a table."""
    rows = _admin(ctx).deleted_records(_user(ctx), table)
    if not rows:
        console.print(f"[yellow]No deleted records in {table}[/yellow]")
        return

    output = Table(title=f"Deleted {table} ({len(rows)})")
    output.add_column("ID", style="dim")
    output.add_column("Deleted At", style="cyan")
    output.add_column("By", style="green")
    for row in rows:
        output.add_row(str(row.id), _format_time(row.deleted_at), row.deleted_by or "")
    console.print(output)


if __name__ == "__main__":
    cli()
