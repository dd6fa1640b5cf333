"""CLI for comparing and synchronizing Kusto schemas.

Sources and targets are either names from kusto-sync.toml or folder paths.

Usage:
    kusto-sync sources
    kusto-sync compare --source prod --target ./schema
    kusto-sync sync --source prod --target ./schema
    kusto-sync sync --source prod --target ./schema --only Events,GetEvents --confirm
    kusto-sync sync --source ./schema --target prod --allow-drop --confirm
    kusto-sync check-temp

Commands:
    sources     - List configured sources
    compare     - Show differences between a source and a target
    sync        - Apply differences to the target (dry run without --confirm)
    check-temp  - Verify the temporary database is reachable and empty
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from kusto_sync.config.loader import load_config
from kusto_sync.config.models import SchemaSourceInfo, SyncConfig
from kusto_sync.exceptions import KustoSyncError, describe_error
from kusto_sync.factory import resolve_source
from kusto_sync.kusto.validation import check_database_empty, validate_kusto_settings
from kusto_sync.schema.models import (
    ComparisonResult,
    Difference,
    SchemaDifference,
    SyncProgress,
)
from kusto_sync.schema.sync import SchemaSyncService

console = Console()
err_console = Console(stderr=True)

_DIFFERENCE_STYLES = {
    Difference.MODIFIED: ("modified", "yellow"),
    Difference.ONLY_IN_SOURCE: ("only in source", "green"),
    Difference.ONLY_IN_TARGET: ("only in target", "red"),
}


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # The Kusto SDK and its HTTP stack are noisy at DEBUG
    for name in ("azure", "aiohttp", "urllib3", "msal"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _load_config(args: argparse.Namespace) -> SyncConfig | None:
    config_path = Path(args.config) if args.config else None
    try:
        return load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return None


def _resolve_pair(
    args: argparse.Namespace, config: SyncConfig
) -> tuple[SchemaSourceInfo, SchemaSourceInfo]:
    return resolve_source(args.source, config), resolve_source(args.target, config)


def _print_progress(progress: SyncProgress) -> None:
    if progress.percent is None:
        console.print(progress.message, style="dim")
    else:
        console.print(f"[{progress.percent:>3}%] {progress.message}", style="dim")


def _difference_table(differences: list[SchemaDifference], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Kind", style="dim")
    table.add_column("Name")
    table.add_column("Difference")
    table.add_column("Folder", style="dim")

    for difference in differences:
        label, style = _DIFFERENCE_STYLES[difference.difference]
        table.add_row(
            difference.kind.value,
            escape(difference.name),
            f"[{style}]{label}[/{style}]",
            escape(difference.schema_object.folder or ""),
        )
    return table


def _print_comparison(comparison: ComparisonResult, source: str, target: str) -> None:
    console.print(f"  Source: [bold]{source}[/bold]")
    console.print(f"  Target: [bold cyan]{target}[/bold cyan]")
    console.print(
        f"  [dim]{len(comparison.source_schema.tables)} table(s), "
        f"{len(comparison.source_schema.functions)} function(s) in source; "
        f"{len(comparison.target_schema.tables)} table(s), "
        f"{len(comparison.target_schema.functions)} function(s) in target[/dim]"
    )
    console.print()

    differences = comparison.differences.all_differences
    if not differences:
        console.print("[bold green]v[/bold green] Schemas are identical.")
        return
    console.print(_difference_table(differences, "Schema Differences"))


def _select(
    differences: list[SchemaDifference],
    only: str | None,
    include_deletes: bool,
) -> list[SchemaDifference]:
    selected = differences
    if only:
        names = {name.strip() for name in only.split(",") if name.strip()}
        selected = [d for d in selected if d.name in names]
    if not include_deletes:
        selected = [d for d in selected if d.difference != Difference.ONLY_IN_TARGET]
    return selected


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_compare(args: argparse.Namespace) -> int:
    """Async implementation for compare command.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load_config(args)
    if config is None:
        return 1

    service = SchemaSyncService(config.settings)
    try:
        source, target = _resolve_pair(args, config)
        comparison = await service.compare_sources(source, target, progress=_print_progress)
    except (KustoSyncError, ValueError) as e:
        console.print(f"\n[bold red]x[/bold red] {describe_error(e)}")
        return 1

    console.print()
    _print_comparison(comparison, source.display_name, target.display_name)
    return 0


async def _async_sync(args: argparse.Namespace) -> int:
    """Async implementation for sync command.

    Compares first, then applies the selected differences when
    ``--confirm`` is given.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load_config(args)
    if config is None:
        return 1

    service = SchemaSyncService(config.settings)
    try:
        source, target = _resolve_pair(args, config)
        comparison = await service.compare_sources(source, target, progress=_print_progress)
    except (KustoSyncError, ValueError) as e:
        console.print(f"\n[bold red]x[/bold red] {describe_error(e)}")
        return 1

    console.print()
    _print_comparison(comparison, source.display_name, target.display_name)

    selected = _select(
        comparison.differences.all_differences,
        args.only,
        include_deletes=not args.no_delete,
    )
    if not selected:
        console.print("\nNothing to synchronize.")
        return 0

    drops = [d for d in selected if d.difference == Difference.ONLY_IN_TARGET]
    if drops and config.settings.kusto_object_drop_warning and not args.allow_drop:
        console.print(
            f"\n[red]Error: {len(drops)} object(s) would be removed from "
            f"{target.display_name}.[/red]"
        )
        console.print(
            "[dim]Re-run with[/dim] [cyan]--allow-drop[/cyan] [dim]or[/dim] "
            "[cyan]--no-delete[/cyan][dim].[/dim]"
        )
        return 1

    console.print()
    console.print(_difference_table(selected, "Sync Plan"))

    if not args.confirm:
        console.print()
        console.print("[bold yellow]DRY RUN[/bold yellow] - No changes made.")
        console.print(
            "[dim]To actually sync, add[/dim] [cyan]--confirm[/cyan] [dim]flag.[/dim]"
        )
        return 0

    console.print()
    try:
        result = await service.sync_sources(source, target, selected, progress=_print_progress)
    except (KustoSyncError, ValueError) as e:
        console.print(f"\n[bold red]x[/bold red] {describe_error(e)}")
        return 1

    if result.success:
        console.print(
            f"[bold green]v[/bold green] Synchronized {result.items_synchronized} object(s)."
        )
        return 0

    console.print("[bold red]x[/bold red] Synchronization failed:")
    for error in result.errors:
        console.print(f"  [red]{error}[/red]")
    return 1


async def _async_check_temp(args: argparse.Namespace) -> int:
    """Async implementation for check-temp command.

    Returns:
        0 if the temporary database is usable, 1 otherwise.
    """
    config = _load_config(args)
    if config is None:
        return 1

    info = config.settings.temp_connection_info()
    try:
        cluster = await validate_kusto_settings(info)
        await check_database_empty(info)
    except KustoSyncError as e:
        console.print(f"[bold red]x[/bold red] {describe_error(e)}")
        return 1

    console.print(
        f"[bold green]v[/bold green] {cluster}/{info.database} is reachable, "
        "writable and empty."
    )
    return 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_sources(args: argparse.Namespace) -> int:
    """List sources from kusto-sync.toml.

    Reads only local TOML config -- no cluster calls.

    Returns:
        0 on success, 1 if the config could not be loaded.
    """
    config = _load_config(args)
    if config is None:
        return 1

    table = Table(title="Schema Sources", show_header=True, header_style="bold")
    table.add_column("Name", style="bold cyan")
    table.add_column("Type")
    table.add_column("Location")
    table.add_column("Description")

    for name, info in config.sources.items():
        table.add_row(name, info.kind.value, info.display_name, info.description)

    console.print(table)

    settings = config.settings
    if settings.temp_cluster:
        console.print(f"\n[dim]Temporary database:[/dim] {settings.temp_cluster}/{settings.temp_database}")
    return 0


def cmd_compare(args: argparse.Namespace) -> int:
    """Compare a source with a target.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_compare(args))


def cmd_sync(args: argparse.Namespace) -> int:
    """Synchronize a target with a source.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_sync(args))


def cmd_check_temp(args: argparse.Namespace) -> int:
    """Check the temporary database.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_check_temp(args))


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = argparse.ArgumentParser(
        prog="kusto-sync",
        description="Compare and synchronize Kusto schemas between clusters and CSL files",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to kusto-sync.toml (default: $KUSTO_SYNC_CONFIG or ./kusto-sync.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_sources = subparsers.add_parser("sources", help="List configured sources")
    p_sources.set_defaults(func=cmd_sources)

    p_compare = subparsers.add_parser("compare", help="Show differences between two schemas")
    p_compare.add_argument("--source", "-s", required=True, help="Source name or folder path")
    p_compare.add_argument("--target", "-t", required=True, help="Target name or folder path")
    p_compare.set_defaults(func=cmd_compare)

    p_sync = subparsers.add_parser("sync", help="Apply source schema to the target")
    p_sync.add_argument("--source", "-s", required=True, help="Source name or folder path")
    p_sync.add_argument("--target", "-t", required=True, help="Target name or folder path")
    p_sync.add_argument(
        "--only",
        default=None,
        help="Comma-separated object names to synchronize (default: all differences)",
    )
    p_sync.add_argument(
        "--no-delete",
        action="store_true",
        help="Do not remove objects that exist only in the target",
    )
    p_sync.add_argument(
        "--allow-drop",
        action="store_true",
        help="Allow removing objects from the target",
    )
    p_sync.add_argument(
        "--confirm",
        action="store_true",
        help="Actually perform the sync (dry run otherwise)",
    )
    p_sync.set_defaults(func=cmd_sync)

    p_check = subparsers.add_parser(
        "check-temp", help="Verify the temporary database is usable and empty"
    )
    p_check.set_defaults(func=cmd_check_temp)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
