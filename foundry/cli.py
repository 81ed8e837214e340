"""cc-foundry CLI — install, remove and repair bundled Claude Code files."""

from __future__ import annotations

import os
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from foundry import __version__
from foundry.errors import FoundryError
from foundry.naming import FILE_TYPES, InstallLocation, display_path, type_label

console = Console()

_ACTION_STYLE = {
    "install": ("+", "green"),
    "update": ("~", "yellow"),
    "skip": ("·", "dim"),
}


def _fail(ctx: click.Context, err: Exception) -> None:
    console.print(f"[red]Error:[/] {err}")
    ctx.exit(1)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" + ("" if count == 1 else "s")


@click.group()
@click.version_option(version=__version__, prog_name="cc-foundry")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to config.yaml (default: ~/.config/cc-foundry/config.yaml).",
)
@click.option(
    "--catalog",
    "catalog_dir",
    type=click.Path(file_okay=False),
    default=None,
    envvar="CCF_CATALOG_DIR",
    help="Catalog directory (default: the bundled catalog).",
)
@click.pass_context
def main(
    ctx: click.Context,
    verbose: bool,
    debug: bool,
    quiet: bool,
    config_path: str | None,
    catalog_dir: str | None,
):
    """cc-foundry — manage Claude Code commands, agents and skills.

    Installs catalog files into ~/.claude/ (user) or .claude/ (project),
    tracks them, and can verify and repair what was installed.
    """
    from foundry.catalog import BUNDLED_CATALOG_DIR, DirectoryCatalog
    from foundry.config import load_config
    from foundry.logging_config import setup_logging

    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("CCF_LOG_LEVEL", "WARNING")
    setup_logging(level=level, log_file=os.environ.get("CCF_LOG_FILE"))

    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(config_path)
    except FoundryError as e:
        _fail(ctx, e)
    ctx.obj["catalog"] = DirectoryCatalog(catalog_dir or BUNDLED_CATALOG_DIR)


def _store(ctx: click.Context):
    from foundry.state import StateStore

    return StateStore(ctx.obj["config"].state_file)


# ── Show ─────────────────────────────────────────────────────────────


@main.command()
@click.pass_context
def show(ctx: click.Context):
    """Show both install locations and what cc-foundry has installed."""
    from foundry.inventory import installed_by_category, summarize_location

    config = ctx.obj["config"]
    console.print("\n[bold blue]cc-foundry[/] — Directory structure\n")

    for location in InstallLocation:
        root = config.root_for(location)
        summary = summarize_location(root)
        console.print(f"[bold]{location.value.title()}-level[/] ({display_path(root, config.home)}):")
        if not summary.exists:
            console.print("  [red]x[/] Directory does not exist")
            continue
        for file_type in FILE_TYPES:
            count = summary.counts.get(file_type, 0)
            unit = "skill" if file_type == "skills" else "file"
            label = _plural(count, unit) if count else "empty"
            console.print(f"  {file_type}/  ({label})")

    try:
        state = _store(ctx).load()
    except FoundryError as e:
        _fail(ctx, e)

    console.print("\n[bold]Installed files (managed by cc-foundry)[/]\n")
    grouped = installed_by_category(state)
    if not grouped:
        console.print("  No files installed by cc-foundry yet")
        return

    for category, counts in sorted(grouped.items()):
        parts = [
            _plural(counts[t], type_label(t)) for t in FILE_TYPES if counts.get(t)
        ]
        console.print(f"  [cyan]{category}[/]: {', '.join(parts)}")
    console.print(f"\n  Total: {_plural(len(state.installations), 'file')} installed")


# ── List ─────────────────────────────────────────────────────────────


@main.command(name="list")
@click.argument("category", required=False)
@click.pass_context
def list_catalog(ctx: click.Context, category: str | None):
    """List installable files, for one CATEGORY or the whole catalog."""
    catalog = ctx.obj["catalog"]

    try:
        categories = [category] if category else catalog.list_categories()
        if not categories:
            console.print("[yellow]No categories available.[/]")
            return

        for name in categories:
            files = catalog.list_files(name)
            table = Table(title=f"{name}/ ({_plural(len(files), 'file')})")
            table.add_column("Type", style="dim")
            table.add_column("File", style="cyan")
            table.add_column("Description")
            for f in files:
                table.add_row(type_label(f.type), f.filename, f.description[:70])
            console.print(table)
    except FoundryError as e:
        _fail(ctx, e)


# ── Install ──────────────────────────────────────────────────────────


def _location_option(default: str | None):
    return click.option(
        "--location",
        "-l",
        type=click.Choice([loc.value for loc in InstallLocation]),
        default=default,
        show_default=default is not None,
        help="Install root: user (~/.claude/) or project (.claude/).",
    )


def _print_plan(plan, home: Path) -> None:
    table = Table(title=f"Preview: {plan.category or 'all categories'}")
    table.add_column("", width=1)
    table.add_column("Type", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Path")
    table.add_column("Status")

    for change in plan.changes:
        symbol, style = _ACTION_STYLE[change.action.value]
        status = {"install": "new", "update": "will update", "skip": "unchanged"}[change.action.value]
        table.add_row(
            f"[{style}]{symbol}[/]",
            change.type,
            change.name,
            display_path(change.path, home),
            f"[{style}]{status}[/]",
        )

    console.print(table)
    console.print(f"Summary: {plan.summary()}\n")


@main.command()
@click.argument("category", required=False)
@click.option("--type", "-t", "file_type", type=click.Choice(FILE_TYPES), default=None, help="Only this type.")
@_location_option("user")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.option("--force", is_flag=True, help="Overwrite files that were modified locally.")
@click.option("--dry-run", is_flag=True, help="Show the plan without applying it.")
@click.pass_context
def install(
    ctx: click.Context,
    category: str | None,
    file_type: str | None,
    location: str,
    yes: bool,
    force: bool,
    dry_run: bool,
):
    """Install CATEGORY (or every category) into the chosen location."""
    from foundry.installer import apply
    from foundry.plan import build_plan

    config = ctx.obj["config"]
    loc = InstallLocation(location)
    root = config.root_for(loc)
    store = _store(ctx)

    if file_type and not category:
        raise click.UsageError("--type requires a CATEGORY")

    console.print(f"\n[bold blue]cc-foundry[/] — Installing to {loc.description}\n")

    try:
        state = store.load()
        plan = build_plan(ctx.obj["catalog"], state, root, category=category, file_type=file_type)
    except FoundryError as e:
        _fail(ctx, e)

    _print_plan(plan, config.home)

    if not plan.has_work:
        console.print("[green]Everything is up to date.[/]")
        return
    if dry_run:
        return
    if not yes and not click.confirm("Proceed with installation?", default=True):
        console.print("Installation cancelled.")
        return

    try:
        result = apply(plan, state, store, force=force)
    except FoundryError as e:
        _fail(ctx, e)

    for path in result.conflicts:
        console.print(
            f"  [yellow]![/] kept {display_path(path, config.home)} (modified locally, use --force)"
        )
    console.print(
        f"\n[green]Installed {result.written} file(s)[/] "
        f"({len(result.installed)} new, {len(result.updated)} updated, "
        f"{len(result.skipped)} unchanged)"
    )


# ── Remove ───────────────────────────────────────────────────────────


@main.command()
@click.argument("category", required=False)
@click.option("--type", "-t", "file_type", type=click.Choice(FILE_TYPES), default=None, help="Only this type.")
@_location_option(None)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def remove(
    ctx: click.Context,
    category: str | None,
    file_type: str | None,
    location: str | None,
    yes: bool,
):
    """Remove installed files of CATEGORY (or everything cc-foundry installed)."""
    from foundry.installer import remove as remove_records
    from foundry.plan import select_removals

    config = ctx.obj["config"]
    root = config.root_for(InstallLocation(location)) if location else None
    store = _store(ctx)

    if file_type and not category:
        raise click.UsageError("--type requires a CATEGORY")

    try:
        state = store.load()
    except FoundryError as e:
        _fail(ctx, e)

    records = select_removals(state, category=category, file_type=file_type, root=root)
    what = " ".join(filter(None, [file_type, f"from category '{category}'" if category else None]))
    if not records:
        console.print(f"[yellow]No files installed{' ' + what if what else ''}.[/]")
        return

    console.print(f"\n[bold blue]cc-foundry[/] — Remove {what or 'all installed files'}\n")
    for record in records:
        console.print(f"  [red]-[/] {type_label(record.type)}: {display_path(record.installed_path, config.home)}")
    console.print(f"\nSummary: {_plural(len(records), 'file')} will be removed\n")

    if not yes and not click.confirm("Proceed with removal?", default=False):
        console.print("Removal cancelled.")
        return

    try:
        result = remove_records(records, state, store)
    except FoundryError as e:
        _fail(ctx, e)

    console.print(f"[green]Removed {_plural(result.count, 'file')}[/]")


# ── Doctor ───────────────────────────────────────────────────────────


@main.command()
@click.option("--fix", is_flag=True, help="Repair every fixable issue.")
@click.option("--yes", "-y", is_flag=True, help="Do not ask before fixing.")
@click.pass_context
def doctor(ctx: click.Context, fix: bool, yes: bool):
    """Verify installed files and repair what can be repaired."""
    from foundry.doctor import Severity, repair, run_diagnostics

    config = ctx.obj["config"]
    store = _store(ctx)

    console.print("\n[bold blue]cc-foundry[/] — Running doctor diagnostics\n")

    try:
        state = store.load()
    except FoundryError as e:
        _fail(ctx, e)

    report = run_diagnostics(
        state,
        roots=config.roots,
        external_config=config.claude_config,
        size_limit_mb=config.config_size_limit_mb,
    )

    console.print(Panel(report.summary(), title="Health Report"))
    if report.healthy:
        console.print("[green]Everything looks healthy![/]")
        return

    for issue in report.issues:
        icon = "[red]x[/]" if issue.severity == Severity.ERROR else "[yellow]![/]"
        console.print(f"  {icon} [{issue.category}] {issue.description}")
        if issue.fixable:
            console.print("      [dim](can be fixed)[/]")

    fixable = report.fixable_issues
    if not fixable:
        return

    console.print(f"\n{_plural(len(fixable), 'issue')} can be fixed automatically.")
    if not fix:
        console.print("Run [bold]cc-foundry doctor --fix[/] to repair them.")
        return
    if not yes and not click.confirm("Fix these issues?", default=True):
        return

    try:
        result = repair(report, store)
    except FoundryError as e:
        _fail(ctx, e)

    for issue, error in result.failures:
        console.print(f"  [red]x[/] Failed to fix: {issue.description} ({error})")
    console.print(f"\nFixed: {result.fixed}, Failed: {result.failed}")


if __name__ == "__main__":
    main()
