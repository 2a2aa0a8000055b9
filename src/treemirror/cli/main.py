"""
TreeMirror CLI Main Entry Point.

Provides the command-line interface for one-off and periodic mirroring.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
import humanize
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from treemirror import __version__
from treemirror.core.config import DEFAULT_CONFIG_PATH, MirrorConfig, TreeMirrorConfig, load_config
from treemirror.core.logging import setup_logging
from treemirror.core.models import ChangeKind, RunReport
from treemirror.core.scheduler import MirrorScheduler
from treemirror.sync.manager import MirrorManager, MirrorRootError

console = Console()

MAX_INTERVAL_MINUTES = 1440

_CHANGE_STYLES = {
    ChangeKind.ADDED: "green",
    ChangeKind.MODIFIED: "yellow",
    ChangeKind.ONLY_IN_REPLICA: "red",
}


def get_config(ctx: click.Context) -> TreeMirrorConfig:
    return ctx.obj["config"]


def get_manager(ctx: click.Context) -> MirrorManager:
    """Get or create the mirror manager from context."""
    if "manager" not in ctx.obj:
        ctx.obj["manager"] = MirrorManager(get_config(ctx).mirror)
    return ctx.obj["manager"]


def _is_inside(child: Path, parent: Path) -> bool:
    child = child.resolve()
    parent = parent.resolve()
    return child == parent or parent in child.parents


def check_log_folder(log_dir: Path, replica: Path) -> str | None:
    """Return a reason the log folder clashes with the replica, or None."""
    # Anything inside the replica that is not in the source gets deleted
    if _is_inside(log_dir, replica):
        return f"Log folder must not be inside the replica folder: {log_dir}"
    return None


def configure_logging(ctx: click.Context, **updates: object) -> None:
    """Set up logging from the loaded config, with console output off for --json and --quiet."""
    if ctx.obj.get("json_output") or ctx.obj.get("quiet"):
        updates["console_enabled"] = False
    setup_logging(get_config(ctx).logging.model_copy(update=updates))


def check_folder(path: Path, label: str, other: Path | None = None) -> str | None:
    """Return a reason the folder is unusable, or None if it is fine."""
    if not path.is_dir():
        return f"{label} folder does not exist: {path}"
    if other is not None and path.resolve() == other.resolve():
        return f"{label} folder must differ from {other}"
    return None


def prompt_folder(label: str, other: Path | None = None) -> Path:
    """Keep asking until an existing folder distinct from `other` is given."""
    while True:
        value = click.prompt(f"Enter the full path for the {label} folder", type=str)
        path = Path(value).expanduser()
        problem = check_folder(path, label, other)
        if problem is None:
            return path.resolve()
        console.print(f"[red]{problem}[/red]")


def prompt_interval() -> float:
    return click.prompt(
        f"Enter the synchronization interval in minutes (0 < minutes <= {MAX_INTERVAL_MINUTES})",
        type=click.FloatRange(0, MAX_INTERVAL_MINUTES, min_open=True),
    )


def print_report(report: RunReport, json_output: bool = False) -> None:
    if json_output:
        click.echo(json.dumps(report.to_dict(), indent=2, default=str))
        return

    if report.fatal_error:
        console.print(f"[red]Run failed: {report.fatal_error}[/red]")
        return

    summary = report.summary
    table = Table(title=f"Mirror {report.source} -> {report.replica}")
    table.add_column("Change", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Directories created", str(summary.directories_created))
    table.add_row("Files copied", str(summary.files_copied))
    table.add_row("Files replaced", str(summary.files_replaced))
    table.add_row("Files deleted", str(summary.files_deleted))
    table.add_row("Directories deleted", str(summary.directories_deleted))
    table.add_row("Errors", f"[red]{summary.errors}[/red]" if summary.errors else "0")
    console.print(table)

    duration = report.duration_seconds or 0.0
    console.print(
        f"Transferred {humanize.naturalsize(summary.bytes_copied, binary=True)} "
        f"in {humanize.precisedelta(duration, minimum_unit='milliseconds')}"
    )
    for error in report.errors:
        console.print(f"[red]{error.operation or 'error'}[/red] {error.path}: {error.cause}")


@click.group()
@click.version_option(version=__version__, prog_name="TreeMirror")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    json_output: bool,
    quiet: bool,
) -> None:
    """
    TreeMirror - One-way folder mirroring.

    Keeps a replica folder identical to a source folder, comparing files
    by content and copying, replacing or deleting whatever differs.
    """
    ctx.ensure_object(dict)

    try:
        if config:
            ctx.obj["config"] = TreeMirrorConfig.load(config)
        else:
            ctx.obj["config"] = load_config()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red]\n{e}")
        sys.exit(2)

    ctx.obj["config_path"] = config
    ctx.obj["json_output"] = json_output
    ctx.obj["quiet"] = quiet

    # run and watch check the log folder against the replica first
    if ctx.invoked_subcommand not in ("run", "watch"):
        configure_logging(ctx)


@cli.command("run")
@click.argument("source", type=click.Path(path_type=Path))
@click.argument("replica", type=click.Path(path_type=Path))
@click.option("--strict", is_flag=True, help="Exit non-zero if any item failed")
@click.pass_context
def run_once(ctx: click.Context, source: Path, replica: Path, strict: bool) -> None:
    """Mirror SOURCE onto REPLICA once."""
    logging_config = get_config(ctx).logging
    if logging_config.file_enabled:
        problem = check_log_folder(logging_config.log_directory, replica)
        if problem is not None:
            console.print(f"[red]{problem}[/red]")
            sys.exit(2)
    configure_logging(ctx)

    json_output = ctx.obj.get("json_output", False)
    report = get_manager(ctx).run(source, replica)
    print_report(report, json_output)

    if report.fatal_error or (strict and not report.succeeded):
        sys.exit(1)


@cli.command("diff")
@click.argument("source", type=click.Path(path_type=Path))
@click.argument("replica", type=click.Path(path_type=Path))
@click.pass_context
def show_diff(ctx: click.Context, source: Path, replica: Path) -> None:
    """Show what a run would change, without changing anything."""
    try:
        with console.status("Scanning folders..."):
            change_set = get_manager(ctx).preview(source, replica)
    except MirrorRootError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if ctx.obj.get("json_output", False):
        click.echo(json.dumps(change_set.to_dict(), indent=2))
        return

    if change_set.is_empty:
        console.print("[green]Replica is up to date.[/green]")
        return

    table = Table(title="Pending changes")
    table.add_column("Change", style="bold")
    table.add_column("Path", style="white")
    for rel_path, kind in change_set:
        style = _CHANGE_STYLES[kind]
        table.add_row(f"[{style}]{kind.value}[/{style}]", rel_path)
    console.print(table)


@cli.command("scan")
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.pass_context
def scan_root(ctx: click.Context, root: Path) -> None:
    """List every file under ROOT with its content digest."""
    manager = get_manager(ctx)
    with console.status("Hashing files..."):
        snapshot = manager.scan(root)

    if ctx.obj.get("json_output", False):
        data = {
            "root": str(root),
            "algorithm": manager.config.hash_algorithm,
            "files": {key: snapshot.hexdigest(key) for key in sorted(snapshot)},
            "unreadable": sorted(snapshot.unreadable),
        }
        click.echo(json.dumps(data, indent=2))
        return

    table = Table(title=f"Snapshot of {root}")
    table.add_column("Path", style="cyan")
    table.add_column("Size", style="green", justify="right")
    table.add_column(manager.config.hash_algorithm.upper(), style="dim")
    for key in sorted(snapshot):
        size = (root / key).stat().st_size if (root / key).exists() else 0
        table.add_row(key, humanize.naturalsize(size, binary=True), snapshot.hexdigest(key)[:16])
    console.print(table)
    for key in sorted(snapshot.unreadable):
        console.print(f"[red]unreadable[/red] {key}")


@cli.command("watch")
@click.option("--source", type=click.Path(path_type=Path), help="Source folder")
@click.option("--replica", type=click.Path(path_type=Path), help="Replica folder")
@click.option("--log-dir", type=click.Path(path_type=Path), help="Log folder")
@click.option("--interval", type=float, help="Minutes between runs")
@click.pass_context
def watch(
    ctx: click.Context,
    source: Path | None,
    replica: Path | None,
    log_dir: Path | None,
    interval: float | None,
) -> None:
    """Mirror periodically until interrupted, asking for anything missing."""
    config = get_config(ctx)

    source = source or config.mirror.source
    if source is None or check_folder(source, "source") is not None:
        source = prompt_folder("source")

    replica = replica or config.mirror.replica
    if replica is None or check_folder(replica, "replica", source) is not None:
        replica = prompt_folder("replica", source)

    log_dir = log_dir or config.logging.log_directory
    if config.logging.file_enabled:
        problem = check_log_folder(log_dir, replica)
        while problem is not None:
            console.print(f"[red]{problem}[/red]")
            log_dir = prompt_folder("log", replica)
            problem = check_log_folder(log_dir, replica)

    if interval is None:
        interval = prompt_interval()

    try:
        mirror = MirrorConfig.model_validate(
            {**config.mirror.model_dump(), "source": source, "replica": replica, "interval_minutes": interval}
        )
    except ValidationError as e:
        console.print(f"[red]Invalid settings:[/red]\n{e}")
        sys.exit(2)

    configure_logging(ctx, log_directory=log_dir.resolve())

    scheduler = MirrorScheduler(
        MirrorManager(mirror),
        mirror.source,
        mirror.replica,
        interval_seconds=mirror.interval_seconds,
        run_on_start=mirror.run_on_start,
    )
    if not ctx.obj.get("quiet"):
        scheduler.add_report_callback(lambda report: print_report(report))

    console.print(
        f"Mirroring [cyan]{mirror.source}[/cyan] -> [cyan]{mirror.replica}[/cyan] "
        f"every {humanize.precisedelta(mirror.interval_seconds)}. Press Ctrl+C to stop."
    )
    scheduler.start()
    try:
        while not scheduler.wait(0.5):
            pass
    finally:
        scheduler.stop(timeout=10)


@cli.group("config")
def config_group() -> None:
    """Show or create the configuration file."""


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration."""
    config = get_config(ctx)
    click.echo(json.dumps(config.model_dump(mode="json"), indent=2))


@config_group.command("init")
@click.option("--source", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--replica", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--interval", type=click.FloatRange(0, MAX_INTERVAL_MINUTES, min_open=True))
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def config_init(
    ctx: click.Context,
    source: Path | None,
    replica: Path | None,
    interval: float | None,
    force: bool,
) -> None:
    """Write a configuration file with the given folders."""
    path = ctx.obj.get("config_path") or DEFAULT_CONFIG_PATH
    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists; use --force to overwrite[/yellow]")
        sys.exit(1)

    config = get_config(ctx)
    updates: dict[str, object] = {}
    if source is not None:
        updates["source"] = source
    if replica is not None:
        updates["replica"] = replica
    if interval is not None:
        updates["interval_minutes"] = interval

    try:
        mirror = MirrorConfig.model_validate({**config.mirror.model_dump(), **updates})
    except ValidationError as e:
        console.print(f"[red]Invalid settings:[/red]\n{e}")
        sys.exit(2)

    config.model_copy(update={"mirror": mirror}).save(path)
    console.print(f"[green]Wrote {path}[/green]")


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
