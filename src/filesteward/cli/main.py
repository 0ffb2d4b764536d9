"""Main CLI interface for FileSteward using Click."""

import sys
import time
from pathlib import Path
from typing import Optional

import click
from rich.markup import escape
from rich.table import Table

from ..config import ConfigManager, FileStewardConfig, get_config_manager
from ..core import Runtime
from ..errors import FileStewardError
from ..proposals import SENSITIVE_CONFIRMATION_ERROR
from ..tools import ToolResult
from ..utils.logging import get_console, get_logger, setup_logging
from ..utils.paths import normalize_path

console = get_console()
logger = get_logger(__name__)


def _load(ctx, create_if_missing: bool = True) -> tuple[ConfigManager, FileStewardConfig]:
    """Load configuration and apply its logging settings."""
    config_manager = get_config_manager(ctx.obj.get("config_path"))
    config = config_manager.load(create_if_missing=create_if_missing)
    setup_logging(
        level=config.logging.level,
        log_dir=config.logging.log_dir,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
        console_enabled=config.logging.console_enabled,
        file_enabled=config.logging.file_enabled,
    )
    return config_manager, config


def _runtime(ctx) -> Runtime:
    _, config = _load(ctx)
    return Runtime(config).initialize()


def _fail(message: str) -> None:
    console.print(f"[bold red]✗ Error:[/bold red] {message}")
    sys.exit(1)


def _check(result: ToolResult) -> dict:
    if not result.success:
        _fail(result.error or "Unknown error")
    return result.data or {}


@click.group()
@click.version_option(version="0.1.0", prog_name="FileSteward")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.pass_context
def cli(ctx, config: Optional[Path]):
    """
    FileSteward - watches folders and proposes where files belong.

    Nothing is moved until you approve a proposal.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@cli.command()
@click.pass_context
def init(ctx):
    """Create a default configuration and the data directories."""
    console.print("\n[bold cyan]FileSteward Initialization[/bold cyan]\n")

    try:
        config_manager, config = _load(ctx)

        if config_manager.config_path is None:
            default_config_path = ConfigManager.default_save_path()
            config_manager.save(config, default_config_path)
            console.print(f"✓ Created default configuration: [green]{default_config_path}[/green]")
        else:
            console.print(
                f"✓ Loaded configuration from: [green]{config_manager.config_path}[/green]"
            )

        config.organized_base_path.mkdir(parents=True, exist_ok=True)
        config.proposals.store_path.expanduser().parent.mkdir(parents=True, exist_ok=True)
        if config.audit.enabled:
            config.audit.journal_dir.expanduser().mkdir(parents=True, exist_ok=True)
        if config.logging.file_enabled:
            config.logging.log_dir.mkdir(parents=True, exist_ok=True)
        console.print("✓ Created data directories")

        console.print("\n[bold green]✓ Initialization complete![/bold green]")
        console.print("\n[cyan]Next steps:[/cyan]")
        console.print("  1. Review configuration: [yellow]filesteward config show[/yellow]")
        console.print("  2. Start watching: [yellow]filesteward watch[/yellow]")
        console.print("  3. Review proposals: [yellow]filesteward proposals list[/yellow]")

    except Exception as e:
        console.print(f"\n[bold red]✗ Initialization failed:[/bold red] {e}")
        logger.exception("Initialization error")
        sys.exit(1)


@cli.group(name="config")
def config_group():
    """Manage FileSteward configuration."""
    pass


@config_group.command(name="show")
@click.pass_context
def config_show(ctx):
    """Display current configuration."""
    console.print("\n[bold cyan]FileSteward Configuration[/bold cyan]\n")

    try:
        config_manager, config = _load(ctx, create_if_missing=False)
    except FileNotFoundError:
        console.print(
            "[yellow]⚠ No configuration found. Run:[/yellow] [cyan]filesteward init[/cyan]"
        )
        sys.exit(1)
    except ValueError as e:
        _fail(str(e))

    console.print("[bold]Watched Directories:[/bold]")
    for directory in config.watched_directories:
        flags = []
        if not directory.enabled:
            flags.append("disabled")
        if directory.recursive:
            flags.append("recursive")
        suffix = f" [dim]({', '.join(flags)})[/dim]" if flags else ""
        console.print(f"  • {directory.path}{suffix}")

    console.print("\n[bold]Organized Files:[/bold]")
    console.print(f"  Base Path: {config.organized_base_path}")

    console.print("\n[bold]Watcher:[/bold]")
    console.print(f"  Stability Delay: {config.watcher.stability_delay_ms}ms")
    console.print(f"  Max Stability Wait: {config.watcher.max_stability_wait_ms}ms")
    console.print(f"  Force Polling: {config.watcher.force_polling}")
    console.print(f"  Ignored Patterns: {len(config.watcher.ignored_patterns)}")

    console.print("\n[bold]Proposals:[/bold]")
    console.print(f"  Store: {config.proposals.store_path}")
    console.print(f"  Cooldown: {config.proposals.cooldown_hours:g} hours")

    console.print("\n[bold]AI Settings:[/bold]")
    console.print(
        f"  LLM Classification: {'[green]Enabled[/green]' if config.analysis.enable_llm_classification else '[yellow]Disabled[/yellow]'}"
    )
    console.print(f"  Model: {config.ai_settings.model_name}")
    console.print(f"  Ollama URL: {config.ai_settings.ollama_base_url}")

    console.print(f"\n[dim]Config file: {config_manager.config_path}[/dim]")


@cli.command()
@click.pass_context
def watch(ctx):
    """Watch configured directories until interrupted (Ctrl-C)."""
    try:
        runtime = _runtime(ctx)
    except (ValueError, FileStewardError) as e:
        _fail(str(e))

    def on_created(proposal):
        marker = " [sensitive]sensitive[/sensitive]" if proposal.sensitive else ""
        console.print(
            f"[green]+[/green] {escape(proposal.source_filename)} → {proposal.category.value} "
            f"({proposal.confidence.value}){marker}  [dim]{proposal.id}[/dim]"
        )

    runtime.proposals.on("proposal:created", on_created)

    try:
        runtime.watcher.start()
    except FileStewardError as e:
        runtime.proposals.shutdown()
        _fail(str(e))

    console.print("[bold cyan]Watching for new files.[/bold cyan] Press Ctrl-C to stop.")
    try:
        while runtime.watcher.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[cyan]Stopping...[/cyan]")
    finally:
        runtime.shutdown()
    console.print("[green]✓ Watcher stopped[/green]")


@cli.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--recursive", "-r", is_flag=True, help="Also scan subdirectories")
@click.pass_context
def scan(ctx, path: Path, recursive: bool):
    """Create proposals for files already in PATH."""
    runtime = _runtime(ctx)
    try:
        data = _check(runtime.tools.scan_directory(str(path), recursive=recursive))
    finally:
        runtime.proposals.shutdown()

    console.print(
        f"[green]✓[/green] Scanned {data['filesScanned']} file(s): "
        f"{data['proposalsCreated']} proposal(s) created, {data['skipped']} skipped"
    )
    for error in data["errors"]:
        console.print(f"  [red]✗[/red] {error}")


@cli.group()
def proposals():
    """Review and resolve organization proposals."""
    pass


@proposals.command(name="list")
@click.option(
    "--status",
    type=click.Choice(["pending", "approved", "rejected", "invalid", "all"]),
    default="pending",
    show_default=True,
)
@click.option("--limit", type=int, default=20, show_default=True)
@click.pass_context
def proposals_list(ctx, status: str, limit: int):
    """List proposals, newest first."""
    runtime = _runtime(ctx)
    data = _check(runtime.tools.list_proposals(status=status, limit=limit))

    if not data["proposals"]:
        console.print("[dim]No proposals.[/dim]")
        return

    table = Table(title=f"Proposals ({data['total']})", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("File", style="cyan")
    table.add_column("Category")
    table.add_column("Action", style="green")
    table.add_column("Confidence")
    table.add_column("Sensitive", justify="center")

    for summary in data["proposals"]:
        table.add_row(
            summary["id"],
            escape(summary["filename"]),
            summary["category"],
            summary["action"],
            summary["confidence"],
            "[sensitive]yes[/sensitive]" if summary["sensitive"] else "",
        )

    console.print(table)
    if data["hasMore"]:
        console.print(f"[dim]Showing {limit} of {data['total']}. Use --limit to see more.[/dim]")


@proposals.command(name="approve")
@click.argument("proposal_id")
@click.option("--confirm-sensitive", is_flag=True, help="Required for sensitive files")
@click.pass_context
def proposals_approve(ctx, proposal_id: str, confirm_sensitive: bool):
    """Approve a proposal and move its file."""
    runtime = _runtime(ctx)
    result = runtime.tools.approve_proposal(proposal_id, confirm_sensitive=confirm_sensitive)
    if not result.success and result.error == SENSITIVE_CONFIRMATION_ERROR:
        _fail("This proposal is flagged as sensitive. Re-run with --confirm-sensitive.")
    data = _check(result)

    console.print(f"[green]✓[/green] Moved {data['sourcePath']} → {data['destinationPath']}")
    if data.get("warning"):
        console.print(f"[yellow]⚠ {data['warning']}[/yellow]")


@proposals.command(name="reject")
@click.argument("proposal_id")
@click.option("--reason", help="Why the proposal is wrong")
@click.pass_context
def proposals_reject(ctx, proposal_id: str, reason: Optional[str]):
    """Reject a proposal; the file will not be proposed again during the cooldown."""
    runtime = _runtime(ctx)
    data = _check(runtime.tools.reject_proposal(proposal_id, reason=reason))
    console.print(
        f"[green]✓[/green] Rejected {data['filename']} (cooldown until {data['cooldownUntil']})"
    )


@proposals.command(name="approve-all")
@click.option("--include-sensitive", is_flag=True, help="Also approve sensitive files")
@click.pass_context
def proposals_approve_all(ctx, include_sensitive: bool):
    """Approve every pending proposal."""
    runtime = _runtime(ctx)
    data = _check(runtime.tools.approve_all_proposals(include_sensitive=include_sensitive))
    console.print(
        f"[green]✓[/green] Approved {data['approved']}, skipped {data['skipped']}, "
        f"failed {data['failed']}"
    )
    for error in data["errors"]:
        console.print(f"  [red]✗[/red] {error}")


@proposals.command(name="clear")
@click.confirmation_option(prompt="Discard all pending proposals?")
@click.pass_context
def proposals_clear(ctx):
    """Discard all pending proposals without moving anything."""
    runtime = _runtime(ctx)
    data = _check(runtime.tools.clear_all_proposals())
    console.print(f"[green]✓[/green] Cleared {data['cleared']} proposal(s)")


@cli.group()
def dirs():
    """Manage watched directories."""
    pass


@dirs.command(name="list")
@click.pass_context
def dirs_list(ctx):
    """Show watched directories."""
    _, config = _load(ctx)

    table = Table(title="Watched Directories", show_header=True, header_style="bold cyan")
    table.add_column("Path", style="cyan")
    table.add_column("Enabled", justify="center")
    table.add_column("Recursive", justify="center")
    table.add_column("Exists", justify="center")

    for directory in config.watched_directories:
        table.add_row(
            str(directory.path),
            "✓" if directory.enabled else "✗",
            "✓" if directory.recursive else "",
            "[green]✓[/green]" if directory.path.is_dir() else "[red]✗[/red]",
        )
    console.print(table)


@dirs.command(name="add")
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--recursive", "-r", is_flag=True, help="Also watch subdirectories")
@click.pass_context
def dirs_add(ctx, path: Path, recursive: bool):
    """Add a directory to the watch list."""
    config_manager, config = _load(ctx)
    runtime = Runtime(config)
    data = _check(runtime.tools.add_watched_directory(str(path), recursive=recursive))

    try:
        config_manager.add_watched_directory(data["path"], recursive=recursive)
    except (ValueError, OSError) as e:
        _fail(str(e))

    console.print(f"[green]✓[/green] Watching {data['path']}")


@dirs.command(name="remove")
@click.argument("path", type=click.Path(path_type=Path))
@click.pass_context
def dirs_remove(ctx, path: Path):
    """Remove a directory from the watch list."""
    config_manager, _ = _load(ctx)
    try:
        config_manager.remove_watched_directory(path)
    except (ValueError, OSError) as e:
        _fail(str(e))
    console.print(f"[green]✓[/green] No longer watching {normalize_path(path)}")


if __name__ == "__main__":
    cli()
