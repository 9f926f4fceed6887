"""CLI for vault-sync."""

import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import SyncConfig, load_config, save_config
from .constants import DEFAULT_API_URL, DEFAULT_BRANCH, VAULT_SYNC_DIR
from .context import VaultContext
from .core import DiffResult, RemoteStatus, SyncDirection, SyncOutcome, SyncReport
from .errors import ConfigError, IntegrityError, RemoteError, SyncInProgressError
from .orchestrator import ConfirmationPrompt, SyncOrchestrator
from .remote import make_remote_store
from .scheduler import AutoSyncScheduler
from .utils import format_timestamp


app = typer.Typer(help="""\
Keep a local vault of notes in sync with a remote repository.
Push local changes, pull remote ones, or let auto-sync push on a timer.""")

repo_app = typer.Typer(help="Create, delete or check the remote repository.")
app.add_typer(repo_app, name="repo")

console = Console()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose or os.environ.get("VAULT_SYNC_DEBUG") else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    _configure_logging(verbose)


def require_vault_context() -> VaultContext:
    """Ensure the vault is initialized and return its context.

    Raises:
        typer.Exit: If not inside a vault
    """
    try:
        return VaultContext()
    except ValueError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        console.print()
        console.print("To set up this directory as a vault, run:")
        console.print("  [cyan]vault-sync init[/cyan]")
        raise typer.Exit(1)


def require_config(ctx: VaultContext) -> SyncConfig:
    try:
        return load_config(ctx)
    except FileNotFoundError:
        console.print("[red]✗[/red] Vault not properly initialized (missing config)")
        raise typer.Exit(1)
    except (ConfigError, ValueError) as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)


def _build_orchestrator(ctx: VaultContext, config: SyncConfig, yes: bool = False) -> SyncOrchestrator:
    def confirm(prompt: ConfirmationPrompt) -> bool:
        if yes:
            return True
        console.print(f"\n[yellow]⚠ {prompt.message}[/yellow]")
        return typer.confirm("Proceed?", default=False)

    try:
        return SyncOrchestrator.from_context(ctx, config, confirm=confirm)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)


def display_report(report: SyncReport) -> None:
    """Print a sync report and exit non-zero unless it succeeded."""
    arrow = "↑" if report.direction == SyncDirection.PUSH else "↓"
    for path in report.applied:
        console.print(f"  [green]{arrow}[/green] {escape(path)}")

    if report.failed:
        console.print("\n[red]Failed items:[/red]")
        for failure in report.failed:
            console.print(f"  [red]✗[/red] {escape(failure.path)}: {escape(failure.error)}")

    if report.outcome == SyncOutcome.ABORTED:
        console.print(f"[yellow]{report.summary()}[/yellow]")
        raise typer.Exit(1)
    if not report.succeeded:
        console.print(f"[red]✗[/red] {report.summary()}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {report.summary()}")


def _run_sync(direction: SyncDirection, yes: bool) -> None:
    ctx = require_vault_context()
    config = require_config(ctx)
    orchestrator = _build_orchestrator(ctx, config, yes=yes)

    try:
        if direction == SyncDirection.PUSH:
            report = orchestrator.push_vault()
        else:
            report = orchestrator.pull_vault()
    except SyncInProgressError as e:
        console.print(f"[yellow]{escape(str(e))}[/yellow]")
        raise typer.Exit(1)
    except IntegrityError as e:
        console.print("[red]INTEGRITY ERROR[/red]")
        console.print(str(e), markup=False, highlight=False)
        raise typer.Exit(2)

    display_report(report)


@app.command()
def init(
    path: Optional[str] = typer.Argument(None, help="Vault directory (default: current directory)"),
    provider: str = typer.Option("github", help="Remote provider: github or fs"),
    owner: str = typer.Option("", help="Repository owner (github)"),
    repository: str = typer.Option("", "--repository", "-r", help="Repository name"),
    branch: str = typer.Option(DEFAULT_BRANCH, help="Branch holding the vault"),
    api_url: str = typer.Option(DEFAULT_API_URL, help="API root URL (github)"),
    remote_dir: Optional[str] = typer.Option(None, help="Base directory for the fs provider"),
):
    """Initialize a vault and write its sync configuration.

    Examples:
        vault-sync init --owner me --repository notes
        vault-sync init --provider fs --remote-dir ~/mirror -r notes
    """
    target = Path(path) if path else Path.cwd()
    if VaultContext.is_initialized(target):
        console.print(f"[red]error:[/red] Vault already initialized in `{target}` ({VAULT_SYNC_DIR} exists)")
        raise typer.Exit(1)

    try:
        config = SyncConfig(
            provider=provider,
            owner=owner,
            repository=repository,
            branch=branch,
            api_url=api_url,
            remote_dir=remote_dir,
        )
    except ValueError as e:
        console.print(f"[red]✗[/red] Invalid configuration: {escape(str(e))}")
        raise typer.Exit(1)

    target.mkdir(parents=True, exist_ok=True)
    ctx = VaultContext.init(target)
    save_config(config, ctx)
    console.print(f"[green]✓[/green] Initialized vault in {ctx.root}")

    missing = config.missing_settings()
    if missing:
        console.print(f"[yellow]Still missing: {', '.join(missing)}[/yellow]")
        console.print(f"[dim]Edit {ctx.config_path} before pushing[/dim]")


@app.command()
def status():
    """Show what a push and a pull would change."""
    ctx = require_vault_context()
    config = require_config(ctx)
    orchestrator = _build_orchestrator(ctx, config)

    try:
        sync_status = orchestrator.status()
    except (OSError, ValueError) as e:
        console.print(f"[red]✗[/red] Could not read the local vault: {escape(str(e))}")
        raise typer.Exit(1)
    if sync_status.remote_status == RemoteStatus.ERROR:
        console.print("[red]Cannot read the remote repository[/red]")
        console.print("[dim]Check your network connection and credentials (run with -v for details)[/dim]")
        raise typer.Exit(1)

    console.print(f"[bold]Local files:[/bold] {sync_status.local_files}   "
                  f"[bold]Remote files:[/bold] {sync_status.remote_files}")
    if sync_status.remote_status == RemoteStatus.EMPTY:
        console.print("[yellow]Remote repository is empty[/yellow]")

    if sync_status.push.is_empty and sync_status.pull.is_empty:
        console.print("\n[green]✓[/green] Everything up to date")
        return

    _print_diff_table("Push would", sync_status.push, "↑")
    _print_diff_table("Pull would", sync_status.pull, "↓")


def _print_diff_table(title: str, diff: DiffResult, arrow: str) -> None:
    if diff.is_empty:
        return
    table = Table(title=f"{title}: {diff.summary()}", title_justify="left")
    table.add_column("Change")
    table.add_column("Path")
    table.add_column("Modified")
    for entry in diff.to_upsert:
        table.add_row(f"[green]{arrow}[/green]", escape(entry.path), format_timestamp(entry.modified_at))
    for entry in diff.to_delete:
        table.add_row("[red]-[/red]", escape(entry.path), format_timestamp(entry.modified_at))
    console.print()
    console.print(table)


@app.command()
def push(
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to confirmation prompts"),
):
    """Push local changes to the remote repository.

    Examples:
        vault-sync push          # Upload changes, delete remote-only files
        vault-sync push --yes    # Also push an empty vault without asking
    """
    _run_sync(SyncDirection.PUSH, yes)


@app.command()
def pull(
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to confirmation prompts"),
):
    """Pull remote changes into the local vault.

    Local-only files are removed. If local files look newer than the
    remote history you are asked before anything is changed.
    """
    _run_sync(SyncDirection.PULL, yes)


@app.command("toggle-auto-sync")
def toggle_auto_sync():
    """Turn periodic auto-push on or off for this vault."""
    ctx = require_vault_context()
    config = require_config(ctx)

    config.auto_sync = not config.auto_sync
    save_config(config, ctx)

    if config.auto_sync:
        console.print(f"[green]✓[/green] Auto-sync enabled (every {config.auto_sync_interval}s)")
        console.print("[dim]Run 'vault-sync watch' to start it[/dim]")
    else:
        console.print("[green]✓[/green] Auto-sync disabled")


@app.command()
def watch():
    """Push on a timer until interrupted (requires auto-sync enabled)."""
    ctx = require_vault_context()
    config = require_config(ctx)
    if not config.auto_sync:
        console.print("[yellow]Auto-sync is disabled[/yellow]")
        console.print("  [cyan]vault-sync toggle-auto-sync[/cyan] to enable it")
        raise typer.Exit(1)

    # Unattended: prompts are declined
    try:
        orchestrator = SyncOrchestrator.from_context(ctx, config)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)

    scheduler = AutoSyncScheduler(orchestrator.push_vault, config.auto_sync_interval)
    scheduler.start()
    console.print(f"[bold]Auto-sync running every {config.auto_sync_interval}s[/bold] (Ctrl-C to stop)")
    try:
        scheduler.wait()
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()

    if scheduler.error is not None:
        console.print("[red]INTEGRITY ERROR[/red]")
        console.print(str(scheduler.error), markup=False, highlight=False)
        console.print("[red]✗[/red] Auto-sync stopped")
        raise typer.Exit(2)
    console.print("[green]✓[/green] Auto-sync stopped")


# ============= Repository lifecycle =============

def _remote_for_repo_command(config: SyncConfig):
    try:
        return make_remote_store(config)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)


@repo_app.command("create")
def repo_create():
    """Create the configured remote repository."""
    ctx = require_vault_context()
    config = require_config(ctx)
    store = _remote_for_repo_command(config)
    try:
        if store.repository_exists(config.repository):
            console.print(f"[yellow]Repository {config.repository} already exists[/yellow]")
            return
        store.create_repository(config.repository)
    except RemoteError as e:
        console.print(f"[red]✗[/red] Could not create repository: {escape(str(e))}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Created repository {config.repository}")


@repo_app.command("delete")
def repo_delete(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete the configured remote repository and all its history."""
    ctx = require_vault_context()
    config = require_config(ctx)
    store = _remote_for_repo_command(config)

    if not yes and not typer.confirm(
        f"Delete repository {config.repository} and all of its history?", default=False
    ):
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(1)

    try:
        store.delete_repository(config.repository)
    except RemoteError as e:
        console.print(f"[red]✗[/red] Could not delete repository: {escape(str(e))}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Deleted repository {config.repository}")


@repo_app.command("exists")
def repo_exists():
    """Check whether the configured remote repository exists."""
    ctx = require_vault_context()
    config = require_config(ctx)
    store = _remote_for_repo_command(config)
    try:
        exists = store.repository_exists(config.repository)
    except RemoteError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if exists:
        console.print(f"[green]✓[/green] Repository {config.repository} exists")
    else:
        console.print(f"[yellow]Repository {config.repository} does not exist[/yellow]")
        raise typer.Exit(1)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
