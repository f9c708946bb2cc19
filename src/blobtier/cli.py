"""Command-line interface for blobtier."""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import ExitStack
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console

from blobtier import __version__
from blobtier.audit import AuditRecorder
from blobtier.backends.azure_blob import AzureBlobProvider
from blobtier.config import MigrationSettings, load_settings
from blobtier.enumerator import BlobEnumerator
from blobtier.errors import ConfigurationError
from blobtier.executor import TierMigrationExecutor
from blobtier.gate import ConfirmationGate, PromptConfirmationSource, StaticConfirmationSource
from blobtier.logging import configure_logging
from blobtier.models import ExitCode, OutcomeKind, RunContext, RunOutcome
from blobtier.orchestrator import TierMigrationOrchestrator
from blobtier.report import print_candidates, print_outcome
from blobtier.session import AzureSessionProvider, SessionGuard

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="blobtier",
    help="Move Azure blobs between access tiers with an audit trail",
    add_completion=False,
)


def build_orchestrator(
    settings: MigrationSettings,
    context: RunContext,
    console: Console,
    cancel_event: threading.Event | None = None,
    resources: ExitStack | None = None,
) -> TierMigrationOrchestrator:
    """Wire the Azure-backed pipeline for a run.

    The blob provider is closed when ``resources`` is closed.
    """
    session_provider = AzureSessionProvider(interactive=settings.interactive_login)
    provider = AzureBlobProvider(
        account_url=context.account_url,
        connection_string=settings.connection_string,
        credential_factory=lambda: session_provider.credential,
        include_versions=settings.include_versions,
    )
    if resources is not None:
        resources.callback(provider.close)

    if settings.assume_yes:
        source: Any = StaticConfirmationSource("y")
    else:
        source = PromptConfirmationSource(console)

    return TierMigrationOrchestrator(
        context=context,
        session_guard=SessionGuard(session_provider),
        enumerator=BlobEnumerator(provider),
        recorder=AuditRecorder(settings.audit_dir, context.account_name, context.container),
        gate=ConfirmationGate(source, console=console),
        executor=TierMigrationExecutor(provider, max_workers=context.max_workers),
        cancel_event=cancel_event,
    )


def _install_cancel_handler(cancel_event: threading.Event) -> None:
    """First Ctrl-C stops after the current blob; a second one aborts."""

    def handler(signum: int, frame: Any) -> None:
        if cancel_event.is_set():
            raise KeyboardInterrupt
        cancel_event.set()
        logger.warning("Cancellation requested; press Ctrl-C again to abort immediately")

    signal.signal(signal.SIGINT, handler)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"blobtier {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version"),
    ] = None,
) -> None:
    """Move Azure blobs between access tiers with an audit trail."""


@app.command(name="migrate")
def migrate_cmd(
    account: Annotated[
        Optional[str], typer.Option("--account", "-a", help="Storage account name")
    ] = None,
    container: Annotated[
        Optional[str], typer.Option("--container", "-c", help="Container name")
    ] = None,
    tenant: Annotated[
        Optional[str], typer.Option("--tenant", help="Tenant (directory) id")
    ] = None,
    subscription: Annotated[
        Optional[str], typer.Option("--subscription", help="Subscription id")
    ] = None,
    tier_filter: Annotated[
        Optional[str],
        typer.Option("--from-tier", help="Tier candidates must be in (Hot, Cool, Cold, Archive)"),
    ] = None,
    target_tier: Annotated[
        Optional[str], typer.Option("--to-tier", help="Tier to move candidates to")
    ] = None,
    start: Annotated[
        Optional[str],
        typer.Option("--start", help="Window start, ISO date or timestamp (inclusive)"),
    ] = None,
    end: Annotated[
        Optional[str],
        typer.Option("--end", help="Window end, ISO date or timestamp (inclusive)"),
    ] = None,
    priority: Annotated[
        Optional[str],
        typer.Option("--priority", help="Rehydrate priority out of Archive (Standard, High)"),
    ] = None,
    prefix: Annotated[
        Optional[str], typer.Option("--prefix", help="Only consider blobs with this name prefix")
    ] = None,
    audit_dir: Annotated[
        Optional[Path], typer.Option("--audit-dir", help="Directory for audit artifacts")
    ] = None,
    log_dir: Annotated[
        Optional[Path], typer.Option("--log-dir", help="Directory for the log file")
    ] = None,
    config_file: Annotated[
        Optional[Path], typer.Option("--config", help="YAML, TOML or JSON settings file")
    ] = None,
    workers: Annotated[
        Optional[int], typer.Option("--workers", "-w", help="Concurrent tier changes")
    ] = None,
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt")
    ] = False,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="List and audit candidates without changing them")
    ] = False,
    non_interactive: Annotated[
        bool,
        typer.Option("--non-interactive", help="Use DefaultAzureCredential instead of browser login"),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug output on the console")
    ] = False,
) -> None:
    """Migrate blobs in one container from one tier to another."""
    console = Console()

    overrides: dict[str, Any] = {
        "account_name": account,
        "container": container,
        "tenant_id": tenant,
        "subscription_id": subscription,
        "tier_filter": tier_filter,
        "target_tier": target_tier,
        "start_time": start,
        "end_time": end,
        "priority": priority,
        "prefix": prefix,
        "audit_dir": audit_dir,
        "log_dir": log_dir,
        "max_workers": workers,
        "assume_yes": True if yes else None,
        "dry_run": True if dry_run else None,
        "interactive_login": False if non_interactive else None,
        "log_level": "DEBUG" if verbose else None,
    }

    try:
        settings = load_settings(config_file, overrides=overrides)
        context = settings.to_run_context()
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(ExitCode.USAGE_ERROR.value)

    log_path = configure_logging(settings.log_level, settings.log_dir)
    logger.debug(f"Logging to {log_path}")

    cancel_event = threading.Event()
    _install_cancel_handler(cancel_event)

    with ExitStack() as resources:
        orchestrator = build_orchestrator(settings, context, console, cancel_event, resources)
        outcome: RunOutcome = orchestrator.run()

    if outcome.kind is OutcomeKind.DRY_RUN:
        print_candidates(console, outcome.candidates)
    print_outcome(console, outcome, context)
    raise typer.Exit(outcome.exit_code.value)


if __name__ == "__main__":
    app()
