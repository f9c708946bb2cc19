"""Console summaries of candidates and run outcomes."""

from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.table import Table

from blobtier.models import BlobRecord, OutcomeKind, RunContext, RunOutcome

MAX_ROWS = 50

_OUTCOME_STYLES = {
    OutcomeKind.SUCCESS: ("green", "Migration completed"),
    OutcomeKind.COMPLETED_WITH_ERRORS: ("yellow", "Migration completed with errors"),
    OutcomeKind.NO_CANDIDATES: ("green", "No blobs matched; nothing to migrate"),
    OutcomeKind.DECLINED: ("yellow", "Migration cancelled by operator"),
    OutcomeKind.DRY_RUN: ("blue", "Dry run finished; no blobs were changed"),
    OutcomeKind.FATAL: ("bold red", "Run aborted"),
}


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024 or unit == "TB":
            return f"{value:,.0f} {unit}" if unit == "B" else f"{value:,.1f} {unit}"
        value /= 1024
    return f"{size} B"


def print_candidates(console: Console, candidates: Sequence[BlobRecord]) -> None:
    """Print a table of candidate blobs (truncated to MAX_ROWS)."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Blob", style="cyan")
    table.add_column("Tier")
    table.add_column("Last modified")
    table.add_column("Size", justify="right")

    for record in candidates[:MAX_ROWS]:
        table.add_row(
            record.name,
            record.tier.value,
            str(record.last_modified),
            _format_size(record.content_length),
        )

    console.print(table)
    if len(candidates) > MAX_ROWS:
        console.print(f"[dim]... and {len(candidates) - MAX_ROWS} more[/dim]")
    total = sum(record.content_length for record in candidates)
    console.print(f"Candidates: {len(candidates)} blobs, {_format_size(total)}")


def print_outcome(console: Console, outcome: RunOutcome, context: RunContext) -> None:
    """Print the final run summary."""
    style, title = _OUTCOME_STYLES[outcome.kind]
    console.print()
    console.print(f"[{style}]{title}[/{style}] ({context.account_name}/{context.container})")

    if outcome.is_fatal:
        console.print(f"  [red]{outcome.error_kind}[/red] during {outcome.phase}: {outcome.error_message}")

    result = outcome.result
    if result is not None:
        console.print(f"  Succeeded: {len(result.succeeded)}")
        console.print(f"  Failed:    {len(result.failed)}")
        if result.skipped:
            console.print(f"  Skipped:   {len(result.skipped)}")
        if result.failed:
            table = Table(show_header=True, header_style="bold")
            table.add_column("Blob", style="cyan")
            table.add_column("Error", style="red")
            for failure in result.failed[:MAX_ROWS]:
                table.add_row(failure.record.identity, str(failure.error))
            console.print(table)

    for path in outcome.audit_paths:
        console.print(f"  Audit: [cyan]{path}[/cyan]")
    console.print(f"  Exit code: {outcome.exit_code.value}")
