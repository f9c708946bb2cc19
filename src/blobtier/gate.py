"""Operator confirmation before any blob is changed.

The gate is the only point in a run that waits on a human. Anything other
than an exact affirmative answer declines, including empty input and input
that cannot be read at all.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

from rich.console import Console

from blobtier.models import BlobRecord, RunContext
from blobtier.report import print_candidates

logger = logging.getLogger(__name__)

DEFAULT_AFFIRMATIVE = ("y", "Y")


@runtime_checkable
class ConfirmationSource(Protocol):
    """Supplies the operator's answer to a confirmation prompt."""

    def ask(self, prompt: str) -> str | None:
        """Return the raw answer, or None when no answer could be read."""
        ...


class PromptConfirmationSource:
    """Reads the answer from the console. Blocks until a line is entered."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def ask(self, prompt: str) -> str | None:
        try:
            return self._console.input(prompt)
        except (EOFError, KeyboardInterrupt):
            self._console.print()
            return None


class StaticConfirmationSource:
    """Pre-answered source for unattended runs and tests."""

    def __init__(self, answer: str | None) -> None:
        self.answer = answer
        self.prompts: list[str] = []

    def ask(self, prompt: str) -> str | None:
        self.prompts.append(prompt)
        return self.answer


class ConfirmationGate:
    """Blocking checkpoint in front of the migration executor."""

    def __init__(
        self,
        source: ConfirmationSource,
        affirmative: Sequence[str] = DEFAULT_AFFIRMATIVE,
        console: Console | None = None,
        show_candidates: bool = True,
    ) -> None:
        """Initialize the gate.

        Args:
            source: Where the answer comes from.
            affirmative: Exact answers that mean "proceed".
            console: Console the summary is printed to.
            show_candidates: Print a table of the candidates before asking.
        """
        if not affirmative:
            raise ValueError("affirmative must contain at least one answer")
        self._source = source
        self._affirmative = frozenset(affirmative)
        self._console = console or Console()
        self._show_candidates = show_candidates

    def is_affirmative(self, answer: str | None) -> bool:
        """Check an answer against the allow-list (exact match, no trimming)."""
        return answer is not None and answer in self._affirmative

    def require_confirmation(
        self,
        candidates: Sequence[BlobRecord],
        context: RunContext,
        audit_path: Path | None = None,
        cancel_event: threading.Event | None = None,
    ) -> bool:
        """Present the candidate summary and wait for the operator.

        Args:
            candidates: Blobs that would be migrated.
            context: Run configuration, for the summary.
            audit_path: Discovery artifact the operator can inspect.
            cancel_event: Declines without prompting when already set.

        Returns:
            True only if the operator answered affirmatively.
        """
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Run cancelled before confirmation")
            return False

        self._console.print()
        if self._show_candidates:
            print_candidates(self._console, candidates)
        self._console.print(
            f"[bold]{len(candidates)}[/bold] blobs in "
            f"[cyan]{context.account_name}/{context.container}[/cyan] will move from "
            f"{context.criteria.tier_filter.value} to "
            f"[bold]{context.request.target_tier.value}[/bold]."
        )
        if audit_path is not None:
            self._console.print(f"Review the candidate list in [cyan]{audit_path}[/cyan]")
        else:
            self._console.print("[yellow]The discovery audit could not be written; see the log.[/yellow]")

        answer = self._source.ask("Proceed with the tier change? (y/n) ")
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Run cancelled at the confirmation prompt")
            return False
        confirmed = self.is_affirmative(answer)
        if confirmed:
            logger.info(f"Operator confirmed migration of {len(candidates)} blobs")
        else:
            logger.info(f"Operator declined migration (answer: {answer!r})")
        return confirmed
