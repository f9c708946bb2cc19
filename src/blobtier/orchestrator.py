"""Tier migration run orchestration.

Wires the pipeline in order:

    SessionGuard -> BlobEnumerator -> filter_by_window -> AuditRecorder (discovered)
        -> ConfirmationGate -> TierMigrationExecutor -> AuditRecorder (migrated/failed)

Expected terminal states (nothing to do, operator declined) and fatal errors
are both returned as a :class:`RunOutcome`; ``run`` does not raise for them.
"""

from __future__ import annotations

import logging
import threading

from blobtier.audit import AuditRecorder
from blobtier.enumerator import BlobEnumerator
from blobtier.errors import AuditWriteError, EnumerationError, SessionScopeError
from blobtier.executor import TierMigrationExecutor
from blobtier.filtering import filter_by_window
from blobtier.gate import ConfirmationGate
from blobtier.models import AuditBatch, BlobRecord, OutcomeKind, RunContext, RunOutcome
from blobtier.session import SessionGuard
from blobtier.types import AuditPhase

logger = logging.getLogger(__name__)


class TierMigrationOrchestrator:
    """Runs one tier migration for a single account/container pair.

    Example:
        >>> orchestrator = TierMigrationOrchestrator(
        ...     context, guard, BlobEnumerator(provider), recorder, gate,
        ...     TierMigrationExecutor(provider),
        ... )
        >>> outcome = orchestrator.run()
        >>> outcome.exit_code
        <ExitCode.SUCCESS: 0>
    """

    def __init__(
        self,
        context: RunContext,
        session_guard: SessionGuard,
        enumerator: BlobEnumerator,
        recorder: AuditRecorder,
        gate: ConfirmationGate,
        executor: TierMigrationExecutor,
        discovery_retries: int = 1,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            context: Run configuration.
            session_guard: Verifies the session scope.
            enumerator: Lists candidate blobs.
            recorder: Writes audit artifacts.
            gate: Operator confirmation.
            executor: Issues tier changes.
            discovery_retries: Extra attempts for the discovery audit.
            cancel_event: Cancels the run at the gate or between blobs.
        """
        self._context = context
        self._guard = session_guard
        self._enumerator = enumerator
        self._recorder = recorder
        self._gate = gate
        self._executor = executor
        self._discovery_retries = discovery_retries
        self._cancel_event = cancel_event

    @property
    def context(self) -> RunContext:
        return self._context

    def _record_discovery(self, candidates: tuple[BlobRecord, ...]) -> AuditBatch | None:
        """Write the discovery audit; failures here are tolerated."""
        attempts = self._discovery_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._recorder.record(AuditPhase.DISCOVERED, candidates)
            except AuditWriteError as e:
                logger.warning(f"Discovery audit attempt {attempt}/{attempts} failed: {e}")

        logger.error("Continuing without a discovery audit artifact; candidates follow")
        for record in candidates:
            logger.error(f"Candidate: {record.identity}")
        return None

    def run(self) -> RunOutcome:
        """Execute the run.

        Returns:
            The run outcome. Fatal errors are reported as FATAL outcomes.
        """
        context = self._context
        logger.info(
            f"Starting tier migration for {context.account_name}/{context.container}: "
            f"{context.criteria.tier_filter.value} -> {context.request.target_tier.value}, "
            f"modified {context.criteria.start_time.isoformat()} .. "
            f"{context.criteria.end_time.isoformat()}"
        )
        logger.debug(f"Run context: {context.to_dict()}")

        try:
            self._guard.ensure_session(context.tenant_id, context.subscription_id)
        except SessionScopeError as e:
            logger.error(f"SessionScopeError: {e}")
            return RunOutcome.fatal(e, phase="session")

        try:
            records = self._enumerator.list_blobs(
                context.container, context.criteria.tier_filter, context.prefix
            )
        except EnumerationError as e:
            logger.error(f"EnumerationError: {e}")
            return RunOutcome.fatal(e, phase="enumeration")

        candidates = tuple(filter_by_window(records, context.criteria))
        if not candidates:
            logger.info("No blobs match the tier and time window; nothing to migrate")
            return RunOutcome(kind=OutcomeKind.NO_CANDIDATES)
        logger.info(f"{len(candidates)} of {len(records)} blobs fall inside the time window")

        audit_paths = []
        discovery = self._record_discovery(candidates)
        if discovery is not None and discovery.path is not None:
            audit_paths.append(discovery.path)

        if context.dry_run:
            logger.info("Dry run: stopping before confirmation")
            return RunOutcome(
                kind=OutcomeKind.DRY_RUN, candidates=candidates, audit_paths=tuple(audit_paths)
            )

        confirmed = self._gate.require_confirmation(
            candidates,
            context,
            audit_path=discovery.path if discovery else None,
            cancel_event=self._cancel_event,
        )
        if not confirmed:
            return RunOutcome(
                kind=OutcomeKind.DECLINED, candidates=candidates, audit_paths=tuple(audit_paths)
            )

        result = self._executor.migrate(candidates, context.request, self._cancel_event)

        try:
            migrated = self._recorder.record(AuditPhase.MIGRATED, result.succeeded)
            audit_paths.append(migrated.path)
            if result.failed:
                failed = self._recorder.record_failures(result.failed)
                audit_paths.append(failed.path)
        except AuditWriteError as e:
            logger.critical(f"AuditWriteError after migration: {e}")
            for record in result.succeeded:
                logger.error(f"Migrated (unrecorded): {record.identity}")
            for failure in result.failed:
                logger.error(f"Failed (unrecorded): {failure.record.identity}: {failure.error}")
            return RunOutcome.fatal(
                e,
                phase="post-migration audit",
                candidates=candidates,
                result=result,
                audit_paths=tuple(audit_paths),
            )

        if result.skipped:
            logger.warning(f"{len(result.skipped)} blobs were not attempted (cancelled)")
            for record in result.skipped:
                logger.debug(f"Not attempted: {record.identity}")

        kind = OutcomeKind.SUCCESS
        if result.failed or result.skipped:
            kind = OutcomeKind.COMPLETED_WITH_ERRORS
        return RunOutcome(
            kind=kind, candidates=candidates, result=result, audit_paths=tuple(audit_paths)
        )
