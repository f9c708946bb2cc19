"""Per-object tier migration.

Blobs are migrated one at a time in enumeration order by default. A bounded
worker pool can be enabled for throughput; results are reassembled in
enumeration order either way. One blob's failure is recorded and the batch
continues. A KeyboardInterrupt ends the batch like cancellation: the
interrupted blob and every unstarted one are returned as skipped, so the
caller can still audit what changed.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Callable, Sequence

from blobtier.backends._protocols import BlobProvider
from blobtier.errors import PerObjectMigrationError
from blobtier.models import BlobRecord, FailedMigration, MigrationRequest, MigrationResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, BlobRecord, Exception | None], None]

_SKIPPED = object()


class TierMigrationExecutor:
    """Issues tier changes for a candidate set.

    Example:
        >>> executor = TierMigrationExecutor(provider)
        >>> result = executor.migrate(candidates, MigrationRequest(AccessTier.HOT))
        >>> len(result.succeeded), len(result.failed)
        (3, 0)
    """

    def __init__(
        self,
        provider: BlobProvider,
        max_workers: int = 1,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            provider: Provider tier changes are issued against.
            max_workers: Concurrent tier changes (1 = sequential).
            on_progress: Called after each blob with (done, total, record, error).
        """
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._provider = provider
        self._max_workers = max_workers
        self._on_progress = on_progress

    def _migrate_one(self, record: BlobRecord, request: MigrationRequest) -> Exception | None:
        """Change one blob's tier, returning the error instead of raising it."""
        try:
            self._provider.set_tier(
                record.container,
                record.name,
                request.target_tier,
                priority=request.priority_for(record.tier),
                version_id=record.version_id,
            )
        except Exception as e:
            return PerObjectMigrationError(
                record.identity,
                record.tier.value,
                request.target_tier.value,
                str(e),
                cause=e,
            )
        return None

    def _report(self, done: int, total: int, record: BlobRecord, error: Exception | None) -> None:
        if error is None:
            logger.info(f"[{done}/{total}] Migrated {record.identity}")
        else:
            logger.error(f"[{done}/{total}] {error}")

        if self._on_progress:
            try:
                self._on_progress(done, total, record, error)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    def _run_sequential(
        self,
        records: Sequence[BlobRecord],
        request: MigrationRequest,
        cancel_event: threading.Event | None,
    ) -> list[object]:
        outcomes: list[object] = [_SKIPPED] * len(records)
        for index, record in enumerate(records):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Migration cancelled after {index} of {len(records)} blobs")
                break
            try:
                outcomes[index] = self._migrate_one(record, request)
            except KeyboardInterrupt:
                logger.warning(
                    f"Migration interrupted during {record.identity}; "
                    f"its tier change is unconfirmed"
                )
                break
            self._report(index + 1, len(records), record, outcomes[index])
        return outcomes

    def _run_pooled(
        self,
        records: Sequence[BlobRecord],
        request: MigrationRequest,
        cancel_event: threading.Event | None,
    ) -> list[object]:
        outcomes: list[object] = [_SKIPPED] * len(records)

        def task(record: BlobRecord) -> object:
            if cancel_event is not None and cancel_event.is_set():
                return _SKIPPED
            return self._migrate_one(record, request)

        done = 0
        collected: set[Future] = set()

        def collect(future: Future) -> None:
            nonlocal done
            collected.add(future)
            index = futures[future]
            outcomes[index] = future.result()
            if outcomes[index] is _SKIPPED:
                return
            done += 1
            self._report(done, len(records), records[index], outcomes[index])  # type: ignore[arg-type]

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            futures = {pool.submit(task, record): index for index, record in enumerate(records)}
            try:
                for future in as_completed(futures):
                    collect(future)
            except KeyboardInterrupt:
                logger.warning("Migration interrupted; waiting for in-flight tier changes")
                for future in futures:
                    future.cancel()
                for future in futures:
                    if future not in collected and not future.cancelled():
                        collect(future)
        return outcomes

    def migrate(
        self,
        records: Sequence[BlobRecord],
        request: MigrationRequest,
        cancel_event: threading.Event | None = None,
    ) -> MigrationResult:
        """Migrate every record to the requested tier.

        Args:
            records: Candidates, in enumeration order.
            request: Target tier and rehydrate priority.
            cancel_event: When set, no further blobs are started.

        Returns:
            Succeeded, failed and skipped blobs, each in enumeration order.
        """
        records = list(records)
        started_at = datetime.now(timezone.utc)
        logger.info(
            f"Migrating {len(records)} blobs to {request.target_tier.value} "
            f"(workers: {self._max_workers})"
        )

        if self._max_workers == 1 or len(records) <= 1:
            outcomes = self._run_sequential(records, request, cancel_event)
        else:
            outcomes = self._run_pooled(records, request, cancel_event)

        succeeded: list[BlobRecord] = []
        failed: list[FailedMigration] = []
        skipped: list[BlobRecord] = []
        for record, outcome in zip(records, outcomes):
            if outcome is _SKIPPED:
                skipped.append(record)
            elif outcome is None:
                succeeded.append(record)
            else:
                failed.append(FailedMigration(record=record, error=outcome))  # type: ignore[arg-type]

        result = MigrationResult(
            succeeded=tuple(succeeded),
            failed=tuple(failed),
            skipped=tuple(skipped),
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        logger.info(
            f"Migration finished: {len(succeeded)} succeeded, {len(failed)} failed, "
            f"{len(skipped)} skipped in {result.duration_seconds:.1f}s"
        )
        return result
