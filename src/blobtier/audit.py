"""Audit trail of discovered and migrated blobs.

Each call to :meth:`AuditRecorder.record` produces one CSV artifact named
after its phase and creation time. Artifacts are write-once: the CSV is
written to a temporary file and hard-linked into place, so an artifact is
either complete or absent and an existing one is never replaced.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterable, Sequence

import polars as pl

from blobtier.errors import AuditWriteError
from blobtier.models import AuditBatch, BlobRecord, FailedMigration
from blobtier.types import AuditPhase

logger = logging.getLogger(__name__)

BASE_SCHEMA: dict[str, type[pl.DataType]] = {
    "phase": pl.Utf8,
    "batch_created_at": pl.Utf8,
    "container": pl.Utf8,
    "name": pl.Utf8,
    "version_id": pl.Utf8,
    "tier": pl.Utf8,
    "last_modified": pl.Utf8,
    "last_accessed": pl.Utf8,
    "content_length": pl.Int64,
    "rehydration_status": pl.Utf8,
    "etag": pl.Utf8,
    "tags": pl.Utf8,
}


def schema_for(phase: AuditPhase) -> dict[str, type[pl.DataType]]:
    """Column schema of an artifact for ``phase``."""
    if phase is AuditPhase.FAILED:
        return {**BASE_SCHEMA, "error": pl.Utf8}
    return dict(BASE_SCHEMA)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditRecorder:
    """Writes audit batches to a directory.

    Example:
        >>> recorder = AuditRecorder("audit/", account="acct", container="logs")
        >>> batch = recorder.record(AuditPhase.DISCOVERED, candidates)
        >>> batch.path
        PosixPath('audit/discovered_acct_logs_20240410T120000000000Z.csv')
    """

    def __init__(
        self,
        directory: str | Path,
        account: str,
        container: str,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the recorder.

        Args:
            directory: Directory for artifacts (created on first write).
            account: Storage account name, used in artifact names.
            container: Container name, used in artifact names.
            clock: Source of batch timestamps.
        """
        self._directory = Path(directory)
        self._account = account
        self._container = container
        self._clock = clock
        self._last_created_at: datetime | None = None
        self._batches: list[AuditBatch] = []

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def batches(self) -> list[AuditBatch]:
        """Batches written so far, in order."""
        return list(self._batches)

    def _next_timestamp(self) -> datetime:
        """Batch timestamps are strictly increasing even if the clock stalls."""
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        return now

    def artifact_path(self, phase: AuditPhase, created_at: datetime) -> Path:
        """Path an artifact for ``phase`` created at ``created_at`` is written to."""
        stamp = created_at.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        return self._directory / f"{phase.value}_{self._account}_{self._container}_{stamp}.csv"

    def record(
        self,
        phase: AuditPhase,
        records: Iterable[BlobRecord],
        failures: Sequence[str] = (),
    ) -> AuditBatch:
        """Write one audit batch.

        Args:
            phase: Phase the batch belongs to.
            records: Blobs to record, in order.
            failures: Error message per record (FAILED phase only).

        Returns:
            The written batch, with ``path`` set.

        Raises:
            AuditWriteError: If the artifact cannot be written or already exists.
        """
        batch = AuditBatch(
            phase=phase,
            records=tuple(records),
            created_at=self._next_timestamp(),
            failures=tuple(failures),
        )
        path = self.artifact_path(phase, batch.created_at)

        rows = batch.to_rows()
        schema = schema_for(phase)
        frame = pl.from_dicts(rows, schema=schema) if rows else pl.DataFrame(schema=schema)

        tmp_path = path.with_name(path.name + ".tmp")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            frame.write_csv(tmp_path)
            os.link(tmp_path, path)
        except FileExistsError as e:
            raise AuditWriteError(phase.value, path, "artifact already exists") from e
        except (OSError, pl.exceptions.PolarsError) as e:
            raise AuditWriteError(phase.value, path, str(e)) from e
        finally:
            tmp_path.unlink(missing_ok=True)

        batch = replace(batch, path=path)
        self._batches.append(batch)
        logger.info(f"Recorded {len(batch)} {phase.value} blobs to {path}")
        return batch

    def record_failures(self, failures: Iterable[FailedMigration]) -> AuditBatch:
        """Write the FAILED batch for per-object migration failures."""
        failures = list(failures)
        return self.record(
            AuditPhase.FAILED,
            [failure.record for failure in failures],
            [str(failure.error) for failure in failures],
        )


def load_artifact(path: str | Path) -> pl.DataFrame:
    """Read an audit artifact back with its declared schema."""
    path = Path(path)
    phase = AuditPhase(path.name.split("_", 1)[0])
    return pl.read_csv(path, schema=schema_for(phase))
