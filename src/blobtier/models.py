"""Data model for tier migration runs.

All values here are immutable once built. ``BlobRecord`` instances are
snapshots taken by the enumerator; ``RunContext`` is built once before the
session guard runs and passed explicitly to every component.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from blobtier.types import AccessTier, AuditPhase, RehydratePriority, RehydrationStatus


# =============================================================================
# Timestamp helpers
# =============================================================================


def ensure_utc(value: datetime) -> datetime:
    """Return an aware datetime, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: Any) -> datetime:
    """Parse a provider or user timestamp.

    Args:
        value: A datetime or an ISO-8601 string (a trailing ``Z`` is accepted).

    Returns:
        Timezone-aware datetime.

    Raises:
        ValueError: If the value is missing or cannot be parsed.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return ensure_utc(datetime.fromisoformat(text))
    raise ValueError(f"Not a timestamp: {value!r}")


def _isoformat(value: datetime | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class BlobRecord:
    """Snapshot of one blob as reported by the provider at enumeration time.

    Attributes:
        container: Container holding the blob.
        name: Blob name.
        tier: Access tier at enumeration time.
        last_modified: Provider-reported modification time. A value the
            enumerator could not parse is kept as-is for the filter to reject.
        version_id: Blob version, when versioning is enabled.
        last_accessed: Last access time, when access tracking is enabled.
        content_length: Size in bytes.
        rehydration_status: Archive rehydration state.
        etag: Opaque concurrency token.
        tags: Blob index tags.
    """

    container: str
    name: str
    tier: AccessTier
    last_modified: datetime | str | None
    version_id: str | None = None
    last_accessed: datetime | None = None
    content_length: int = 0
    rehydration_status: RehydrationStatus = RehydrationStatus.NONE
    etag: str = ""
    tags: Mapping[str, str] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    @property
    def identity(self) -> str:
        """Human-readable identity used in logs and errors."""
        if self.version_id:
            return f"{self.container}/{self.name}@{self.version_id}"
        return f"{self.container}/{self.name}"

    def to_row(self) -> dict[str, Any]:
        """Flatten into a single audit row (one column per attribute)."""
        return {
            "container": self.container,
            "name": self.name,
            "version_id": self.version_id or "",
            "tier": self.tier.value,
            "last_modified": _isoformat(self.last_modified),
            "last_accessed": _isoformat(self.last_accessed),
            "content_length": self.content_length,
            "rehydration_status": self.rehydration_status.value,
            "etag": self.etag,
            "tags": ";".join(f"{k}={v}" for k, v in sorted(self.tags.items())),
        }


@dataclass(frozen=True)
class TierFilterCriteria:
    """Tier and inclusive ``last_modified`` window that candidates must match."""

    tier_filter: AccessTier
    start_time: datetime
    end_time: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_time", ensure_utc(self.start_time))
        object.__setattr__(self, "end_time", ensure_utc(self.end_time))
        if self.start_time > self.end_time:
            raise ValueError(
                f"start_time ({self.start_time.isoformat()}) must not be after "
                f"end_time ({self.end_time.isoformat()})"
            )

    def contains(self, moment: datetime) -> bool:
        """Check whether a timestamp falls inside the window (both ends inclusive)."""
        return self.start_time <= ensure_utc(moment) <= self.end_time


@dataclass(frozen=True)
class MigrationRequest:
    """Target tier and rehydrate priority for a migration.

    The priority is only sent to the provider for blobs leaving Archive.
    """

    target_tier: AccessTier
    priority: RehydratePriority = RehydratePriority.STANDARD

    def __post_init__(self) -> None:
        if self.target_tier is AccessTier.UNKNOWN:
            raise ValueError("target_tier must be a concrete access tier")

    def priority_for(self, source_tier: AccessTier) -> RehydratePriority | None:
        """Priority to send for a blob currently in ``source_tier``."""
        if source_tier is AccessTier.ARCHIVE:
            return self.priority
        return None


@dataclass(frozen=True)
class RunContext:
    """Read-only configuration of a single run.

    Attributes:
        account_name: Storage account name.
        container: Container to migrate.
        tenant_id: Directory (tenant) the session must be scoped to.
        subscription_id: Subscription the session must be scoped to.
        criteria: Tier and time window candidates must match.
        request: Target tier and rehydrate priority.
        prefix: Optional blob name prefix applied server-side when listing.
        dry_run: Stop after the discovery audit without prompting or mutating.
        max_workers: Tier change calls issued concurrently (1 = sequential).
    """

    account_name: str
    container: str
    tenant_id: str
    subscription_id: str
    criteria: TierFilterCriteria
    request: MigrationRequest
    prefix: str | None = None
    dry_run: bool = False
    max_workers: int = 1

    def __post_init__(self) -> None:
        if not self.account_name:
            raise ValueError("account_name is required")
        if not self.container:
            raise ValueError("container is required")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if self.request.target_tier is self.criteria.tier_filter:
            raise ValueError(
                f"Target tier {self.request.target_tier.value} is the same as the tier filter"
            )

    @property
    def account_url(self) -> str:
        """Blob endpoint for the account."""
        return f"https://{self.account_name}.blob.core.windows.net"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "account_name": self.account_name,
            "container": self.container,
            "tenant_id": self.tenant_id,
            "subscription_id": self.subscription_id,
            "tier_filter": self.criteria.tier_filter.value,
            "start_time": self.criteria.start_time.isoformat(),
            "end_time": self.criteria.end_time.isoformat(),
            "target_tier": self.request.target_tier.value,
            "priority": self.request.priority.value,
            "prefix": self.prefix,
            "dry_run": self.dry_run,
            "max_workers": self.max_workers,
        }


# =============================================================================
# Audit
# =============================================================================


@dataclass(frozen=True)
class AuditBatch:
    """Write-once record of the blobs seen or changed in one phase.

    Attributes:
        phase: Phase the batch belongs to.
        records: Blobs in enumeration order.
        created_at: Batch creation time (strictly increasing per recorder).
        failures: Error message per record, only for the FAILED phase.
        path: Artifact location once written.
    """

    phase: AuditPhase
    records: tuple[BlobRecord, ...]
    created_at: datetime
    failures: tuple[str, ...] = ()
    path: Path | None = None

    def __post_init__(self) -> None:
        if self.failures and len(self.failures) != len(self.records):
            raise ValueError("failures must align one-to-one with records")

    def __len__(self) -> int:
        return len(self.records)

    def to_rows(self) -> list[dict[str, Any]]:
        """Rows for the tabular artifact."""
        rows = []
        for index, record in enumerate(self.records):
            row = {
                "phase": self.phase.value,
                "batch_created_at": self.created_at.isoformat(),
                **record.to_row(),
            }
            if self.phase is AuditPhase.FAILED:
                row["error"] = self.failures[index] if self.failures else ""
            rows.append(row)
        return rows


# =============================================================================
# Migration results and run outcome
# =============================================================================


@dataclass(frozen=True)
class FailedMigration:
    """A blob whose tier change failed, with the error raised for it."""

    record: BlobRecord
    error: Exception


@dataclass(frozen=True)
class MigrationResult:
    """Result of a migration batch.

    Attributes:
        succeeded: Blobs whose tier change succeeded, in enumeration order.
        failed: Blobs whose tier change failed, in enumeration order.
        skipped: Blobs never attempted because the run was cancelled.
        started_at: When the batch started.
        finished_at: When the batch finished.
    """

    succeeded: tuple[BlobRecord, ...] = ()
    failed: tuple[FailedMigration, ...] = ()
    skipped: tuple[BlobRecord, ...] = ()
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def attempted(self) -> int:
        """Number of blobs a tier change was issued for."""
        return len(self.succeeded) + len(self.failed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def cancelled(self) -> bool:
        return bool(self.skipped)

    @property
    def duration_seconds(self) -> float:
        """Batch duration in seconds."""
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


class ExitCode(Enum):
    """Process exit codes."""

    SUCCESS = 0
    FATAL = 1
    USAGE_ERROR = 2
    PARTIAL_FAILURE = 3


class OutcomeKind(Enum):
    """Terminal state of a run."""

    SUCCESS = "success"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    NO_CANDIDATES = "no_candidates"
    DECLINED = "declined"
    DRY_RUN = "dry_run"
    FATAL = "fatal"


_EXIT_CODES = {
    OutcomeKind.SUCCESS: ExitCode.SUCCESS,
    OutcomeKind.NO_CANDIDATES: ExitCode.SUCCESS,
    OutcomeKind.DECLINED: ExitCode.SUCCESS,
    OutcomeKind.DRY_RUN: ExitCode.SUCCESS,
    OutcomeKind.COMPLETED_WITH_ERRORS: ExitCode.PARTIAL_FAILURE,
    OutcomeKind.FATAL: ExitCode.FATAL,
}


@dataclass(frozen=True)
class RunOutcome:
    """Explicit outcome of a run.

    Callers branch on ``kind`` instead of catching exceptions. FATAL outcomes
    carry the error kind, message and the phase the run stopped in.
    """

    kind: OutcomeKind
    candidates: tuple[BlobRecord, ...] = ()
    result: MigrationResult | None = None
    audit_paths: tuple[Path, ...] = ()
    error_kind: str | None = None
    error_message: str | None = None
    phase: str | None = None

    @property
    def exit_code(self) -> ExitCode:
        return _EXIT_CODES[self.kind]

    @property
    def is_fatal(self) -> bool:
        return self.kind is OutcomeKind.FATAL

    @classmethod
    def fatal(
        cls,
        error: BaseException,
        phase: str,
        candidates: tuple[BlobRecord, ...] = (),
        result: MigrationResult | None = None,
        audit_paths: tuple[Path, ...] = (),
    ) -> "RunOutcome":
        """Build a FATAL outcome from the exception that stopped the run."""
        return cls(
            kind=OutcomeKind.FATAL,
            candidates=candidates,
            result=result,
            audit_paths=audit_paths,
            error_kind=type(error).__name__,
            error_message=str(error),
            phase=phase,
        )
