"""blobtier: audited access-tier migration for Azure Blob Storage.

Example:
    >>> from blobtier import BlobEnumerator, filter_by_window, TierFilterCriteria
    >>> records = BlobEnumerator(provider).list_blobs("backups", AccessTier.ARCHIVE)
    >>> candidates = filter_by_window(records, criteria)
"""

from blobtier.audit import AuditRecorder
from blobtier.enumerator import BlobEnumerator
from blobtier.errors import (
    AuditWriteError,
    BlobTierError,
    ConfigurationError,
    EnumerationError,
    MalformedRecordError,
    PerObjectMigrationError,
    ProviderError,
    SessionScopeError,
)
from blobtier.executor import TierMigrationExecutor
from blobtier.filtering import filter_by_window
from blobtier.gate import ConfirmationGate, PromptConfirmationSource, StaticConfirmationSource
from blobtier.models import (
    AuditBatch,
    BlobRecord,
    ExitCode,
    FailedMigration,
    MigrationRequest,
    MigrationResult,
    OutcomeKind,
    RunContext,
    RunOutcome,
    TierFilterCriteria,
)
from blobtier.orchestrator import TierMigrationOrchestrator
from blobtier.session import SessionGuard, SessionInfo
from blobtier.types import AccessTier, AuditPhase, RehydratePriority, RehydrationStatus

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Types
    "AccessTier",
    "AuditPhase",
    "RehydratePriority",
    "RehydrationStatus",
    # Models
    "AuditBatch",
    "BlobRecord",
    "ExitCode",
    "FailedMigration",
    "MigrationRequest",
    "MigrationResult",
    "OutcomeKind",
    "RunContext",
    "RunOutcome",
    "TierFilterCriteria",
    # Components
    "AuditRecorder",
    "BlobEnumerator",
    "ConfirmationGate",
    "PromptConfirmationSource",
    "SessionGuard",
    "SessionInfo",
    "StaticConfirmationSource",
    "TierMigrationExecutor",
    "TierMigrationOrchestrator",
    "filter_by_window",
    # Errors
    "AuditWriteError",
    "BlobTierError",
    "ConfigurationError",
    "EnumerationError",
    "MalformedRecordError",
    "PerObjectMigrationError",
    "ProviderError",
    "SessionScopeError",
]
