"""Exception hierarchy for blobtier.

Fatal errors (session scope, enumeration, post-migration audit) abort a run.
Per-object errors (malformed records, single migration failures) are caught
where they occur and never escalate past the batch they belong to.
"""

from __future__ import annotations

from typing import Any


class BlobTierError(Exception):
    """Base exception for all blobtier errors."""

    pass


class ConfigurationError(BlobTierError):
    """Raised when run configuration is missing or invalid."""

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class ProviderError(BlobTierError):
    """Raised by a blob provider when a storage call fails."""

    def __init__(self, operation: str, message: str, status_code: int | None = None) -> None:
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"{operation} failed: {message}")


class SessionScopeError(BlobTierError):
    """Raised when the session cannot be bound to the requested tenant/subscription."""

    def __init__(
        self,
        message: str,
        tenant_id: str | None = None,
        subscription_id: str | None = None,
    ) -> None:
        self.tenant_id = tenant_id
        self.subscription_id = subscription_id
        super().__init__(message)


class EnumerationError(BlobTierError):
    """Raised when listing a container fails. No partial listing is usable."""

    def __init__(self, container: str, message: str) -> None:
        self.container = container
        super().__init__(f"Failed to enumerate container {container}: {message}")


class MalformedRecordError(BlobTierError):
    """Raised for a single record that cannot be evaluated by the filter."""

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        super().__init__(f"Malformed record {name}: {message}")


class PerObjectMigrationError(BlobTierError):
    """Raised when a single blob's tier change fails."""

    def __init__(
        self,
        name: str,
        from_tier: str,
        to_tier: str,
        message: str,
        cause: BaseException | None = None,
    ) -> None:
        self.name = name
        self.from_tier = from_tier
        self.to_tier = to_tier
        self.cause = cause
        super().__init__(f"Failed to migrate {name} from {from_tier} to {to_tier}: {message}")


class AuditWriteError(BlobTierError):
    """Raised when an audit artifact cannot be written."""

    def __init__(self, phase: str, path: Any, message: str) -> None:
        self.phase = phase
        self.path = path
        super().__init__(f"Failed to write {phase} audit to {path}: {message}")
