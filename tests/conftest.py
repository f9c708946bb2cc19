"""Shared fixtures for blobtier tests."""

from __future__ import annotations

import io
from datetime import datetime, timezone

import pytest
from rich.console import Console

from blobtier.backends import MemoryBlobProvider, RawObjectMetadata
from blobtier.models import MigrationRequest, RunContext, TierFilterCriteria
from blobtier.session import SessionInfo
from blobtier.types import AccessTier, RehydratePriority

TENANT = "tenant-1"
SUBSCRIPTION = "sub-1"


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def raw_blob(
    name: str,
    last_modified: object,
    tier: str = "Archive",
    container: str = "backups",
    size: int = 1024,
    **kwargs: object,
) -> RawObjectMetadata:
    return RawObjectMetadata(
        name=name,
        container=container,
        tier=tier,
        last_modified=last_modified,
        content_length=size,
        etag=f'"0x{abs(hash(name)) % 10**8:08d}"',
        **kwargs,  # type: ignore[arg-type]
    )


class FakeSessionProvider:
    """Session provider that records calls and never touches Azure."""

    def __init__(self, session: SessionInfo | None = None, honour_scope: bool = True) -> None:
        self.session = session
        self.honour_scope = honour_scope
        self.logins: list[str] = []
        self.scopes: list[str] = []

    def get_current_session(self) -> SessionInfo | None:
        return self.session

    def login(self, tenant_id: str) -> None:
        self.logins.append(tenant_id)
        self.session = SessionInfo(tenant_id=tenant_id)

    def set_active_scope(self, subscription_id: str) -> None:
        self.scopes.append(subscription_id)
        if self.honour_scope and self.session is not None:
            self.session = SessionInfo(
                tenant_id=self.session.tenant_id, subscription_id=subscription_id
            )


@pytest.fixture
def criteria():
    """April 2024 window over Archive blobs."""
    return TierFilterCriteria(
        tier_filter=AccessTier.ARCHIVE,
        start_time=utc(2024, 4, 1),
        end_time=datetime(2024, 4, 30, 23, 59, 59, 999999, tzinfo=timezone.utc),
    )


@pytest.fixture
def context(criteria):
    """Archive -> Hot run context for the backups container."""
    return RunContext(
        account_name="acct",
        container="backups",
        tenant_id=TENANT,
        subscription_id=SUBSCRIPTION,
        criteria=criteria,
        request=MigrationRequest(AccessTier.HOT, RehydratePriority.HIGH),
    )


@pytest.fixture
def provider():
    """In-memory provider with blobA (April) and blobB (March)."""
    return MemoryBlobProvider(
        [
            raw_blob("blobA", utc(2024, 4, 10)),
            raw_blob("blobB", utc(2024, 3, 1)),
        ]
    )


@pytest.fixture
def session_provider():
    """Session provider already scoped to the test tenant and subscription."""
    return FakeSessionProvider(SessionInfo(tenant_id=TENANT, subscription_id=SUBSCRIPTION))


@pytest.fixture
def console():
    """Console writing to an in-memory buffer."""
    return Console(file=io.StringIO(), width=120)
