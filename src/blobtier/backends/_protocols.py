"""Protocol definitions for blob providers and the Azure SDK clients.

The orchestrator only depends on :class:`BlobProvider`. The Azure client
protocols define just the SDK methods the Azure backend calls, so tests can
substitute mocks without the SDK's type stubs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Iterator, Protocol, runtime_checkable

from blobtier.types import AccessTier, RehydratePriority


# =============================================================================
# Provider capability
# =============================================================================


@dataclass(frozen=True)
class RawObjectMetadata:
    """Object metadata as returned by a provider listing, before normalisation.

    Field values are passed through untouched; the enumerator is responsible
    for turning them into a :class:`~blobtier.models.BlobRecord`.
    """

    name: str
    container: str
    tier: Any = None
    last_modified: Any = None
    version_id: str | None = None
    last_accessed: Any = None
    content_length: int | None = None
    archive_status: str | None = None
    rehydrate_priority: str | None = None
    etag: str | None = None
    tags: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class BlobProvider(Protocol):
    """Storage calls used by the migration pipeline."""

    def list_objects(
        self,
        container: str,
        tier_filter: AccessTier | None = None,
        prefix: str | None = None,
    ) -> list[RawObjectMetadata]:
        """List every object in a container, fully paged.

        Args:
            container: Container name.
            tier_filter: Only return objects in this tier, when given.
            prefix: Only return objects whose name starts with this prefix.

        Raises:
            ProviderError: If the listing fails.
        """
        ...

    def set_tier(
        self,
        container: str,
        name: str,
        target_tier: AccessTier,
        priority: RehydratePriority | None = None,
        version_id: str | None = None,
    ) -> None:
        """Change the access tier of one object.

        Raises:
            ProviderError: If the provider rejects the change.
        """
        ...


# =============================================================================
# Azure Blob Storage Protocol (azure-storage-blob)
# =============================================================================


class AzureBlobPropertiesProtocol(Protocol):
    """Protocol for Azure BlobProperties items returned by ``list_blobs``."""

    name: str
    container: str
    version_id: str | None
    blob_tier: Any
    last_modified: datetime | None
    last_accessed_on: datetime | None
    size: int
    archive_status: str | None
    rehydrate_priority: str | None
    etag: str | None
    tags: dict[str, str] | None


class AzureItemPagedProtocol(Protocol):
    """Protocol for the paged iterator returned by ``list_blobs``."""

    def by_page(self) -> Iterator[Iterable[AzureBlobPropertiesProtocol]]:
        """Iterate page by page."""
        ...


@runtime_checkable
class AzureBlobClientProtocol(Protocol):
    """Protocol for Azure Blob Client.

    Defines the minimal interface used by AzureBlobProvider.
    """

    def set_standard_blob_tier(self, standard_blob_tier: str, **kwargs: Any) -> None:
        """Set the blob's access tier."""
        ...


@runtime_checkable
class AzureContainerClientProtocol(Protocol):
    """Protocol for Azure Container Client."""

    def get_blob_client(self, blob: str) -> AzureBlobClientProtocol:
        """Get a blob client."""
        ...

    def exists(self) -> bool:
        """Check if the container exists."""
        ...

    def list_blobs(
        self,
        name_starts_with: str | None = None,
        include: list[str] | None = None,
        **kwargs: Any,
    ) -> AzureItemPagedProtocol:
        """List blobs in the container."""
        ...


@runtime_checkable
class AzureBlobServiceClientProtocol(Protocol):
    """Protocol for Azure Blob Service Client."""

    def get_container_client(self, container: str) -> AzureContainerClientProtocol:
        """Get a container client."""
        ...
