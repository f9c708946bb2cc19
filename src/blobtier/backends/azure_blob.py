"""Azure Blob Storage provider.

Implements :class:`~blobtier.backends._protocols.BlobProvider` on top of
azure-storage-blob. Listing walks every page of ``list_blobs`` and the tier
predicate is applied as each page arrives, so only matching items are
converted and buffered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from azure.core.exceptions import AzureError, HttpResponseError
from azure.storage.blob import BlobServiceClient

from blobtier.backends._protocols import RawObjectMetadata
from blobtier.errors import ConfigurationError, ProviderError
from blobtier.types import AccessTier, RehydratePriority

if TYPE_CHECKING:
    from blobtier.backends._protocols import (
        AzureBlobPropertiesProtocol,
        AzureBlobServiceClientProtocol,
        AzureContainerClientProtocol,
    )

logger = logging.getLogger(__name__)


@dataclass
class AzureBlobConfig:
    """Connection settings for the Azure provider.

    Attributes:
        account_url: Blob endpoint, e.g. ``https://acct.blob.core.windows.net``.
        connection_string: Azure Storage connection string (takes precedence).
        account_key: Storage account key.
        sas_token: SAS token.
        credential: Token credential from the session guard.
        credential_factory: Called for a credential on first use when none was given.
        include_versions: List every blob version instead of current versions only.
        include_tags: Request blob index tags while listing.
    """

    account_url: str | None = None
    connection_string: str | None = None
    account_key: str | None = None
    sas_token: str | None = None
    credential: Any = None
    credential_factory: Callable[[], Any] | None = None
    include_versions: bool = False
    include_tags: bool = True


def _status_code(error: AzureError) -> int | None:
    if isinstance(error, HttpResponseError):
        return error.status_code
    return None


class AzureBlobProvider:
    """Blob provider backed by an Azure Storage account.

    Authentication Methods:
        1. Connection string:
            AzureBlobProvider(connection_string="...")

        2. Account URL with SAS token or account key:
            AzureBlobProvider(account_url="https://...", sas_token="...")

        3. Account URL with a token credential (the session guard's):
            AzureBlobProvider(account_url="https://...", credential=session.credential)
    """

    def __init__(
        self,
        account_url: str | None = None,
        connection_string: str | None = None,
        account_key: str | None = None,
        sas_token: str | None = None,
        credential: Any = None,
        credential_factory: Callable[[], Any] | None = None,
        include_versions: bool = False,
        include_tags: bool = True,
        client: "AzureBlobServiceClientProtocol | None" = None,
    ) -> None:
        """Initialize the provider.

        Args:
            account_url: Blob endpoint of the storage account.
            connection_string: Azure Storage connection string.
            account_key: Storage account key.
            sas_token: SAS token.
            credential: Token credential (e.g. from azure-identity).
            credential_factory: Resolves the credential lazily, e.g. once the
                session guard has logged in.
            include_versions: List all blob versions.
            include_tags: Request blob index tags while listing.
            client: Pre-built service client, mainly for tests.
        """
        self._config = AzureBlobConfig(
            account_url=account_url,
            connection_string=connection_string,
            account_key=account_key,
            sas_token=sas_token,
            credential=credential,
            credential_factory=credential_factory,
            include_versions=include_versions,
            include_tags=include_tags,
        )
        self._client = client
        self._containers: dict[str, AzureContainerClientProtocol] = {}

    @property
    def config(self) -> AzureBlobConfig:
        return self._config

    def _get_client(self) -> "AzureBlobServiceClientProtocol":
        """Create the service client from the configured credentials."""
        if self._client is not None:
            return self._client

        config = self._config
        if config.connection_string:
            self._client = BlobServiceClient.from_connection_string(config.connection_string)
        elif config.account_url:
            credential = config.sas_token or config.account_key or config.credential
            if credential is None and config.credential_factory is not None:
                credential = config.credential_factory()
            if credential is None:
                raise ConfigurationError(
                    "No credential available for the storage account. Establish a "
                    "session or provide an account key or SAS token.",
                    key="credential",
                )
            self._client = BlobServiceClient(account_url=config.account_url, credential=credential)
        else:
            raise ConfigurationError(
                "No connection settings provided. Provide connection_string or account_url.",
                key="account_url",
            )
        return self._client

    def _get_container(self, container: str) -> "AzureContainerClientProtocol":
        if container not in self._containers:
            self._containers[container] = self._get_client().get_container_client(container)
        return self._containers[container]

    def _include(self) -> list[str]:
        include = []
        if self._config.include_tags:
            include.append("tags")
        if self._config.include_versions:
            include.append("versions")
        return include

    @staticmethod
    def _to_raw(container: str, blob: "AzureBlobPropertiesProtocol") -> RawObjectMetadata:
        return RawObjectMetadata(
            name=blob.name,
            container=getattr(blob, "container", None) or container,
            tier=blob.blob_tier,
            last_modified=blob.last_modified,
            version_id=getattr(blob, "version_id", None),
            last_accessed=getattr(blob, "last_accessed_on", None),
            content_length=getattr(blob, "size", None),
            archive_status=getattr(blob, "archive_status", None),
            rehydrate_priority=getattr(blob, "rehydrate_priority", None),
            etag=getattr(blob, "etag", None),
            tags=dict(getattr(blob, "tags", None) or {}),
        )

    def list_objects(
        self,
        container: str,
        tier_filter: AccessTier | None = None,
        prefix: str | None = None,
    ) -> list[RawObjectMetadata]:
        """List objects in a container.

        Args:
            container: Container name.
            tier_filter: Only keep objects in this tier.
            prefix: Blob name prefix, sent to the service.

        Returns:
            All matching objects across every page.

        Raises:
            ProviderError: If the container is missing or listing fails.
        """
        container_client = self._get_container(container)
        objects: list[RawObjectMetadata] = []
        scanned = 0

        try:
            if not container_client.exists():
                raise ProviderError("list_objects", f"Container not found: {container}", 404)

            pages = container_client.list_blobs(
                name_starts_with=prefix, include=self._include() or None
            ).by_page()
            for page_number, page in enumerate(pages, start=1):
                page_matches = 0
                for blob in page:
                    scanned += 1
                    if tier_filter is not None and AccessTier.from_provider(blob.blob_tier) is not tier_filter:
                        continue
                    objects.append(self._to_raw(container, blob))
                    page_matches += 1
                logger.debug(f"Listed page {page_number} of {container}: {page_matches} matching")

        except AzureError as e:
            raise ProviderError("list_objects", str(e), _status_code(e)) from e

        logger.debug(f"Scanned {scanned} blobs in {container}, {len(objects)} matched tier filter")
        return objects

    def set_tier(
        self,
        container: str,
        name: str,
        target_tier: AccessTier,
        priority: RehydratePriority | None = None,
        version_id: str | None = None,
    ) -> None:
        """Set the access tier of one blob.

        Raises:
            ProviderError: If the service rejects the change.
        """
        blob_client = self._get_container(container).get_blob_client(name)

        kwargs: dict[str, Any] = {}
        if priority is not None:
            kwargs["rehydrate_priority"] = priority.value
        if version_id:
            kwargs["version_id"] = version_id

        try:
            blob_client.set_standard_blob_tier(target_tier.value, **kwargs)
        except AzureError as e:
            raise ProviderError("set_tier", str(e), _status_code(e)) from e

    def close(self) -> None:
        """Close the underlying service client."""
        close = getattr(self._client, "close", None)
        if callable(close):
            close()
        self._client = None
        self._containers.clear()
