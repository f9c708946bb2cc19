"""Blob enumeration.

Turns a provider listing into immutable :class:`BlobRecord` snapshots. The
listing is fully materialised because the operator confirms the complete
candidate set before anything is changed.
"""

from __future__ import annotations

import logging
from datetime import datetime

from blobtier.backends._protocols import BlobProvider, RawObjectMetadata
from blobtier.errors import EnumerationError
from blobtier.models import BlobRecord, parse_timestamp
from blobtier.types import AccessTier, RehydrationStatus

logger = logging.getLogger(__name__)


def _parse_or_keep(value: object, name: str, field_name: str) -> datetime | str | None:
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        logger.debug(f"Unparseable {field_name} on {name}: {value!r}")
        return str(value)


def to_record(raw: RawObjectMetadata) -> BlobRecord:
    """Build a BlobRecord snapshot from provider metadata."""
    last_accessed = _parse_or_keep(raw.last_accessed, raw.name, "last_accessed")
    return BlobRecord(
        container=raw.container,
        name=raw.name,
        tier=AccessTier.from_provider(raw.tier),
        last_modified=_parse_or_keep(raw.last_modified, raw.name, "last_modified"),
        version_id=raw.version_id,
        last_accessed=last_accessed if isinstance(last_accessed, datetime) else None,
        content_length=int(raw.content_length or 0),
        rehydration_status=RehydrationStatus.from_provider(
            raw.archive_status, raw.rehydrate_priority
        ),
        etag=raw.etag or "",
        tags=raw.tags,
    )


class BlobEnumerator:
    """Lists the blobs of a container in a given tier."""

    def __init__(self, provider: BlobProvider) -> None:
        self._provider = provider

    def list_blobs(
        self,
        container: str,
        tier_filter: AccessTier,
        prefix: str | None = None,
    ) -> list[BlobRecord]:
        """List blobs in ``container`` currently in ``tier_filter``.

        The tier predicate is handed to the provider to cut transfer, then
        re-checked here since the provider side is only an optimisation.

        Args:
            container: Container name.
            tier_filter: Tier to match.
            prefix: Optional blob name prefix.

        Returns:
            Records in provider listing order.

        Raises:
            EnumerationError: If the listing fails for any reason.
        """
        logger.info(f"Listing {tier_filter.value} blobs in container {container}")
        try:
            raw_objects = self._provider.list_objects(container, tier_filter, prefix)
            records = [to_record(raw) for raw in raw_objects]
        except EnumerationError:
            raise
        except Exception as e:
            raise EnumerationError(container, str(e)) from e

        matching = []
        for record in records:
            if record.tier is not tier_filter:
                logger.debug(f"Skipping {record.identity}: tier {record.tier.value}")
                continue
            matching.append(record)
            logger.debug(
                f"Found {record.identity} tier={record.tier.value} "
                f"last_modified={record.last_modified} size={record.content_length}"
            )

        logger.info(f"Found {len(matching)} {tier_filter.value} blobs in {container}")
        return matching
