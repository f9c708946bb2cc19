"""Time-window filtering of enumerated blobs."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from blobtier.errors import MalformedRecordError
from blobtier.models import BlobRecord, TierFilterCriteria, parse_timestamp

logger = logging.getLogger(__name__)


def resolve_last_modified(record: BlobRecord) -> datetime:
    """Return the record's modification time as an aware datetime.

    Raises:
        MalformedRecordError: If the timestamp is missing or unparseable.
    """
    try:
        return parse_timestamp(record.last_modified)
    except ValueError as e:
        raise MalformedRecordError(record.identity, str(e)) from e


def filter_by_window(
    records: Iterable[BlobRecord], criteria: TierFilterCriteria
) -> list[BlobRecord]:
    """Keep records whose ``last_modified`` lies inside the criteria window.

    Both window ends are inclusive. A malformed record is logged and dropped
    without affecting the others. Input order is preserved.

    Args:
        records: Enumerated records.
        criteria: Window to apply.

    Returns:
        Matching records.
    """
    selected = []
    dropped = 0
    for record in records:
        try:
            modified = resolve_last_modified(record)
        except MalformedRecordError as e:
            dropped += 1
            logger.warning(f"Excluding record: {e}")
            continue
        if criteria.contains(modified):
            selected.append(record)

    if dropped:
        logger.warning(f"{dropped} records excluded for malformed last_modified")
    return selected
