"""Tests for blob enumeration."""

from unittest.mock import Mock

import pytest

from blobtier.backends import MemoryBlobProvider
from blobtier.enumerator import BlobEnumerator, to_record
from blobtier.errors import EnumerationError, ProviderError
from blobtier.types import AccessTier, RehydrationStatus

from conftest import raw_blob, utc


class TestToRecord:
    """Tests for to_record."""

    def test_normalises_provider_values(self):
        """Test tier, timestamps and rehydration state are normalised."""
        raw = raw_blob(
            "a.bin",
            "2024-04-10T10:00:00Z",
            tier="archive",
            archive_status="rehydrate-pending-to-hot",
            tags={"team": "data"},
            version_id="v1",
        )

        record = to_record(raw)

        assert record.tier is AccessTier.ARCHIVE
        assert record.last_modified == utc(2024, 4, 10, 10)
        assert record.rehydration_status is RehydrationStatus.PENDING
        assert record.tags == {"team": "data"}
        assert record.identity == "backups/a.bin@v1"

    def test_keeps_unparseable_last_modified(self):
        """Test a bad timestamp is kept raw for the filter to reject."""
        record = to_record(raw_blob("a.bin", "garbage"))
        assert record.last_modified == "garbage"

    def test_unknown_tier(self):
        """Test missing tiers map to UNKNOWN."""
        assert to_record(raw_blob("a.bin", None, tier=None)).tier is AccessTier.UNKNOWN

    def test_tags_are_read_only(self):
        """Test the snapshot's tags cannot be mutated."""
        record = to_record(raw_blob("a.bin", None, tags={"k": "v"}))
        with pytest.raises(TypeError):
            record.tags["k"] = "changed"  # type: ignore[index]


class TestBlobEnumerator:
    """Tests for BlobEnumerator."""

    def test_lists_only_matching_tier(self):
        """Test blobs in other tiers are not returned."""
        provider = MemoryBlobProvider(
            [
                raw_blob("cold.bin", utc(2024, 4, 1), tier="Archive"),
                raw_blob("hot.bin", utc(2024, 4, 1), tier="Hot"),
            ]
        )

        records = BlobEnumerator(provider).list_blobs("backups", AccessTier.ARCHIVE)

        assert [r.name for r in records] == ["cold.bin"]

    def test_rechecks_tier_from_provider(self):
        """Test the enumerator does not trust the provider-side predicate."""
        provider = Mock()
        provider.list_objects.return_value = [
            raw_blob("a", utc(2024, 4, 1), tier="Archive"),
            raw_blob("b", utc(2024, 4, 1), tier="Cool"),
        ]

        records = BlobEnumerator(provider).list_blobs("backups", AccessTier.ARCHIVE, prefix="a")

        assert [r.name for r in records] == ["a"]
        provider.list_objects.assert_called_once_with("backups", AccessTier.ARCHIVE, "a")

    def test_prefix(self):
        """Test the name prefix is applied."""
        provider = MemoryBlobProvider(
            [raw_blob("logs/1", utc(2024, 4, 1)), raw_blob("data/1", utc(2024, 4, 1))]
        )

        records = BlobEnumerator(provider).list_blobs("backups", AccessTier.ARCHIVE, "logs/")

        assert [r.name for r in records] == ["logs/1"]

    def test_provider_failure_raises_enumeration_error(self):
        """Test listing failures abort with EnumerationError."""
        provider = MemoryBlobProvider(list_error=ProviderError("list_objects", "403 Forbidden", 403))

        with pytest.raises(EnumerationError, match="backups"):
            BlobEnumerator(provider).list_blobs("backups", AccessTier.ARCHIVE)

    def test_missing_container(self):
        """Test an unknown container is an enumeration error."""
        with pytest.raises(EnumerationError):
            BlobEnumerator(MemoryBlobProvider()).list_blobs("nope", AccessTier.ARCHIVE)

    def test_unexpected_provider_exception(self):
        """Test any provider exception aborts with EnumerationError."""
        provider = MemoryBlobProvider(list_error=RuntimeError("connection reset"))

        with pytest.raises(EnumerationError, match="connection reset"):
            BlobEnumerator(provider).list_blobs("backups", AccessTier.ARCHIVE)

    def test_unconvertible_metadata(self):
        """Test a record that cannot be converted aborts the listing."""
        provider = MemoryBlobProvider([raw_blob("blobA", utc(2024, 4, 10), size="many")])

        with pytest.raises(EnumerationError):
            BlobEnumerator(provider).list_blobs("backups", AccessTier.ARCHIVE)
