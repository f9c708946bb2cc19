"""Tests for the tier migration executor."""

import threading

import pytest

from blobtier.backends import MemoryBlobProvider
from blobtier.enumerator import to_record
from blobtier.errors import PerObjectMigrationError, ProviderError
from blobtier.executor import TierMigrationExecutor
from blobtier.models import MigrationRequest
from blobtier.types import AccessTier, RehydratePriority

from conftest import raw_blob, utc


def make_candidates(count, tier="Archive"):
    raws = [raw_blob(f"blob{i}", utc(2024, 4, 1 + i), tier=tier) for i in range(count)]
    return MemoryBlobProvider(raws), [to_record(raw) for raw in raws]


class TestTierMigrationExecutor:
    """Tests for TierMigrationExecutor."""

    def test_all_succeed(self):
        """Test every blob is moved and reported as succeeded."""
        provider, records = make_candidates(3)

        result = TierMigrationExecutor(provider).migrate(records, MigrationRequest(AccessTier.HOT))

        assert result.succeeded == tuple(records)
        assert result.failed == ()
        assert all(provider.tier_of("backups", r.name) is AccessTier.HOT for r in records)

    @pytest.mark.parametrize("failing", [0, 2, 4])
    def test_one_failure_does_not_stop_batch(self, failing):
        """Test the k-th failure leaves N-1 succeeded and all N attempted."""
        provider, records = make_candidates(5)
        provider.fail_on(records[failing].name, ProviderError("set_tier", "409 Conflict", 409))

        result = TierMigrationExecutor(provider).migrate(records, MigrationRequest(AccessTier.HOT))

        assert len(result.succeeded) == 4
        assert len(result.failed) == 1
        assert result.failed[0].record == records[failing]
        assert isinstance(result.failed[0].error, PerObjectMigrationError)
        assert len(provider.calls) == 5
        assert result.attempted == 5

    def test_unexpected_exception_is_recorded(self):
        """Test non-provider exceptions are also contained per object."""
        provider, records = make_candidates(2)
        provider.fail_on(records[0].name, RuntimeError("socket closed"))

        result = TierMigrationExecutor(provider).migrate(records, MigrationRequest(AccessTier.COOL))

        assert [r.name for r in result.succeeded] == ["blob1"]
        assert "socket closed" in str(result.failed[0].error)

    def test_priority_only_sent_for_archive_sources(self):
        """Test rehydrate priority accompanies only Archive blobs."""
        provider, archive = make_candidates(1, tier="Archive")
        cool = to_record(raw_blob("cool.bin", utc(2024, 4, 1), tier="Cool"))
        provider.add(raw_blob("cool.bin", utc(2024, 4, 1), tier="Cool"))

        request = MigrationRequest(AccessTier.HOT, RehydratePriority.HIGH)
        TierMigrationExecutor(provider).migrate(archive + [cool], request)

        assert provider.calls[0].priority is RehydratePriority.HIGH
        assert provider.calls[1].priority is None

    def test_progress_reported_per_object(self):
        """Test the progress callback sees n / total after each blob."""
        provider, records = make_candidates(3)
        progress = []

        executor = TierMigrationExecutor(
            provider, on_progress=lambda done, total, record, error: progress.append((done, total))
        )
        executor.migrate(records, MigrationRequest(AccessTier.HOT))

        assert progress == [(1, 3), (2, 3), (3, 3)]

    def test_failing_progress_callback_does_not_abort(self):
        """Test a broken callback is ignored."""
        provider, records = make_candidates(2)

        def broken(*args):
            raise ValueError("boom")

        result = TierMigrationExecutor(provider, on_progress=broken).migrate(
            records, MigrationRequest(AccessTier.HOT)
        )

        assert len(result.succeeded) == 2

    def test_cancellation_skips_remaining(self):
        """Test setting the cancel event stops new tier changes."""
        provider, records = make_candidates(4)
        cancel = threading.Event()

        def cancel_after_second(done, total, record, error):
            if done == 2:
                cancel.set()

        executor = TierMigrationExecutor(provider, on_progress=cancel_after_second)
        result = executor.migrate(records, MigrationRequest(AccessTier.HOT), cancel)

        assert [r.name for r in result.succeeded] == ["blob0", "blob1"]
        assert [r.name for r in result.skipped] == ["blob2", "blob3"]
        assert len(provider.calls) == 2
        assert result.cancelled

    def test_interrupt_returns_partial_result(self):
        """Test a KeyboardInterrupt mid-batch still reports the blobs already moved."""
        provider, records = make_candidates(4)
        provider.fail_on("blob1", KeyboardInterrupt())

        result = TierMigrationExecutor(provider).migrate(records, MigrationRequest(AccessTier.HOT))

        assert [r.name for r in result.succeeded] == ["blob0"]
        assert [r.name for r in result.skipped] == ["blob1", "blob2", "blob3"]
        assert result.failed == ()
        assert len(provider.calls) == 2

    def test_interrupt_in_worker_pool(self):
        """Test an interrupted pool reports every blob it moved as succeeded."""
        provider, records = make_candidates(8)
        provider.fail_on("blob2", KeyboardInterrupt())

        result = TierMigrationExecutor(provider, max_workers=4).migrate(
            records, MigrationRequest(AccessTier.HOT)
        )

        succeeded = {r.name for r in result.succeeded}
        assert "blob2" in {r.name for r in result.skipped}
        assert len(result.succeeded) + len(result.skipped) == 8
        for record in records:
            moved = provider.tier_of("backups", record.name) is AccessTier.HOT
            assert moved == (record.name in succeeded)

    def test_worker_pool_preserves_order(self):
        """Test pooled execution returns results in enumeration order."""
        provider, records = make_candidates(8)
        provider.fail_on("blob5", ProviderError("set_tier", "500", 500))

        result = TierMigrationExecutor(provider, max_workers=4).migrate(
            records, MigrationRequest(AccessTier.HOT)
        )

        assert [r.name for r in result.succeeded] == [f"blob{i}" for i in range(8) if i != 5]
        assert [f.record.name for f in result.failed] == ["blob5"]
        assert len(provider.calls) == 8

    def test_empty_batch(self):
        """Test an empty batch issues no calls."""
        provider = MemoryBlobProvider()
        result = TierMigrationExecutor(provider).migrate([], MigrationRequest(AccessTier.HOT))
        assert result.attempted == 0
        assert provider.calls == []

    def test_invalid_worker_count(self):
        """Test max_workers must be positive."""
        with pytest.raises(ValueError):
            TierMigrationExecutor(MemoryBlobProvider(), max_workers=0)
