"""Enumerations shared across blobtier.

Provider values (Azure returns strings such as ``"Archive"`` or
``"rehydrate-pending-to-hot"``) are normalised into these enums at the
enumeration boundary so the rest of the pipeline never compares raw strings.
"""

from __future__ import annotations

from enum import Enum


class AccessTier(str, Enum):
    """Blob access tier."""

    HOT = "Hot"
    COOL = "Cool"
    COLD = "Cold"
    ARCHIVE = "Archive"
    UNKNOWN = "Unknown"

    @classmethod
    def from_provider(cls, value: object) -> "AccessTier":
        """Convert a provider tier value to AccessTier.

        Args:
            value: Tier string or enum-like value from the provider (case-insensitive).

        Returns:
            Matching AccessTier, or UNKNOWN when missing or unrecognised.
        """
        if value is None:
            return cls.UNKNOWN
        raw = getattr(value, "value", value)
        lowered = str(raw).strip().lower()
        for tier in cls:
            if tier.value.lower() == lowered:
                return tier
        return cls.UNKNOWN

    @classmethod
    def parse(cls, value: str) -> "AccessTier":
        """Parse a user-supplied tier name, rejecting unknown names."""
        tier = cls.from_provider(value)
        if tier is cls.UNKNOWN:
            valid = ", ".join(t.value for t in cls if t is not cls.UNKNOWN)
            raise ValueError(f"Unknown access tier: {value!r} (expected one of {valid})")
        return tier


class RehydrationStatus(str, Enum):
    """State of an archive rehydration."""

    NONE = "None"
    PENDING = "Pending"
    COMPLETE = "Complete"

    @classmethod
    def from_provider(
        cls, archive_status: str | None, rehydrate_priority: str | None = None
    ) -> "RehydrationStatus":
        """Derive the rehydration status from blob properties.

        Azure reports ``archive_status`` only while a rehydration is in
        flight. A blob that still carries a rehydrate priority without an
        archive status has finished rehydrating.
        """
        if archive_status and archive_status.lower().startswith("rehydrate-pending"):
            return cls.PENDING
        if rehydrate_priority:
            return cls.COMPLETE
        return cls.NONE


class RehydratePriority(str, Enum):
    """Requested urgency for moving a blob out of Archive."""

    STANDARD = "Standard"
    HIGH = "High"

    @classmethod
    def parse(cls, value: str) -> "RehydratePriority":
        """Parse a priority name case-insensitively."""
        for priority in cls:
            if priority.value.lower() == value.strip().lower():
                return priority
        raise ValueError(f"Unknown rehydrate priority: {value!r}")


class AuditPhase(str, Enum):
    """Pipeline phase an audit batch belongs to."""

    DISCOVERED = "discovered"
    MIGRATED = "migrated"
    FAILED = "failed"
