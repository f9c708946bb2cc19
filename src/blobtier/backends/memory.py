"""In-memory blob provider.

Keeps objects in memory and records every tier change. Useful for testing
and rehearsing a run without a storage account. Failures for specific blobs
can be injected to exercise partial-failure handling.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from blobtier.backends._protocols import RawObjectMetadata
from blobtier.errors import ProviderError
from blobtier.types import AccessTier, RehydratePriority


@dataclass(frozen=True)
class TierChange:
    """A tier change issued against the in-memory provider."""

    container: str
    name: str
    target_tier: AccessTier
    priority: RehydratePriority | None = None
    version_id: str | None = None


class MemoryBlobProvider:
    """In-memory blob provider.

    Example:
        >>> provider = MemoryBlobProvider()
        >>> provider.add(RawObjectMetadata(name="a.bin", container="data", tier="Archive"))
        >>> provider.set_tier("data", "a.bin", AccessTier.HOT)
        >>> provider.calls[0].target_tier
        <AccessTier.HOT: 'Hot'>
    """

    def __init__(
        self,
        objects: Iterable[RawObjectMetadata] = (),
        failures: dict[str, BaseException] | None = None,
        list_error: Exception | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            objects: Initial objects.
            failures: Blob name to exception raised by ``set_tier`` for it.
            list_error: Exception raised by every ``list_objects`` call.
        """
        self._objects: dict[str, list[RawObjectMetadata]] = {}
        self._failures = dict(failures or {})
        self.list_error = list_error
        self.calls: list[TierChange] = []
        self.list_calls = 0
        for obj in objects:
            self.add(obj)

    def add(self, obj: RawObjectMetadata) -> None:
        """Add an object to its container."""
        self._objects.setdefault(obj.container, []).append(obj)

    def fail_on(self, name: str, error: BaseException) -> None:
        """Make ``set_tier`` raise ``error`` for blob ``name``."""
        self._failures[name] = error

    def list_objects(
        self,
        container: str,
        tier_filter: AccessTier | None = None,
        prefix: str | None = None,
    ) -> list[RawObjectMetadata]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        if container not in self._objects:
            raise ProviderError("list_objects", f"Container not found: {container}", 404)

        result = []
        for obj in self._objects[container]:
            if prefix and not obj.name.startswith(prefix):
                continue
            if tier_filter is not None and AccessTier.from_provider(obj.tier) is not tier_filter:
                continue
            result.append(obj)
        return result

    def set_tier(
        self,
        container: str,
        name: str,
        target_tier: AccessTier,
        priority: RehydratePriority | None = None,
        version_id: str | None = None,
    ) -> None:
        self.calls.append(TierChange(container, name, target_tier, priority, version_id))
        if name in self._failures:
            raise self._failures[name]

        objects = self._objects.get(container, [])
        for index, obj in enumerate(objects):
            if obj.name == name and (version_id is None or obj.version_id == version_id):
                objects[index] = replace(obj, tier=target_tier.value)
                return
        raise ProviderError("set_tier", f"Blob not found: {container}/{name}", 404)

    def tier_of(self, container: str, name: str) -> AccessTier:
        """Current tier of a stored object."""
        for obj in self._objects.get(container, []):
            if obj.name == name:
                return AccessTier.from_provider(obj.tier)
        raise KeyError(f"{container}/{name}")
