"""Blob provider backends."""

from blobtier.backends._protocols import BlobProvider, RawObjectMetadata
from blobtier.backends.memory import MemoryBlobProvider, TierChange

__all__ = [
    "BlobProvider",
    "RawObjectMetadata",
    "MemoryBlobProvider",
    "TierChange",
]
