"""
Error taxonomy for the clustered index.

StructuralError  - manifest or file shape violates the data model
NumericError     - a vector fails the finite / unit-norm invariant
InputError       - caller passed a bad query or bad search parameters
LoadError        - anything that stops the loader (or a single cluster) from loading
"""

from __future__ import annotations
from typing import Optional


class ClusteredIndexError(Exception):
    """Base class for every error raised by this package."""


class StructuralError(ClusteredIndexError):
    pass


class NumericError(ClusteredIndexError):
    pass


class InputError(ClusteredIndexError, ValueError):
    """Subclasses ValueError so API layers can map it to a 400 like any other bad input."""


class LoadError(ClusteredIndexError):
    pass


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

class SizeMismatch(StructuralError):
    def __init__(self, actual_bytes: int, count: int, dimensions: int) -> None:
        self.actual_bytes = actual_bytes
        self.count = count
        self.dimensions = dimensions
        self.expected_bytes = count * dimensions * 4
        super().__init__(
            f"buffer is {actual_bytes} bytes, expected {self.expected_bytes} "
            f"(count {count} * dims {dimensions} * 4)"
        )


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

class ManifestError(StructuralError):
    """A manifest violation. `field` names the offending field path."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ManifestParseError(ManifestError):
    pass


class NonPositiveDimensions(ManifestError):
    pass


class NonPositiveK(ManifestError):
    pass


class ClusterCountMismatch(ManifestError):
    pass


class MissingCentroidsFile(ManifestError):
    pass


class EmptyClusterHasFiles(ManifestError):
    pass


class MissingClusterFiles(ManifestError):
    pass


class NegativeValue(ManifestError):
    pass


class DuplicateClusterId(ManifestError):
    pass


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

class FetchError(LoadError):
    def __init__(self, ref: str, reason: str) -> None:
        self.ref = ref
        self.reason = reason
        super().__init__(f"failed to fetch {ref}: {reason}")


class ManifestInvalid(LoadError, StructuralError):
    def __init__(self, cause: ManifestError) -> None:
        self.cause = cause
        super().__init__(f"manifest invalid: {cause}")


class CentroidsInvalid(LoadError, StructuralError):
    pass


class CentroidCountMismatch(LoadError, StructuralError):
    def __init__(self, found: int, k: int) -> None:
        self.found = found
        self.k = k
        super().__init__(f"centroids file has {found} entries, manifest k is {k}")


class CentroidDimensionMismatch(LoadError, StructuralError):
    def __init__(self, cluster_id: Optional[int], found: int, dimensions: int) -> None:
        self.cluster_id = cluster_id
        self.found = found
        self.dimensions = dimensions
        super().__init__(
            f"centroid for cluster {cluster_id} has {found} components, expected {dimensions}"
        )


class MetadataInvalid(LoadError, StructuralError):
    def __init__(self, cluster_id: int, reason: str) -> None:
        self.cluster_id = cluster_id
        super().__init__(f"cluster {cluster_id}: metadata invalid: {reason}")


class MetadataCountMismatch(LoadError, StructuralError):
    def __init__(self, cluster_id: int, found: int, count: int) -> None:
        self.cluster_id = cluster_id
        self.found = found
        self.count = count
        super().__init__(
            f"cluster {cluster_id}: metadata has {found} entries, manifest count is {count}"
        )


class EmbeddingsSizeMismatch(LoadError, StructuralError):
    def __init__(self, cluster_id: int, cause: SizeMismatch) -> None:
        self.cluster_id = cluster_id
        self.cause = cause
        super().__init__(f"cluster {cluster_id}: embeddings {cause}")


# ---------------------------------------------------------------------------
# Numeric
# ---------------------------------------------------------------------------

class NonFiniteVector(NumericError):
    def __init__(self, context: str, position: int) -> None:
        self.context = context
        self.position = position
        super().__init__(f"{context}: NaN or Infinity at component {position}")


class NotUnitNorm(NumericError):
    def __init__(self, context: str, norm: float, tolerance: float) -> None:
        self.context = context
        self.norm = norm
        self.tolerance = tolerance
        super().__init__(f"{context}: L2 norm {norm:.8f} is not within {tolerance:g} of 1.0")


# ---------------------------------------------------------------------------
# Search input
# ---------------------------------------------------------------------------

class DimensionMismatch(InputError):
    def __init__(self, found: int, dimensions: int) -> None:
        self.found = found
        self.dimensions = dimensions
        super().__init__(f"query dim {found} != index dim {dimensions}")


class InvalidSearchParameter(InputError):
    def __init__(self, name: str, value: object) -> None:
        self.name = name
        self.value = value
        super().__init__(f"{name} must be an integer >= 1, got {value!r}")
