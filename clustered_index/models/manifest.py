"""
Manifest model: the authoritative description of one index build.

Parsing only checks JSON shape and field types; the structural rules
(k > 0, one entry per cluster, empty clusters own no files, ...) live in
`manifest_errors` / `validate_manifest` so that each violation gets a named
error instead of being coerced or rejected anonymously.
"""

from __future__ import annotations
from typing import List, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from clustered_index.core.errors import (
    ClusterCountMismatch,
    DuplicateClusterId,
    EmptyClusterHasFiles,
    ManifestError,
    ManifestParseError,
    MissingCentroidsFile,
    MissingClusterFiles,
    NegativeValue,
    NonPositiveDimensions,
    NonPositiveK,
)


class ClusterManifestEntry(BaseModel):
    cluster_id: int = Field(
        validation_alias=AliasChoices("clusterId", "cluster_id"),
        serialization_alias="clusterId",
    )
    count: int
    embeddings_file_ref: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("embeddingsFileRef", "embeddingsFile"),
        serialization_alias="embeddingsFileRef",
    )
    metadata_file_ref: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("metadataFileRef", "metadataFile"),
        serialization_alias="metadataFileRef",
    )

    model_config = ConfigDict(frozen=True, strict=True)

    @property
    def is_empty(self) -> bool:
        return self.count == 0


class Manifest(BaseModel):
    """
    One index build: embedding model, dimensionality, cluster count and the
    file layout. File references are relative to the manifest's location.
    """
    model_id: str = Field(
        validation_alias=AliasChoices("modelId", "model", "embeddingModelId"),
        serialization_alias="modelId",
    )
    dimensions: int = Field(
        validation_alias=AliasChoices("dimensions", "embeddingDimensions"),
        serialization_alias="dimensions",
    )
    k: int = Field(validation_alias=AliasChoices("k", "kValue"), serialization_alias="k")
    cluster_algorithm_tag: str = Field(
        default="unspecified",
        validation_alias=AliasChoices("clusterAlgorithmTag", "clusterAlgorithm"),
        serialization_alias="clusterAlgorithmTag",
    )
    centroids_file_ref: str = Field(
        validation_alias=AliasChoices("centroidsFileRef", "centroidsFile"),
        serialization_alias="centroidsFileRef",
    )
    clusters: List[ClusterManifestEntry]

    model_config = ConfigDict(frozen=True, strict=True, protected_namespaces=())

    @property
    def non_empty_clusters(self) -> List[ClusterManifestEntry]:
        return [c for c in self.clusters if c.count > 0]

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class CentroidRecord(BaseModel):
    """One entry of the centroids file."""
    cluster_id: int = Field(validation_alias=AliasChoices("clusterId", "cluster_id"), serialization_alias="clusterId")
    centroid: List[float]


def parse_manifest(raw: Union[str, bytes]) -> Manifest:
    """Parse manifest JSON; shape/type problems become a ManifestParseError."""
    try:
        return Manifest.model_validate_json(raw)
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ())) or "<root>"
        raise ManifestParseError(loc, first.get("msg", "invalid")) from e


def manifest_errors(m: Manifest) -> List[ManifestError]:
    """Every structural violation in `m`, in field order."""
    errors: List[ManifestError] = []

    if m.dimensions <= 0:
        errors.append(NonPositiveDimensions("dimensions", f"must be > 0, got {m.dimensions}"))
    if m.k <= 0:
        errors.append(NonPositiveK("k", f"must be > 0, got {m.k}"))
    if len(m.clusters) != m.k:
        errors.append(ClusterCountMismatch(
            "clusters", f"has {len(m.clusters)} entries, k is {m.k}"
        ))
    if not m.centroids_file_ref:
        errors.append(MissingCentroidsFile("centroidsFileRef", "must be a non-empty file reference"))

    seen: set[int] = set()
    for i, entry in enumerate(m.clusters):
        where = f"clusters[{i}]"
        if entry.cluster_id < 0:
            errors.append(NegativeValue(f"{where}.clusterId", f"must be >= 0, got {entry.cluster_id}"))
        elif entry.cluster_id in seen:
            errors.append(DuplicateClusterId(f"{where}.clusterId", f"cluster id {entry.cluster_id} appears twice"))
        seen.add(entry.cluster_id)

        if entry.count < 0:
            errors.append(NegativeValue(f"{where}.count", f"must be >= 0, got {entry.count}"))
        elif entry.count == 0:
            for name, ref in (("embeddingsFileRef", entry.embeddings_file_ref),
                              ("metadataFileRef", entry.metadata_file_ref)):
                if ref is not None:
                    errors.append(EmptyClusterHasFiles(
                        f"{where}.{name}", f"cluster {entry.cluster_id} has count 0 but references {ref!r}"
                    ))
        else:
            for name, ref in (("embeddingsFileRef", entry.embeddings_file_ref),
                              ("metadataFileRef", entry.metadata_file_ref)):
                if not ref:
                    errors.append(MissingClusterFiles(
                        f"{where}.{name}", f"cluster {entry.cluster_id} has count {entry.count} but no file"
                    ))
    return errors


def validate_manifest(m: Manifest) -> None:
    """Raise the first ManifestError found in `m`; return None if it is structurally sound."""
    errors = manifest_errors(m)
    if errors:
        raise errors[0]
