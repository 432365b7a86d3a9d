"""
Index validator: a read-only certification pass over a built index.

Unlike the loader it never stops at the first problem (except when the
manifest itself cannot be read): every structural and numeric defect is
appended to the report so one run inventories everything. Every vector in
every cluster is checked, because a corrupt vector only shows up later as
silently bad similarity scores.
"""

from __future__ import annotations
import asyncio
import json
import logging
from collections import Counter
from typing import Any, Callable, List, Optional, Set

import numpy as np
from pydantic import BaseModel, Field, ValidationError

from clustered_index.adapters.fetchers import AutoFetcher, Fetcher
from clustered_index.core.config import settings
from clustered_index.core.errors import FetchError, ManifestError, NonFiniteVector, NotUnitNorm, NumericError
from clustered_index.indexing import codec
from clustered_index.indexing.vectors import check_unit_vector, l2_norms
from clustered_index.models.document import DocumentRecord
from clustered_index.models.manifest import (
    CentroidRecord,
    ClusterManifestEntry,
    Manifest,
    manifest_errors,
    parse_manifest,
)

logger = logging.getLogger(__name__)


class ValidationReport(BaseModel):
    """Outcome of a validation run. `passed` is True iff `errors` is empty."""
    manifest_url: str
    passed: bool = False
    errors: List[str] = Field(default_factory=list)
    clusters_checked: int = 0
    vectors_checked: int = 0


class _Run:
    """Mutable state for one validation run."""

    def __init__(self, manifest_url: str) -> None:
        self.report = ValidationReport(manifest_url=manifest_url)

    def fail(self, message: str) -> None:
        logger.error(f"❌ {message}")
        self.report.errors.append(message)

    def finish(self) -> ValidationReport:
        self.report.passed = not self.report.errors
        return self.report


class IndexValidator:
    """
    Certifies an index on disk or behind a static file server.

    expected_model_id / expected_dimensions are optional build expectations;
    when set (directly or via EXPECTED_MODEL_ID / EXPECTED_DIMENSIONS) a
    mismatching manifest fails validation.
    """

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        tolerance: Optional[float] = None,
        expected_model_id: Optional[str] = None,
        expected_dimensions: Optional[int] = None,
    ) -> None:
        self._fetcher = fetcher
        self.tolerance = tolerance if tolerance is not None else settings.NORMALIZATION_TOLERANCE
        self.expected_model_id = expected_model_id or settings.EXPECTED_MODEL_ID
        self.expected_dimensions = expected_dimensions or settings.EXPECTED_DIMENSIONS

    async def validate(self, manifest_url: str) -> ValidationReport:
        fetcher = self._fetcher or AutoFetcher()
        try:
            return await self._validate(fetcher, manifest_url)
        finally:
            if self._fetcher is None:
                await fetcher.aclose()

    async def _validate(self, fetcher: Fetcher, manifest_url: str) -> ValidationReport:
        run = _Run(manifest_url)
        logger.info(f"Validating index at {manifest_url}")

        # 1) manifest
        try:
            manifest = parse_manifest(await fetcher.fetch_bytes(manifest_url))
        except (FetchError, ManifestError) as e:
            run.fail(f"manifest unreadable: {e}")
            return run.finish()
        for e in manifest_errors(manifest):
            run.fail(f"manifest {e}")
        if self.expected_model_id and manifest.model_id != self.expected_model_id:
            run.fail(f"manifest modelId: expected {self.expected_model_id!r}, found {manifest.model_id!r}")
        if self.expected_dimensions and manifest.dimensions != self.expected_dimensions:
            run.fail(f"manifest dimensions: expected {self.expected_dimensions}, found {manifest.dimensions}")

        # 2) centroids
        if manifest.centroids_file_ref:
            await self._check_centroids(run, fetcher, manifest_url, manifest)

        # 3) clusters, in manifest order so the error list is stable
        seen_ids: Counter = Counter()
        for entry in manifest.clusters:
            await self._check_cluster(run, fetcher, manifest_url, manifest, entry, seen_ids)

        duplicates = sorted(doc_id for doc_id, n in seen_ids.items() if n > 1)
        if duplicates:
            run.fail(f"document ids not unique across the index: {duplicates[:10]}"
                     + (f" (+{len(duplicates) - 10} more)" if len(duplicates) > 10 else ""))

        report = run.finish()
        if report.passed:
            logger.info(f"✓ Validation passed: {report.clusters_checked} clusters, {report.vectors_checked} vectors")
        else:
            logger.error(f"❌ Validation failed with {len(report.errors)} error(s)")
        return report

    # ------------------------------------------------------------------
    def _check_vectors(self, run: _Run, matrix: np.ndarray, label: Callable[[int], str]) -> None:
        """Exhaustive NaN/Inf and unit-norm check of every row of `matrix`."""
        if matrix.shape[0] == 0:
            return
        finite = np.isfinite(matrix).all(axis=1)
        norms = l2_norms(np.where(np.isfinite(matrix), matrix, 0.0))
        for i in np.flatnonzero(~finite):
            col = int(np.flatnonzero(~np.isfinite(matrix[i]))[0])
            run.fail(str(NonFiniteVector(label(i), col)))
        for i in np.flatnonzero(finite & ~(np.abs(norms - 1.0) < self.tolerance)):
            run.fail(str(NotUnitNorm(label(i), float(norms[i]), self.tolerance)))

    async def _check_centroids(self, run: _Run, fetcher: Fetcher, manifest_url: str, manifest: Manifest) -> None:
        url = fetcher.resolve(manifest_url, manifest.centroids_file_ref)
        try:
            data = json.loads(await fetcher.fetch_bytes(url))
        except FetchError as e:
            run.fail(f"centroids {e}")
            return
        except (ValueError, RecursionError) as e:
            run.fail(f"centroids file {manifest.centroids_file_ref} is not valid JSON: {e}")
            return
        if not isinstance(data, list):
            run.fail(f"centroids file {manifest.centroids_file_ref} is not a JSON array")
            return

        if len(data) != manifest.k:
            run.fail(f"centroids: found {len(data)}, manifest k is {manifest.k}")

        # one entry at a time so a malformed entry doesn't hide problems in the rest
        entries: List[CentroidRecord] = []
        dims = manifest.dimensions
        for i, raw in enumerate(data):
            try:
                entry = CentroidRecord.model_validate(raw)
            except ValidationError as e:
                first = e.errors()[0]
                loc = ".".join(str(p) for p in first.get("loc", ()))
                run.fail(f"centroid {i}: invalid at {loc}: {first.get('msg')}")
                continue
            entries.append(entry)
            context = f"centroid {i} (clusterId {entry.cluster_id})"
            if len(entry.centroid) != dims:
                run.fail(f"{context}: expected {dims} dimensions, found {len(entry.centroid)}")
            try:
                check_unit_vector(np.asarray(entry.centroid, dtype=np.float64), context, self.tolerance)
            except NumericError as e:
                run.fail(str(e))

        manifest_ids: Set[int] = {c.cluster_id for c in manifest.clusters}
        centroid_ids: Set[int] = {e.cluster_id for e in entries}
        for cid in sorted(manifest_ids - centroid_ids):
            run.fail(f"centroids: no centroid for cluster {cid}")
        for cid in sorted(centroid_ids - manifest_ids):
            run.fail(f"centroids: centroid for unknown cluster {cid}")

    async def _check_cluster(
        self,
        run: _Run,
        fetcher: Fetcher,
        manifest_url: str,
        manifest: Manifest,
        entry: ClusterManifestEntry,
        seen_ids: Counter,
    ) -> None:
        cid = entry.cluster_id
        # empty clusters must reference no files; that rule is reported with the manifest errors
        if entry.count <= 0 or not entry.metadata_file_ref or not entry.embeddings_file_ref:
            return
        run.report.clusters_checked += 1

        # metadata
        metadata_url = fetcher.resolve(manifest_url, entry.metadata_file_ref)
        try:
            records = json.loads(await fetcher.fetch_bytes(metadata_url))
        except FetchError as e:
            run.fail(f"cluster {cid}: metadata {e}")
            records = None
        except (ValueError, RecursionError) as e:
            run.fail(f"cluster {cid}: metadata file {entry.metadata_file_ref} is not valid JSON: {e}")
            records = None

        if records is not None:
            self._check_records(run, cid, entry.count, records, seen_ids)

        # embeddings
        if manifest.dimensions <= 0:
            return
        embeddings_url = fetcher.resolve(manifest_url, entry.embeddings_file_ref)
        try:
            raw = await fetcher.fetch_bytes(embeddings_url)
        except FetchError as e:
            run.fail(f"cluster {cid}: embeddings {e}")
            return
        expected = codec.expected_byte_length(entry.count, manifest.dimensions)
        if len(raw) != expected:
            run.fail(f"cluster {cid}: embeddings file is {len(raw)} bytes, expected {expected} "
                     f"(count {entry.count} * dims {manifest.dimensions} * 4)")

        # keep checking whatever whole vectors the file does hold
        matrix = codec.decode_complete_rows(raw, manifest.dimensions)
        self._check_vectors(run, matrix, lambda i: f"cluster {cid}, embedding {i}")
        run.report.vectors_checked += matrix.shape[0]

    def _check_records(self, run: _Run, cid: int, count: int, records: Any, seen_ids: Counter) -> None:
        if not isinstance(records, list):
            run.fail(f"cluster {cid}: metadata is not a JSON array")
            return
        if len(records) != count:
            run.fail(f"cluster {cid}: metadata has {len(records)} entries, manifest count is {count}")
        if records:
            # structural spot check of the first record only
            try:
                DocumentRecord.model_validate(records[0])
            except ValidationError as e:
                first = e.errors()[0]
                loc = ".".join(str(p) for p in first.get("loc", ()))
                run.fail(f"cluster {cid}: first metadata record invalid at {loc}: {first.get('msg')}")
        for r in records:
            if isinstance(r, dict) and isinstance(r.get("id"), str):
                seen_ids[r["id"]] += 1


def validate_index(manifest_url: str, fetcher: Optional[Fetcher] = None, **kwargs: Any) -> ValidationReport:
    """Synchronous wrapper around IndexValidator.validate (CLI / CI gate)."""
    return asyncio.run(IndexValidator(fetcher=fetcher, **kwargs).validate(manifest_url))
