"""
Index loader: manifest -> centroids -> every non-empty cluster, concurrently.

Manifest and centroid problems are fatal. A cluster that fails to fetch,
parse or decode is logged, recorded in Index.load_errors and left out of the
cluster map; the rest of the index stays usable (reduced recall).
"""

from __future__ import annotations
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from pydantic import TypeAdapter, ValidationError

from clustered_index.adapters.fetchers import AutoFetcher, Fetcher
from clustered_index.core.config import settings
from clustered_index.core.errors import (
    CentroidCountMismatch,
    CentroidDimensionMismatch,
    CentroidsInvalid,
    EmbeddingsSizeMismatch,
    LoadError,
    ManifestError,
    ManifestInvalid,
    MetadataCountMismatch,
    MetadataInvalid,
    SizeMismatch,
)
from clustered_index.indexing import codec
from clustered_index.indexing.vectors import EmbeddingVector, as_embedding
from clustered_index.models.document import DocumentRecord
from clustered_index.models.index import Centroid, Cluster, ClusterLoadFailure, Index
from clustered_index.models.manifest import (
    CentroidRecord,
    ClusterManifestEntry,
    Manifest,
    parse_manifest,
    validate_manifest,
)

logger = logging.getLogger(__name__)

_records_adapter = TypeAdapter(List[DocumentRecord])
_centroids_adapter = TypeAdapter(List[CentroidRecord])


@dataclass(frozen=True)
class LoadProgress:
    message: str
    loaded: int
    total: int


ProgressCallback = Callable[[LoadProgress], None]

# (clusterId, Cluster) on success, (clusterId, LoadError) on failure
ClusterOutcome = Tuple[int, Union[Cluster, LoadError]]


def _summarize(e: ValidationError) -> str:
    first = e.errors()[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    more = f" (+{e.error_count() - 1} more)" if e.error_count() > 1 else ""
    return f"{loc}: {first.get('msg')}{more}"


def parse_centroids(raw: bytes, manifest: Manifest) -> List[Centroid]:
    """Parse the centroids file and check it against the manifest's k and dimensions."""
    try:
        data = json.loads(raw)
        entries = _centroids_adapter.validate_python(data)
    except (ValueError, RecursionError) as e:
        reason = _summarize(e) if isinstance(e, ValidationError) else str(e)
        raise CentroidsInvalid(f"centroids file invalid: {reason}") from e

    if len(entries) != manifest.k:
        raise CentroidCountMismatch(len(entries), manifest.k)
    centroids: List[Centroid] = []
    for entry in entries:
        if len(entry.centroid) != manifest.dimensions:
            raise CentroidDimensionMismatch(entry.cluster_id, len(entry.centroid), manifest.dimensions)
        centroids.append(Centroid(entry.cluster_id, as_embedding(entry.centroid)))
    return centroids


def parse_metadata(raw: bytes, entry: ClusterManifestEntry) -> Tuple[DocumentRecord, ...]:
    """Parse one cluster's metadata array; its length must equal the manifest count."""
    cid = entry.cluster_id
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise MetadataInvalid(cid, f"not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise MetadataInvalid(cid, f"expected a JSON array, got {type(data).__name__}")
    if len(data) != entry.count:
        raise MetadataCountMismatch(cid, len(data), entry.count)
    try:
        return tuple(_records_adapter.validate_python(data))
    except ValidationError as e:
        raise MetadataInvalid(cid, _summarize(e)) from e


class IndexLoader:
    """
    Builds an Index from a manifest location (http(s) URL, file:// URL or path).

    The manifest fetch gates everything else. Cluster loads run concurrently
    (bounded by `concurrency`) and are all joined before returning; one
    cluster failing never cancels its siblings. Cancelling `load` cancels all
    in-flight fetches and yields no Index.
    """

    def __init__(self, fetcher: Optional[Fetcher] = None, concurrency: Optional[int] = None) -> None:
        self._fetcher = fetcher
        self._concurrency = concurrency or settings.LOAD_CONCURRENCY

    async def load(self, manifest_url: str, progress: Optional[ProgressCallback] = None) -> Index:
        fetcher = self._fetcher or AutoFetcher()
        try:
            return await self._load(fetcher, manifest_url, progress)
        finally:
            if self._fetcher is None:
                await fetcher.aclose()

    async def _load(self, fetcher: Fetcher, manifest_url: str, progress: Optional[ProgressCallback]) -> Index:
        loaded = 0

        def report(message: str, total: int) -> None:
            if progress:
                progress(LoadProgress(message=message, loaded=loaded, total=total))

        # 1) manifest
        logger.info(f"Loading manifest from {manifest_url}")
        report("Loading manifest...", 0)
        manifest = await self.load_manifest(fetcher, manifest_url)
        non_empty = manifest.non_empty_clusters
        total = 2 + len(non_empty)
        loaded += 1
        report("Manifest loaded. Loading centroids...", total)

        # 2) centroids
        centroids_url = fetcher.resolve(manifest_url, manifest.centroids_file_ref)
        centroids = parse_centroids(await fetcher.fetch_bytes(centroids_url), manifest)
        loaded += 1
        report(f"Centroids loaded. Loading {len(non_empty)} clusters...", total)
        by_id = {c.cluster_id: c.vector for c in centroids}

        # 3) non-empty clusters, concurrently
        semaphore = asyncio.Semaphore(self._concurrency)

        async def attempt(entry: ClusterManifestEntry) -> ClusterOutcome:
            nonlocal loaded
            try:
                async with semaphore:
                    cluster = await self._load_cluster(fetcher, manifest, manifest_url, entry, by_id.get(entry.cluster_id))
                outcome: ClusterOutcome = (entry.cluster_id, cluster)
                logger.debug(f"✓ Loaded cluster {entry.cluster_id} ({entry.count} documents)")
            except LoadError as e:
                logger.warning(f"❌ Failed to load cluster {entry.cluster_id}, skipping it: {e}")
                outcome = (entry.cluster_id, e)
            loaded += 1
            report(f"Cluster {entry.cluster_id} attempted ({loaded - 2}/{len(non_empty)})", total)
            return outcome

        outcomes = await asyncio.gather(*(attempt(entry) for entry in non_empty))

        # 4) partition outcomes; empty clusters go straight in
        clusters: Dict[int, Cluster] = {}
        failures: List[ClusterLoadFailure] = []
        for entry in manifest.clusters:
            if entry.count == 0:
                clusters[entry.cluster_id] = Cluster.empty(entry.cluster_id, manifest.dimensions, by_id.get(entry.cluster_id))
        for cluster_id, result in outcomes:
            if isinstance(result, Cluster):
                clusters[cluster_id] = result
            else:
                failures.append(ClusterLoadFailure(cluster_id, result))
        failures.sort(key=lambda f: f.cluster_id)

        index = Index(
            dimensions=manifest.dimensions,
            centroids=tuple(centroids),
            clusters=clusters,
            manifest=manifest,
            load_errors=tuple(failures),
        )
        if failures:
            logger.warning(
                f"Index loaded degraded: {len(clusters)}/{manifest.k} clusters, "
                f"missing {[f.cluster_id for f in failures]}"
            )
        else:
            logger.info(f"✓ Index loaded: {manifest.k} clusters, {index.size} documents")
        report("All index data loaded.", total)
        return index

    async def load_manifest(self, fetcher: Fetcher, manifest_url: str) -> Manifest:
        raw = await fetcher.fetch_bytes(manifest_url)
        try:
            manifest = parse_manifest(raw)
            validate_manifest(manifest)
        except ManifestError as e:
            raise ManifestInvalid(e) from e
        return manifest

    async def _load_cluster(
        self,
        fetcher: Fetcher,
        manifest: Manifest,
        manifest_url: str,
        entry: ClusterManifestEntry,
        centroid: Optional[EmbeddingVector],
    ) -> Cluster:
        metadata_url = fetcher.resolve(manifest_url, entry.metadata_file_ref)
        embeddings_url = fetcher.resolve(manifest_url, entry.embeddings_file_ref)
        fetched = await asyncio.gather(
            fetcher.fetch_bytes(metadata_url),
            fetcher.fetch_bytes(embeddings_url),
            return_exceptions=True,
        )
        for result in fetched:
            if isinstance(result, BaseException):
                raise result
        metadata_raw, embeddings_raw = fetched

        records = parse_metadata(metadata_raw, entry)
        try:
            vectors = codec.decode(embeddings_raw, entry.count, manifest.dimensions)
        except SizeMismatch as e:
            raise EmbeddingsSizeMismatch(entry.cluster_id, e) from e

        return Cluster(cluster_id=entry.cluster_id, centroid=centroid, records=records, vectors=vectors)


def load_index(manifest_url: str, progress: Optional[ProgressCallback] = None, fetcher: Optional[Fetcher] = None) -> Index:
    """Synchronous wrapper around IndexLoader.load for scripts and tests."""
    return asyncio.run(IndexLoader(fetcher=fetcher).load(manifest_url, progress))
