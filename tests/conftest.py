"""
Shared fixtures: helpers that write a real index (manifest, centroids,
per-cluster metadata + embeddings) into a temporary directory.
"""
import json
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import numpy as np
import pytest

from clustered_index.indexing import codec


def make_record(doc_id: str, text: str | None = None, kind: str = "school", locality: str = "Fresno") -> dict:
    return {
        "id": doc_id,
        "text": text or f"about {doc_id}",
        "metadata": {
            "kind": kind,
            "sourceId": f"cds-{doc_id}",
            "name": doc_id.title(),
            "locality": locality,
        },
    }


def write_index(
    root: Path,
    dimensions: int,
    centroids: Dict[int, Sequence[float]],
    members: Dict[int, List[Tuple[dict, Sequence[float]]]],
    model_id: str = "test-embed-v1",
) -> Path:
    """Write an index under `root` and return the manifest path."""
    root.mkdir(parents=True, exist_ok=True)
    clusters = []
    for cid in centroids:
        rows = members.get(cid, [])
        if not rows:
            clusters.append({"clusterId": cid, "count": 0})
            continue
        emb, meta = f"cluster_{cid}.bin", f"cluster_{cid}.json"
        (root / emb).write_bytes(codec.encode([list(v) for _, v in rows]))
        (root / meta).write_text(json.dumps([r for r, _ in rows]))
        clusters.append({
            "clusterId": cid,
            "count": len(rows),
            "embeddingsFileRef": emb,
            "metadataFileRef": meta,
        })
    (root / "centroids.json").write_text(json.dumps([
        {"clusterId": cid, "centroid": [float(x) for x in vec]} for cid, vec in centroids.items()
    ]))
    manifest = {
        "modelId": model_id,
        "dimensions": dimensions,
        "k": len(centroids),
        "clusterAlgorithmTag": "kmeans",
        "centroidsFileRef": "centroids.json",
        "clusters": clusters,
    }
    path = root / "manifest.json"
    path.write_text(json.dumps(manifest))
    return path


def unit(*values: float) -> List[float]:
    v = np.asarray(values, dtype=np.float64)
    return [float(x) for x in v / np.linalg.norm(v)]


@pytest.fixture
def alpha_manifest(tmp_path) -> Path:
    """k=2, d=2: cluster 0 holds "alpha" at (1,0), cluster 1 holds "beta" at (0,1)."""
    return write_index(
        tmp_path / "alpha",
        dimensions=2,
        centroids={0: [1.0, 0.0], 1: [0.0, 1.0]},
        members={
            0: [(make_record("alpha", text="alpha"), [1.0, 0.0])],
            1: [(make_record("beta", text="beta", kind="district"), [0.0, 1.0])],
        },
    )


@pytest.fixture
def three_cluster_manifest(tmp_path) -> Path:
    """k=3, d=3 with an empty third cluster."""
    return write_index(
        tmp_path / "three",
        dimensions=3,
        centroids={0: [1.0, 0.0, 0.0], 1: [0.0, 1.0, 0.0], 2: [0.0, 0.0, 1.0]},
        members={
            0: [
                (make_record("a0"), unit(1.0, 0.1, 0.0)),
                (make_record("a1"), unit(1.0, 0.0, 0.2)),
            ],
            1: [
                (make_record("b0"), unit(0.1, 1.0, 0.0)),
                (make_record("b1"), unit(0.0, 1.0, 0.3)),
                (make_record("b2"), unit(0.2, 1.0, 0.1)),
            ],
            2: [],
        },
    )


@pytest.fixture
def random_index_factory(tmp_path):
    """Build a random clustered index on disk (vectors assigned to nearest centroid)."""

    def build(k: int = 4, dimensions: int = 8, n: int = 60, seed: int = 7) -> Path:
        rng = np.random.default_rng(seed)
        cents = rng.normal(size=(k, dimensions))
        cents /= np.linalg.norm(cents, axis=1, keepdims=True)
        docs = rng.normal(size=(n, dimensions))
        docs /= np.linalg.norm(docs, axis=1, keepdims=True)
        assign = np.argmax(docs @ cents.T, axis=1)
        members: Dict[int, list] = {cid: [] for cid in range(k)}
        for i, cid in enumerate(assign):
            members[int(cid)].append((make_record(f"doc-{i}"), docs[i].tolist()))
        return write_index(
            tmp_path / f"random-{seed}",
            dimensions=dimensions,
            centroids={cid: cents[cid].tolist() for cid in range(k)},
            members=members,
        )

    return build
