"""
Tests for the index validator. Each test corrupts one aspect of a good index
and checks the report names it.
"""
import json

import numpy as np

from clustered_index.indexing import codec
from clustered_index.services.validator import validate_index

from conftest import make_record, write_index


def errors_containing(report, text):
    return [e for e in report.errors if text in e]


class TestValidatorPasses:
    """Well-formed indexes pass."""

    def test_alpha_index_passes(self, alpha_manifest):
        """Test a good index passes with nothing reported."""
        report = validate_index(str(alpha_manifest))
        assert report.passed
        assert report.errors == []
        assert report.clusters_checked == 2
        assert report.vectors_checked == 2

    def test_random_index_passes(self, random_index_factory):
        """Test a larger generated index passes."""
        report = validate_index(str(random_index_factory(k=5, dimensions=16, n=80)))
        assert report.passed, report.errors
        assert report.vectors_checked == 80

    def test_empty_cluster_passes(self, three_cluster_manifest):
        """Test a count == 0 cluster without files is fine."""
        report = validate_index(str(three_cluster_manifest))
        assert report.passed, report.errors
        assert report.clusters_checked == 2


class TestValidatorFailures:
    """Defects are reported and validation continues past them."""

    def test_non_unit_vector(self, alpha_manifest):
        """Test an embedding that is not L2-normalized fails validation."""
        (alpha_manifest.parent / "cluster_0.bin").write_bytes(codec.encode([[2.0, 0.0]]))
        report = validate_index(str(alpha_manifest))
        assert not report.passed
        assert errors_containing(report, "cluster 0, embedding 0: L2 norm 2.00000000 is not within")

    def test_nan_vector(self, alpha_manifest):
        """Test NaN components are reported with their position."""
        (alpha_manifest.parent / "cluster_1.bin").write_bytes(codec.encode([[0.0, np.nan]]))
        report = validate_index(str(alpha_manifest))
        assert not report.passed
        assert errors_containing(report, "cluster 1, embedding 0: NaN or Infinity at component 1")

    def test_non_unit_centroid(self, alpha_manifest):
        """Test centroids are held to the same unit-norm rule."""
        (alpha_manifest.parent / "centroids.json").write_text(json.dumps([
            {"clusterId": 0, "centroid": [0.5, 0.0]},
            {"clusterId": 1, "centroid": [0.0, 1.0]},
        ]))
        report = validate_index(str(alpha_manifest))
        assert errors_containing(report, "centroid 0 (clusterId 0)")

    def test_truncated_embeddings(self, alpha_manifest):
        """Test a mis-sized embeddings file is reported."""
        emb = alpha_manifest.parent / "cluster_0.bin"
        emb.write_bytes(emb.read_bytes()[:-1])
        report = validate_index(str(alpha_manifest))
        assert errors_containing(report, "cluster 0: embeddings file is 7 bytes, expected 8")

    def test_empty_cluster_with_files(self, alpha_manifest):
        """Test an empty cluster that still references files fails."""
        data = json.loads(alpha_manifest.read_text())
        data["clusters"][1]["count"] = 0
        alpha_manifest.write_text(json.dumps(data))
        report = validate_index(str(alpha_manifest))
        assert not report.passed
        assert errors_containing(report, "clusters[1].embeddingsFileRef")
        assert errors_containing(report, "clusters[1].metadataFileRef")

    def test_metadata_count_mismatch(self, alpha_manifest):
        """Test a metadata length that disagrees with the manifest count."""
        (alpha_manifest.parent / "cluster_0.json").write_text(json.dumps([]))
        report = validate_index(str(alpha_manifest))
        assert errors_containing(report, "cluster 0: metadata has 0 entries, manifest count is 1")

    def test_invalid_first_record(self, alpha_manifest):
        """Test the first record is spot-checked against the record schema."""
        record = make_record("alpha")
        record["metadata"]["kind"] = "hospital"
        (alpha_manifest.parent / "cluster_0.json").write_text(json.dumps([record]))
        report = validate_index(str(alpha_manifest))
        assert errors_containing(report, "cluster 0: first metadata record invalid")

    def test_duplicate_document_ids(self, tmp_path):
        """Test document ids must be unique across clusters."""
        manifest = write_index(
            tmp_path / "dupes",
            dimensions=2,
            centroids={0: [1.0, 0.0], 1: [0.0, 1.0]},
            members={
                0: [(make_record("same"), [1.0, 0.0])],
                1: [(make_record("same"), [0.0, 1.0])],
            },
        )
        report = validate_index(str(manifest))
        assert errors_containing(report, "document ids not unique")

    def test_unreadable_manifest(self, tmp_path):
        """Test a missing manifest fails immediately."""
        report = validate_index(str(tmp_path / "manifest.json"))
        assert not report.passed
        assert report.errors[0].startswith("manifest unreadable")

    def test_expected_model_and_dimensions(self, alpha_manifest):
        """Test build expectations are enforced when given."""
        report = validate_index(str(alpha_manifest), expected_model_id="other-model", expected_dimensions=1024)
        assert errors_containing(report, "manifest modelId: expected 'other-model'")
        assert errors_containing(report, "manifest dimensions: expected 1024, found 2")

    def test_reports_every_problem(self, alpha_manifest):
        """Test validation does not stop at the first defect."""
        (alpha_manifest.parent / "cluster_0.bin").write_bytes(codec.encode([[2.0, 0.0]]))
        (alpha_manifest.parent / "cluster_1.bin").write_bytes(codec.encode([[0.0, np.inf]]))
        report = validate_index(str(alpha_manifest))
        assert len(report.errors) == 2

    def test_deeply_nested_metadata(self, alpha_manifest):
        """Test metadata nested too deeply to decode is reported, not raised."""
        (alpha_manifest.parent / "cluster_0.json").write_text("[" * 100000 + "]" * 100000)
        report = validate_index(str(alpha_manifest))
        assert not report.passed
        assert errors_containing(report, "cluster 0: metadata file cluster_0.json is not valid JSON")
        # the rest of the index is still checked
        assert report.vectors_checked == 2

    def test_malformed_centroid_entry_does_not_hide_others(self, alpha_manifest):
        """Test each centroid entry is checked on its own."""
        (alpha_manifest.parent / "centroids.json").write_text(json.dumps([
            {"clusterId": 0, "centroid": "oops"},
            {"clusterId": 1, "centroid": [3.0, 4.0]},
        ]))
        report = validate_index(str(alpha_manifest))
        assert errors_containing(report, "centroid 0: invalid at centroid")
        assert errors_containing(report, "centroid 1 (clusterId 1): L2 norm 5.00000000")
        assert errors_containing(report, "centroids: no centroid for cluster 0")

    def test_centroids_not_an_array(self, alpha_manifest):
        """Test a centroids file that is not a JSON array."""
        (alpha_manifest.parent / "centroids.json").write_text(json.dumps({"clusterId": 0}))
        report = validate_index(str(alpha_manifest))
        assert errors_containing(report, "centroids file centroids.json is not a JSON array")
