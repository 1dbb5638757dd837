"""Tests for persistence layer (DuckDB store and provenance tracking)."""

import polars as pl
import pytest

from snpgo_pipeline.config.loader import load_config
from snpgo_pipeline.persistence import PipelineStore, ProvenanceTracker


@pytest.fixture
def test_config(tmp_path):
    """Create a minimal test config."""
    config_path = tmp_path / "test_config.yaml"
    config_path.write_text("""
data_dir: {data_dir}
cache_dir: {cache_dir}
duckdb_path: {duckdb_path}
versions:
  go_release: "2024-06-17"
  genome_build: test
inputs:
  gene_models: genes.tsv
  ontology: go_edges.tsv
""".format(
        data_dir=str(tmp_path / "data"),
        cache_dir=str(tmp_path / "cache"),
        duckdb_path=str(tmp_path / "test.duckdb"),
    ))
    return load_config(config_path)


# ============================================================================
# DuckDB Store Tests
# ============================================================================

def test_store_creates_database(tmp_path):
    """Test that PipelineStore creates .duckdb file at specified path."""
    db_path = tmp_path / "nested" / "test.duckdb"
    assert not db_path.exists()

    store = PipelineStore(db_path)
    store.close()

    assert db_path.exists()


def test_save_and_load_polars(tmp_path):
    """Test saving and loading a closure-shaped frame."""
    store = PipelineStore(tmp_path / "test.duckdb")

    df = pl.DataFrame({
        "gene_id": ["g1", "g1", "g2"],
        "go_id": ["GO:0000001", "GO:0008150", "GO:0008150"],
        "namespace": ["BP", "BP", "BP"],
    })
    store.save_dataframe(df, "gene_go_closure", "test closure")

    loaded = store.load_dataframe("gene_go_closure")

    assert loaded.shape == df.shape
    assert loaded.columns == df.columns
    assert loaded["go_id"].to_list() == df["go_id"].to_list()

    store.close()


def test_save_rejects_non_polars(tmp_path):
    store = PipelineStore(tmp_path / "test.duckdb")
    with pytest.raises(ValueError):
        store.save_dataframe({"a": [1]}, "bad")
    store.close()


def test_save_replace_and_append(tmp_path):
    """replace=True overwrites; replace=False appends and updates the row count."""
    store = PipelineStore(tmp_path / "test.duckdb")

    store.save_dataframe(pl.DataFrame({"val": [1, 2]}), "t", "first")
    store.save_dataframe(pl.DataFrame({"val": [3]}), "t", "second", replace=True)
    assert store.load_dataframe("t")["val"].to_list() == [3]

    store.save_dataframe(pl.DataFrame({"val": [4]}), "t", "third", replace=False)
    assert sorted(store.load_dataframe("t")["val"].to_list()) == [3, 4]

    ckpt = [c for c in store.list_checkpoints() if c["table_name"] == "t"][0]
    assert ckpt["row_count"] == 2
    assert ckpt["description"] == "third"

    store.close()


def test_checkpoint_lifecycle(tmp_path):
    """Test checkpoint lifecycle: save -> has -> delete -> not has."""
    store = PipelineStore(tmp_path / "test.duckdb")

    df = pl.DataFrame({"col": [1, 2, 3]})

    assert not store.has_checkpoint("test_table")

    store.save_dataframe(df, "test_table", "test")
    assert store.has_checkpoint("test_table")

    assert store.checkpoint_description("test_table") == "test"

    store.delete_checkpoint("test_table")
    assert not store.has_checkpoint("test_table")
    assert store.checkpoint_description("test_table") is None
    assert store.load_dataframe("test_table") is None

    store.close()


def test_export_parquet(tmp_path):
    """Test exporting table to Parquet."""
    store = PipelineStore(tmp_path / "test.duckdb")

    df = pl.DataFrame({
        "go_id": ["GO:0000001", "GO:0000002"],
        "pvalue": [0.01, 0.5],
    })
    store.save_dataframe(df, "enrichment_w20001", "test enrichment")

    parquet_path = tmp_path / "output" / "enrichment.parquet"
    store.export_parquet("enrichment_w20001", parquet_path)

    assert parquet_path.exists()
    assert pl.read_parquet(parquet_path)["go_id"].to_list() == df["go_id"].to_list()

    store.close()


def test_export_parquet_path_with_quote(tmp_path):
    store = PipelineStore(tmp_path / "test.duckdb")
    store.save_dataframe(pl.DataFrame({"go_id": ["GO:0000001"]}), "t", "test")

    parquet_path = tmp_path / "it's" / "x.parquet"
    store.export_parquet("t", parquet_path)

    assert pl.read_parquet(parquet_path)["go_id"].to_list() == ["GO:0000001"]
    store.close()


def test_execute_query_with_params(tmp_path):
    store = PipelineStore(tmp_path / "test.duckdb")
    store.save_dataframe(pl.DataFrame({"gene_id": ["a", "b", "c"]}), "genes")

    result = store.execute_query("SELECT gene_id FROM genes WHERE gene_id > ? ORDER BY 1", ["a"])

    assert result["gene_id"].to_list() == ["b", "c"]
    store.close()


def test_context_manager(tmp_path):
    """Data persists after the context closes the connection."""
    db_path = tmp_path / "test.duckdb"
    df = pl.DataFrame({"col": [1, 2, 3]})

    with PipelineStore(db_path) as store:
        store.save_dataframe(df, "test_table", "test")
        assert store.has_checkpoint("test_table")

    with PipelineStore(db_path) as store:
        loaded = store.load_dataframe("test_table")
        assert loaded is not None
        assert loaded.shape == df.shape


# ============================================================================
# Provenance Tests
# ============================================================================

def test_provenance_metadata_structure(test_config):
    """Test that provenance metadata has all required keys."""
    tracker = ProvenanceTracker("0.1.0", test_config)

    metadata = tracker.create_metadata()

    assert metadata["pipeline_version"] == "0.1.0"
    assert metadata["data_source_versions"]["go_release"] == "2024-06-17"
    assert metadata["data_source_versions"]["genome_build"] == "test"
    assert metadata["config_hash"] == test_config.config_hash()
    assert "created_at" in metadata
    assert metadata["processing_steps"] == []


def test_provenance_records_steps(test_config):
    """Test that processing steps are recorded with timestamps."""
    tracker = ProvenanceTracker("0.1.0", test_config)

    tracker.record_step("load_ontology")
    tracker.record_step("load_gene_go_closure", {"unresolved_term_count": 2})

    steps = tracker.get_steps()

    assert len(steps) == 2
    assert steps[0]["step_name"] == "load_ontology"
    assert "details" not in steps[0]
    assert steps[1]["details"]["unresolved_term_count"] == 2
    assert "timestamp" in steps[1]


def test_provenance_sidecar_roundtrip(test_config, tmp_path):
    """Test saving and loading provenance sidecar."""
    tracker = ProvenanceTracker("0.1.0", test_config)
    tracker.record_step("test_step", {"key": "value"})

    sidecar_path = tracker.save_sidecar(tmp_path / "gene_go_closure.tsv")

    assert sidecar_path == tmp_path / "gene_go_closure.provenance.json"
    loaded = ProvenanceTracker.load_sidecar(sidecar_path)

    assert loaded["pipeline_version"] == "0.1.0"
    assert loaded["config_hash"] == test_config.config_hash()
    assert loaded["processing_steps"][0]["step_name"] == "test_step"


def test_provenance_save_to_store(test_config, tmp_path):
    """Test saving provenance to DuckDB store."""
    store = PipelineStore(tmp_path / "test.duckdb")
    tracker = ProvenanceTracker("0.1.0", test_config)
    tracker.record_step("test_step")

    tracker.save_to_store(store)
    tracker.save_to_store(store)

    rows = store.execute_query("SELECT version, config_hash FROM _provenance")
    assert rows.height == 2
    assert rows["config_hash"][0] == test_config.config_hash()

    store.close()


def test_provenance_from_config_uses_package_version(test_config):
    from snpgo_pipeline import __version__

    tracker = ProvenanceTracker.from_config(test_config)
    assert tracker.pipeline_version == __version__
