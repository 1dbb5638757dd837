"""Tests for the gene-to-GO closure build, cache and query paths."""

from unittest.mock import MagicMock, patch

import polars as pl
import pytest

from snpgo_pipeline.closure import (
    CLOSURE_TABLE_NAME,
    GeneGOClosure,
    GeneTermRecord,
    UNRESOLVED_TABLE_NAME,
    build_gene_go_closure,
    closure_summary,
    fetch_go_associations,
    find_unresolved_terms,
    load_closure,
    load_to_duckdb,
    query_gene_terms,
    read_closure_tsv,
    read_go_associations,
    write_closure_tsv,
)
from snpgo_pipeline.config.loader import load_config
from snpgo_pipeline.ontology import AncestorIndex, ROOT_SENTINEL
from snpgo_pipeline.persistence import PipelineStore, ProvenanceTracker


@pytest.fixture
def index():
    """BP chain with a diamond, a CC branch and the 'all' sentinel above the BP root."""
    parents = {
        "GO:0008150": frozenset({ROOT_SENTINEL}),
        "GO:0000001": frozenset({"GO:0008150"}),
        "GO:0000002": frozenset({"GO:0000001"}),
        "GO:0000003": frozenset({"GO:0000001"}),
        "GO:0000004": frozenset({"GO:0000002", "GO:0000003"}),
        "GO:0005575": frozenset(),
        "GO:0000101": frozenset({"GO:0005575"}),
    }
    namespaces = {
        go_id: ("CC" if go_id in ("GO:0005575", "GO:0000101") else "BP")
        for go_id in parents
    }
    return AncestorIndex(parents, namespaces)


@pytest.fixture
def raw_associations():
    return pl.DataFrame({
        "gene_id": ["g1", "g1", "g2", "g3", "g4", "g4"],
        "go_id": [
            "GO:0000004", "GO:0000101",
            "GO:0000002",
            "GO:9999999",
            "GO:0000003", "GO:0000003",
        ],
        "namespace": ["BP", "CC", "BP", "BP", "BP", "BP"],
    })


@pytest.fixture
def test_config(tmp_path):
    config_path = tmp_path / "test_config.yaml"
    config_path.write_text(f"""
data_dir: {tmp_path / "data"}
cache_dir: {tmp_path / "cache"}
duckdb_path: {tmp_path / "test.duckdb"}
versions:
  go_release: "2024-06-17"
inputs:
  gene_models: genes.tsv
  ontology: go_edges.tsv
""")
    return load_config(config_path)


def terms_of(closure: pl.DataFrame, gene_id: str) -> set[str]:
    return set(closure.filter(pl.col("gene_id") == gene_id)["go_id"].to_list())


# ============================================================================
# Build
# ============================================================================

def test_closure_contains_direct_terms_and_ancestors(index, raw_associations):
    closure = build_gene_go_closure(raw_associations, index)

    assert terms_of(closure, "g1") == {
        "GO:0000004", "GO:0000002", "GO:0000003", "GO:0000001", "GO:0008150",
        "GO:0000101", "GO:0005575",
    }
    assert terms_of(closure, "g2") == {"GO:0000002", "GO:0000001", "GO:0008150"}


def test_closure_is_ancestor_complete(index, raw_associations):
    """For every (gene, term) row, all ancestors of the term are present too."""
    closure = build_gene_go_closure(raw_associations, index)

    for gene_id in closure["gene_id"].unique().to_list():
        terms = terms_of(closure, gene_id)
        for go_id in terms:
            assert (index.ancestors(go_id) - {ROOT_SENTINEL}) <= terms


def test_closure_excludes_sentinel(index, raw_associations):
    closure = build_gene_go_closure(raw_associations, index)
    assert ROOT_SENTINEL not in closure["go_id"].to_list()


def test_closure_namespace_from_ontology(index):
    """The namespace column comes from the term, not from the raw row."""
    raw = pl.DataFrame({"gene_id": ["g1"], "go_id": ["GO:0000101"], "namespace": ["BP"]})

    closure = build_gene_go_closure(raw, index)

    assert set(closure["namespace"].to_list()) == {"CC"}


def test_unresolved_terms_dropped_and_reported(index, raw_associations):
    closure = build_gene_go_closure(raw_associations, index)
    unresolved = find_unresolved_terms(raw_associations, index)

    assert "g3" not in closure["gene_id"].to_list()
    assert "GO:9999999" not in closure["go_id"].to_list()
    assert unresolved["go_id"].to_list() == ["GO:9999999"]
    assert unresolved["gene_id"].to_list() == ["g3"]


def test_closure_rows_unique_and_sorted(index, raw_associations):
    closure = build_gene_go_closure(raw_associations, index)

    assert closure.height == closure.unique(subset=["gene_id", "go_id"]).height
    assert closure.equals(closure.sort(["gene_id", "go_id"]))
    assert terms_of(closure, "g4") == {"GO:0000003", "GO:0000001", "GO:0008150"}
    for row in closure.iter_rows(named=True):
        GeneTermRecord(**row)


def test_closure_reaches_root_without_own_row():
    """A root that only appears as a parent still lands in the closure."""
    edges = pl.DataFrame({
        "go_id": ["GO:0000002", "GO:0000001"],
        "namespace": ["biological_process", "biological_process"],
        "parent_id": ["GO:0000001", "GO:0008150"],
    })
    index = AncestorIndex.from_dataframe(edges)
    raw = pl.DataFrame({"gene_id": ["g1"], "go_id": ["GO:0000002"], "namespace": ["BP"]})

    closure = build_gene_go_closure(raw, index)

    assert terms_of(closure, "g1") == {"GO:0000002", "GO:0000001", "GO:0008150"}
    assert closure.filter(pl.col("go_id") == "GO:0008150")["namespace"].to_list() == ["BP"]


def test_pool_matches_serial(index, raw_associations):
    """Worker scheduling does not change the result."""
    serial = build_gene_go_closure(raw_associations, index, max_workers=1)
    pooled = build_gene_go_closure(raw_associations, index, max_workers=2, chunk_size=1)

    assert pooled.equals(serial)


def test_empty_associations(index):
    raw = pl.DataFrame(schema={"gene_id": pl.Utf8, "go_id": pl.Utf8, "namespace": pl.Utf8})

    closure = build_gene_go_closure(raw, index)

    assert closure.height == 0
    assert closure.columns == ["gene_id", "go_id", "namespace"]


def test_closure_summary(index, raw_associations):
    summary = closure_summary(build_gene_go_closure(raw_associations, index))

    assert summary["gene_count"] == 3
    assert summary["terms_per_namespace"] == {"BP": 5, "CC": 2}


# ============================================================================
# Raw associations
# ============================================================================

def test_read_go_associations(tmp_path):
    path = tmp_path / "assoc.tsv"
    path.write_text(
        "gene_id\tgo_id\tnamespace\n"
        "g1\tGO:0000004\tbiological_process\n"
        "g1\tGO:0000004\tbiological_process\n"
        "g1\t\tbiological_process\n"
        "g2\tGO:0000101\tCC\n"
    )

    df = read_go_associations(path)

    assert df.rows() == [("g1", "GO:0000004", "BP"), ("g2", "GO:0000101", "CC")]


def test_read_go_associations_unknown_namespace(tmp_path):
    path = tmp_path / "assoc.tsv"
    path.write_text("gene_id\tgo_id\tnamespace\ng1\tGO:1\tsomething_else\n")

    with pytest.raises(ValueError):
        read_go_associations(path)


def test_fetch_go_associations():
    """mygene results are flattened; single-term dicts and not-found genes are handled."""
    mock_mg = MagicMock()
    mock_mg.querymany.return_value = [
        {
            "query": "g1",
            "go": {
                "BP": [{"id": "GO:0000004"}, {"id": "GO:0000002"}],
                "CC": {"id": "GO:0000101"},
            },
        },
        {"query": "g2", "notfound": True},
        {"query": "g3", "go": {"MF": [{"id": "GO:0000201"}, {"id": "GO:0000201"}]}},
    ]

    with patch("snpgo_pipeline.closure.fetch._get_mygene_client", return_value=mock_mg):
        df = fetch_go_associations(["g1", "g2", "g3"], batch_size=10)

    assert df.rows() == [
        ("g1", "GO:0000002", "BP"),
        ("g1", "GO:0000004", "BP"),
        ("g1", "GO:0000101", "CC"),
        ("g3", "GO:0000201", "MF"),
    ]
    mock_mg.querymany.assert_called_once()
    assert mock_mg.querymany.call_args.kwargs["fields"] == "go"


def test_fetch_go_associations_failed_batch_skipped():
    mock_mg = MagicMock()
    mock_mg.querymany.side_effect = [
        RuntimeError("service unavailable"),
        [{"query": "g2", "go": {"BP": {"id": "GO:0000002"}}}],
    ]

    with patch("snpgo_pipeline.closure.fetch._get_mygene_client", return_value=mock_mg):
        df = fetch_go_associations(["g1", "g2"], batch_size=1)

    assert mock_mg.querymany.call_count == 2
    assert df["gene_id"].to_list() == ["g2"]


# ============================================================================
# Cache and query mode
# ============================================================================

def test_closure_tsv_cache(index, raw_associations, tmp_path):
    closure = build_gene_go_closure(raw_associations, index)
    path = write_closure_tsv(closure, tmp_path / "cache" / "gene_go_closure.tsv")

    assert read_closure_tsv(path).equals(closure)


def test_read_closure_tsv_missing(tmp_path):
    with pytest.raises(FileNotFoundError, match="closure build"):
        read_closure_tsv(tmp_path / "gene_go_closure.tsv")


def test_load_to_duckdb_and_query(index, raw_associations, test_config):
    closure = build_gene_go_closure(raw_associations, index)
    unresolved = find_unresolved_terms(raw_associations, index)

    store = PipelineStore.from_config(test_config)
    provenance = ProvenanceTracker("0.1.0", test_config)
    load_to_duckdb(closure, unresolved, store, provenance)

    assert store.has_checkpoint(CLOSURE_TABLE_NAME)
    assert store.load_dataframe(UNRESOLVED_TABLE_NAME)["go_id"].to_list() == ["GO:9999999"]

    step = provenance.get_steps()[-1]
    assert step["step_name"] == "load_gene_go_closure"
    assert step["details"]["unresolved_term_count"] == 1

    rows = query_gene_terms(store, ["g2", "missing"])
    assert rows["go_id"].to_list() == ["GO:0000001", "GO:0000002", "GO:0008150"]

    loaded = load_closure(store)
    assert loaded.gene_count == 3
    assert loaded.frame.equals(closure)

    store.close()


def test_load_closure_falls_back_to_tsv(index, raw_associations, tmp_path):
    closure = build_gene_go_closure(raw_associations, index)
    path = write_closure_tsv(closure, tmp_path / "gene_go_closure.tsv")
    store = PipelineStore(tmp_path / "empty.duckdb")

    loaded = load_closure(store, path)

    assert len(loaded) == closure.height
    store.close()


def test_load_closure_nothing_built(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_closure(None, None)


def test_gene_go_closure_lookup(index, raw_associations):
    closure = GeneGOClosure(build_gene_go_closure(raw_associations, index))

    assert closure.genes() == ["g1", "g2", "g4"]
    assert "GO:0000101" in closure.terms_for("g1")
    assert closure.terms_for("unannotated") == frozenset()
    assert closure.genes_with_term("GO:0000001") == {"g1", "g2", "g4"}
