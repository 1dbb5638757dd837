"""Tests for the GO ancestor index, ontology readers and term-depth filters."""

import polars as pl
import pytest

from snpgo_pipeline.ontology import (
    AncestorIndex,
    GOTerm,
    ROOT_SENTINEL,
    load_ontology,
    namespace_code,
    parse_obo,
    read_ontology_edges,
    shallow_terms,
    single_gene_terms,
    term_depths,
)

# BP chain 8150 <- 1 <- 2 <- 3 <- 4 <- 5, with 6 part_of 4 and 7 under both 5 and 6.
EDGES_TSV = """go_id\tnamespace\tparent_id\trelationship
GO:0008150\tbiological_process\tall\tis_a
GO:0000001\tbiological_process\tGO:0008150\tis_a
GO:0000002\tbiological_process\tGO:0000001\tis_a
GO:0000003\tbiological_process\tGO:0000002\tis_a
GO:0000004\tbiological_process\tGO:0000003\tis_a
GO:0000005\tbiological_process\tGO:0000004\tis_a
GO:0000006\tbiological_process\tGO:0000004\tpart_of
GO:0000007\tbiological_process\tGO:0000005\tis_a
GO:0000007\tbiological_process\tGO:0000006\tis_a
GO:0005575\tcellular_component\t\t
GO:0000101\tcellular_component\tGO:0005575\tis_a
GO:0003674\tmolecular_function\t\t
GO:0000201\tmolecular_function\tGO:0003674\tis_a
"""

OBO_TEXT = """format-version: 1.2
data-version: releases/2024-06-17

[Term]
id: GO:0008150
name: biological_process
namespace: biological_process

[Term]
id: GO:0000001
name: first child
namespace: biological_process
is_a: GO:0008150 ! biological_process

[Term]
id: GO:0000002
name: second child
namespace: biological_process
is_a: GO:0000001 ! first child
relationship: part_of GO:0008150 ! biological_process

[Term]
id: GO:0000009
name: retired
namespace: biological_process
is_obsolete: true
"""


@pytest.fixture
def edges_path(tmp_path):
    path = tmp_path / "go_edges.tsv"
    path.write_text(EDGES_TSV)
    return path


@pytest.fixture
def index(edges_path):
    return AncestorIndex.from_dataframe(read_ontology_edges(edges_path), ["is_a", "part_of"])


# ============================================================================
# Namespace handling
# ============================================================================

def test_namespace_code():
    assert namespace_code("biological_process") == "BP"
    assert namespace_code("Cellular_Component") == "CC"
    assert namespace_code("MF") == "MF"
    with pytest.raises(ValueError):
        namespace_code("external")


# ============================================================================
# Edge table reading
# ============================================================================

def test_read_ontology_edges(edges_path):
    df = read_ontology_edges(edges_path)

    assert df.columns == ["go_id", "namespace", "parent_id", "relationship"]
    assert set(df["namespace"].unique().to_list()) == {"BP", "CC", "MF"}
    roots = df.filter(pl.col("parent_id").is_null())["go_id"].to_list()
    assert sorted(roots) == ["GO:0003674", "GO:0005575"]


def test_read_ontology_edges_defaults_relationship(tmp_path):
    path = tmp_path / "edges.tsv"
    path.write_text("go_id\tnamespace\tparent_id\nGO:1\tBP\t\nGO:2\tBP\tGO:1\n")

    df = read_ontology_edges(path)

    rel = dict(zip(df["go_id"].to_list(), df["relationship"].to_list()))
    assert rel == {"GO:1": None, "GO:2": "is_a"}


def test_read_ontology_edges_missing_columns(tmp_path):
    path = tmp_path / "edges.tsv"
    path.write_text("go_id\tparent_id\nGO:1\t\n")

    with pytest.raises(ValueError, match="namespace"):
        read_ontology_edges(path)


def test_parse_obo(tmp_path):
    """OBO parsing keeps is_a edges, followed relationships and skips obsolete terms."""
    path = tmp_path / "go-basic.obo"
    path.write_text(OBO_TEXT)

    df = parse_obo(path, ["is_a", "part_of"])

    rows = set(df.iter_rows())
    assert ("GO:0008150", "BP", None, None) in rows
    assert ("GO:0000001", "BP", "GO:0008150", "is_a") in rows
    assert ("GO:0000002", "BP", "GO:0000001", "is_a") in rows
    assert ("GO:0000002", "BP", "GO:0008150", "part_of") in rows
    assert "GO:0000009" not in df["go_id"].to_list()


def test_parse_obo_is_a_only(tmp_path):
    path = tmp_path / "go-basic.obo"
    path.write_text(OBO_TEXT)

    df = load_ontology(path, ["is_a"])

    assert "part_of" not in df["relationship"].drop_nulls().to_list()


# ============================================================================
# Ancestor closure
# ============================================================================

def test_ancestors_multi_parent(index):
    """Every path to the root is followed, including the part_of branch."""
    ancestors = index.ancestors("GO:0000007")

    assert ancestors == {
        "GO:0000006", "GO:0000005", "GO:0000004", "GO:0000003",
        "GO:0000002", "GO:0000001", "GO:0008150", ROOT_SENTINEL,
    }
    assert "GO:0000007" not in ancestors


def test_ancestors_of_root(index):
    assert index.ancestors("GO:0005575") == frozenset()
    assert index.ancestors("GO:0008150") == {ROOT_SENTINEL}


def test_ancestors_memoized(index):
    first = index.ancestors("GO:0000007")
    assert index.ancestors("GO:0000007") is first
    # Intermediate terms were closed during the first walk
    assert "GO:0000004" in index._ancestors


def test_ancestors_transitive(index):
    """ancestors(t) contains ancestors(p) for every parent p."""
    for term in index.terms():
        for parent in index.parents(term):
            if parent in index:
                assert index.ancestors(parent) <= index.ancestors(term)


def test_ancestors_unknown_term(index):
    with pytest.raises(KeyError):
        index.ancestors("GO:9999999")


def test_ancestors_cycle_detected():
    index = AncestorIndex(
        {"GO:A": frozenset({"GO:B"}), "GO:B": frozenset({"GO:A"})},
        {"GO:A": "BP", "GO:B": "BP"},
    )
    with pytest.raises(ValueError, match="Cycle"):
        index.ancestors("GO:A")


def test_relationship_filter_keeps_terms(edges_path):
    """Terms whose only edges are not followed stay in the index without parents."""
    index = AncestorIndex.from_dataframe(read_ontology_edges(edges_path), ["is_a"])

    assert "GO:0000006" in index
    assert index.parents("GO:0000006") == frozenset()
    assert "GO:0000004" not in index.ancestors("GO:0000006")
    assert "GO:0000006" in index.ancestors("GO:0000007")


def test_parent_only_terms_registered():
    """Parents without a row of their own join the index in the child's namespace."""
    edges = pl.DataFrame({
        "go_id": ["GO:0000002", "GO:0000001", "GO:0000101"],
        "namespace": ["biological_process", "biological_process", "cellular_component"],
        "parent_id": ["GO:0000001", "GO:0008150", ROOT_SENTINEL],
    })

    index = AncestorIndex.from_dataframe(edges)

    assert "GO:0008150" in index
    assert index.namespace_of("GO:0008150") == "BP"
    assert index.parents("GO:0008150") == frozenset()
    assert index.ancestors("GO:0000002") == {"GO:0000001", "GO:0008150"}
    assert ROOT_SENTINEL not in index
    assert index.levels("BP", 1)[-1] == {"GO:0008150", "GO:0000001"}


def test_ancestor_map_skips_unknown(index):
    mapping = index.ancestor_map(["GO:0000001", "GO:9999999"])
    assert list(mapping) == ["GO:0000001"]


def test_from_terms():
    index = AncestorIndex.from_terms([
        GOTerm(go_id="GO:0003674", namespace="MF"),
        GOTerm(go_id="GO:0000201", namespace="MF", parents=frozenset({"GO:0003674"})),
    ])

    assert len(index) == 2
    assert index.namespace_of("GO:0000201") == "MF"
    assert index.children("GO:0003674") == {"GO:0000201"}


# ============================================================================
# Levels and depth classification
# ============================================================================

def test_levels_cumulative(index):
    levels = index.levels("BP", 3)

    assert len(levels) == 4
    assert levels[0] == {"GO:0008150"}
    assert levels[1] == {"GO:0008150", "GO:0000001"}
    assert levels[3] == {"GO:0008150", "GO:0000001", "GO:0000002", "GO:0000003"}
    for shallower, deeper in zip(levels, levels[1:]):
        assert shallower <= deeper


def test_levels_accepts_label(index):
    assert index.levels("cellular_component", 1)[-1] == {"GO:0005575", "GO:0000101"}


def test_shallow_terms(index):
    shallow = shallow_terms(index, 3)

    assert {"GO:0008150", "GO:0000001", "GO:0000002", "GO:0000003"} <= shallow
    assert {"GO:0005575", "GO:0000101", "GO:0003674", "GO:0000201"} <= shallow
    assert "GO:0000004" not in shallow
    assert "GO:0000007" not in shallow


def test_term_depths(index):
    depths = term_depths(index)
    depth = dict(zip(depths["go_id"].to_list(), depths["depth"].to_list()))

    assert depth["GO:0008150"] == 0
    assert depth["GO:0000004"] == 4
    assert depth["GO:0000006"] == 5
    assert depth["GO:0000007"] == 6
    assert depth["GO:0000101"] == 1


def test_single_gene_terms():
    closure = pl.DataFrame({
        "gene_id": ["g1", "g1", "g2", "g2", "g3"],
        "go_id": ["GO:0000001", "GO:0000007", "GO:0000001", "GO:0000004", "GO:0000001"],
        "namespace": ["BP"] * 5,
    })

    assert single_gene_terms(closure) == {"GO:0000007", "GO:0000004"}
    assert single_gene_terms(closure, min_genes=4) == {"GO:0000001", "GO:0000007", "GO:0000004"}
