"""Build the gene-to-GO closure table from raw associations."""

import multiprocessing as mp

import polars as pl
import structlog

from snpgo_pipeline.closure.models import ASSOCIATION_SCHEMA, CLOSURE_SCHEMA
from snpgo_pipeline.ontology.index import AncestorIndex
from snpgo_pipeline.ontology.models import ROOT_SENTINEL

logger = structlog.get_logger()

# Set in each worker by _init_worker; read-only afterwards
_worker_ancestors: dict[str, frozenset[str]] = {}
_worker_namespaces: dict[str, str] = {}


def _init_worker(ancestors: dict[str, frozenset[str]], namespaces: dict[str, str]) -> None:
    global _worker_ancestors, _worker_namespaces
    _worker_ancestors = ancestors
    _worker_namespaces = namespaces


def _close_gene(
    direct_terms: list[str],
    ancestors: dict[str, frozenset[str]],
    namespaces: dict[str, str],
) -> set[str]:
    """Closure of one gene: per namespace, direct terms plus all their ancestors."""
    by_namespace: dict[str, set[str]] = {}
    for go_id in direct_terms:
        namespace = namespaces.get(go_id)
        if namespace is None:
            continue
        by_namespace.setdefault(namespace, set()).add(go_id)

    closure: set[str] = set()
    for terms in by_namespace.values():
        namespace_closure = set(terms)
        for go_id in terms:
            namespace_closure.update(ancestors[go_id])
        closure.update(namespace_closure)

    closure.discard(ROOT_SENTINEL)
    # Parents outside the index have no namespace and cannot be tested
    return {go_id for go_id in closure if go_id in namespaces}


def _close_gene_chunk(chunk: list[tuple[str, list[str]]]) -> list[tuple[str, str]]:
    rows = []
    for gene_id, direct_terms in chunk:
        closure = _close_gene(direct_terms, _worker_ancestors, _worker_namespaces)
        rows.extend((gene_id, go_id) for go_id in sorted(closure))
    return rows


def find_unresolved_terms(raw: pl.DataFrame, index: AncestorIndex) -> pl.DataFrame:
    """Raw associations whose GO id is not present in the ontology.

    Returns:
        Subset of ``raw`` (gene_id, go_id, namespace) sorted by go_id, gene_id
    """
    known = index.terms()
    return (
        raw.select(list(ASSOCIATION_SCHEMA))
        .filter(~pl.col("go_id").is_in(known))
        .sort(["go_id", "gene_id"])
    )


def build_gene_go_closure(
    raw: pl.DataFrame,
    index: AncestorIndex,
    max_workers: int = 1,
    chunk_size: int = 500,
) -> pl.DataFrame:
    """Expand raw gene-to-GO associations to their full ancestor closure.

    For every gene, the directly associated terms of each namespace are
    unioned with all of their ancestors, the three namespace sets are
    unioned, and the "all" sentinel is removed. Terms missing from the
    ontology are dropped and reported through a warning; use
    :func:`find_unresolved_terms` for the row-level audit.

    Ancestor sets are computed once per distinct term; the per-gene unions
    fan out over a process pool when ``max_workers`` > 1 and there is more
    than one chunk of genes. Output order does not depend on worker
    scheduling.

    Args:
        raw: Raw associations with gene_id, go_id, namespace
        index: Ancestor index for the ontology release
        max_workers: Upper bound on worker processes
        chunk_size: Genes per worker task

    Returns:
        DataFrame with gene_id, go_id, namespace sorted by (gene_id, go_id)
    """
    raw = raw.filter(pl.col("go_id").is_not_null()).unique(subset=["gene_id", "go_id"])
    logger.info(
        "closure_build_start",
        association_count=raw.height,
        gene_count=raw["gene_id"].n_unique(),
        max_workers=max_workers,
    )

    unresolved = find_unresolved_terms(raw, index)
    if unresolved.height:
        logger.warning(
            "closure_unresolved_terms",
            unresolved_term_count=unresolved["go_id"].n_unique(),
            unresolved_association_count=unresolved.height,
            affected_gene_count=unresolved["gene_id"].n_unique(),
            examples=unresolved["go_id"].unique().sort().head(5).to_list(),
        )

    ancestors = index.ancestor_map(raw["go_id"].to_list())
    namespaces = {go_id: index.namespace_of(go_id) for go_id in index.terms()}

    grouped = (
        raw.group_by("gene_id")
        .agg(pl.col("go_id").sort())
        .sort("gene_id")
    )
    genes = [(row["gene_id"], row["go_id"]) for row in grouped.iter_rows(named=True)]
    chunks = [genes[i:i + chunk_size] for i in range(0, len(genes), chunk_size)]

    if max_workers > 1 and len(chunks) > 1:
        workers = min(max_workers, len(chunks))
        logger.info("closure_pool_start", workers=workers, chunk_count=len(chunks))
        with mp.Pool(workers, initializer=_init_worker, initargs=(ancestors, namespaces)) as pool:
            # map preserves chunk order regardless of completion order
            chunk_rows = pool.map(_close_gene_chunk, chunks)
    else:
        _init_worker(ancestors, namespaces)
        chunk_rows = [_close_gene_chunk(chunk) for chunk in chunks]

    rows = [row for part in chunk_rows for row in part]
    closure = pl.DataFrame(
        rows,
        schema={"gene_id": pl.Utf8, "go_id": pl.Utf8},
        orient="row",
    )
    namespace_df = pl.DataFrame(
        {"go_id": list(namespaces), "namespace": list(namespaces.values())},
        schema={"go_id": pl.Utf8, "namespace": pl.Utf8},
    )
    closure = (
        closure.join(namespace_df, on="go_id", how="left")
        .select(list(CLOSURE_SCHEMA))
        .sort(["gene_id", "go_id"])
    )

    logger.info(
        "closure_build_complete",
        row_count=closure.height,
        gene_count=closure["gene_id"].n_unique(),
        term_count=closure["go_id"].n_unique(),
        dropped_association_count=unresolved.height,
    )
    return closure


def closure_summary(closure: pl.DataFrame) -> dict:
    """Counts used for provenance and the CLI summary."""
    per_namespace = (
        closure.group_by("namespace")
        .agg(pl.col("go_id").n_unique().alias("term_count"))
        .sort("namespace")
    )
    return {
        "row_count": closure.height,
        "gene_count": closure["gene_id"].n_unique(),
        "term_count": closure["go_id"].n_unique(),
        "terms_per_namespace": {
            row["namespace"]: row["term_count"] for row in per_namespace.iter_rows(named=True)
        },
    }

