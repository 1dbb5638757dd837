"""Term exclusion sets: too generic (near a root) or too specific (one gene)."""

from collections import deque

import polars as pl
import structlog

from snpgo_pipeline.ontology.index import AncestorIndex
from snpgo_pipeline.ontology.models import NAMESPACES

logger = structlog.get_logger()


def shallow_terms(index: AncestorIndex, depth: int = 3) -> frozenset[str]:
    """Terms within ``depth`` edges of their namespace root, across all namespaces."""
    terms: set[str] = set()
    for namespace in NAMESPACES:
        level = index.levels(namespace, depth)[-1]
        logger.debug("shallow_level", namespace=namespace, depth=depth, term_count=len(level))
        terms.update(level)
    return frozenset(terms)


def term_depths(index: AncestorIndex) -> pl.DataFrame:
    """Minimum number of edges from each reachable term to its namespace root.

    Returns:
        DataFrame with go_id, namespace, depth sorted by (namespace, depth, go_id)
    """
    rows = []
    for namespace in NAMESPACES:
        root = index.root(namespace)
        seen = {root: 0}
        queue = deque([root])
        while queue:
            term = queue.popleft()
            for child in index.children(term):
                if child not in seen:
                    seen[child] = seen[term] + 1
                    queue.append(child)
        rows.extend((term, namespace, d) for term, d in seen.items() if term in index)

    return pl.DataFrame(
        rows,
        schema={"go_id": pl.Utf8, "namespace": pl.Utf8, "depth": pl.Int64},
        orient="row",
    ).sort(["namespace", "depth", "go_id"])


def term_gene_counts(closure: pl.DataFrame) -> pl.DataFrame:
    """Number of distinct genes carrying each term in the closure table."""
    return (
        closure.group_by("go_id")
        .agg(pl.col("gene_id").n_unique().alias("gene_count"))
        .sort("go_id")
    )


def single_gene_terms(closure: pl.DataFrame, min_genes: int = 2) -> frozenset[str]:
    """Terms annotated to fewer than ``min_genes`` genes across the whole closure.

    With the default of 2 this is the set of terms that map to exactly one
    gene, for which no enrichment can reach significance.
    """
    counts = term_gene_counts(closure)
    excluded = counts.filter(pl.col("gene_count") < min_genes)["go_id"].to_list()
    logger.info(
        "single_gene_terms",
        min_genes=min_genes,
        excluded_count=len(excluded),
        term_count=counts.height,
    )
    return frozenset(excluded)
