"""Per-term Fisher exact tests of candidate versus background genes."""

from typing import Iterable, Optional

import polars as pl
import structlog
from scipy.stats import false_discovery_control, fisher_exact

from snpgo_pipeline.closure.models import GeneGOClosure
from snpgo_pipeline.enrichment.models import RESULT_SCHEMA

logger = structlog.get_logger()


def _closure_frame(closure: GeneGOClosure | pl.DataFrame) -> pl.DataFrame:
    return closure.frame if isinstance(closure, GeneGOClosure) else closure


def candidate_terms(
    closure: GeneGOClosure | pl.DataFrame,
    candidate_genes: Iterable[str],
    excluded: Iterable[str] = (),
) -> list[str]:
    """Terms in the closure of any candidate gene, minus ``excluded``, sorted."""
    df = _closure_frame(closure)
    genes = sorted(set(candidate_genes))
    terms = set(df.filter(pl.col("gene_id").is_in(genes))["go_id"].unique().to_list())
    return sorted(terms - set(excluded))


def term_counts(
    closure: GeneGOClosure | pl.DataFrame,
    gene_ids: Iterable[str],
    terms: list[str],
) -> pl.DataFrame:
    """Distinct genes of ``gene_ids`` carrying each term.

    Every term in ``terms`` gets a row; a term absent from the group is
    padded with a count of 0.

    Returns:
        DataFrame with go_id, count in the order of ``terms``
    """
    df = _closure_frame(closure)
    genes = sorted(set(gene_ids))
    counts = (
        df.filter(pl.col("gene_id").is_in(genes) & pl.col("go_id").is_in(terms))
        .group_by("go_id")
        .agg(pl.col("gene_id").n_unique().cast(pl.Int64).alias("count"))
    )
    return (
        pl.DataFrame({"go_id": terms}, schema={"go_id": pl.Utf8})
        .join(counts, on="go_id", how="left", maintain_order="left")
        .with_columns(pl.col("count").fill_null(0))
    )


def build_contingency(a: int, n_sig: int, b: int, n_not_sig: int) -> list[list[int]]:
    """2x2 table, rows (background, candidate), columns (has term, lacks term)."""
    return [[b, n_not_sig - b], [a, n_sig - a]]


def term_exact_test(
    a: int,
    n_sig: int,
    b: int,
    n_not_sig: int,
) -> tuple[float, Optional[float]]:
    """Two-sided Fisher exact test for one term.

    Args:
        a: Candidate genes with the term
        n_sig: Candidate genes in total
        b: Background genes with the term
        n_not_sig: Background genes in total

    Returns:
        (p-value, expected candidate count). A table with an empty row or
        column carries no information and gets p = 1.0; expected is None when
        the background is empty.
    """
    if not (0 <= a <= n_sig and 0 <= b <= n_not_sig):
        raise ValueError(f"Invalid counts a={a}/{n_sig}, b={b}/{n_not_sig}")

    table = build_contingency(a, n_sig, b, n_not_sig)
    expected = n_sig * b / n_not_sig if n_not_sig > 0 else None

    row_sums = [sum(row) for row in table]
    col_sums = [table[0][j] + table[1][j] for j in range(2)]
    if 0 in row_sums or 0 in col_sums:
        return 1.0, expected

    _, pvalue = fisher_exact(table, alternative="two-sided")
    return float(min(pvalue, 1.0)), expected


def _empty_results() -> pl.DataFrame:
    return pl.DataFrame(schema=RESULT_SCHEMA)


def run_enrichment(
    closure: GeneGOClosure | pl.DataFrame,
    candidate_genes: Iterable[str],
    background_genes: Iterable[str],
    shallow: Iterable[str] = (),
    single_gene: Iterable[str] = (),
) -> pl.DataFrame:
    """Test every eligible term for enrichment among candidate genes.

    Eligible terms appear in the closure of at least one candidate gene and
    are neither shallow nor single-gene terms. Each is tested with a
    two-sided Fisher exact test; Benjamini-Hochberg FDR is computed over all
    tested terms at once.

    Args:
        closure: Gene-to-GO closure (read only)
        candidate_genes: Genes near significant variants
        background_genes: Genes near other variants only (disjoint from candidates)
        shallow: Terms too close to a namespace root to test
        single_gene: Terms annotated to a single gene

    Returns:
        DataFrame with RESULT_SCHEMA columns sorted by (pvalue, go_id)
    """
    df = _closure_frame(closure)
    candidate = set(candidate_genes)
    background = set(background_genes) - candidate
    n_sig, n_not_sig = len(candidate), len(background)

    excluded = set(shallow) | set(single_gene)
    terms = candidate_terms(df, candidate, excluded)

    logger.info(
        "run_enrichment_start",
        candidate_genes=n_sig,
        background_genes=n_not_sig,
        tested_terms=len(terms),
        excluded_terms=len(excluded),
    )

    if not terms:
        logger.warning("run_enrichment_no_terms", candidate_genes=n_sig)
        return _empty_results()

    counts = (
        term_counts(df, candidate, terms).rename({"count": "observed"})
        .join(
            term_counts(df, background, terms).rename({"count": "background_observed"}),
            on="go_id",
            how="left",
        )
        .join(
            df.select("go_id", "namespace").unique(subset=["go_id"], keep="first"),
            on="go_id",
            how="left",
        )
    )

    pvalues = []
    expected = []
    for row in counts.iter_rows(named=True):
        pvalue, exp = term_exact_test(row["observed"], n_sig, row["background_observed"], n_not_sig)
        pvalues.append(pvalue)
        expected.append(exp)

    fdr = false_discovery_control(pvalues, method="bh")

    results = (
        counts.with_columns(
            pl.Series("expected", expected, dtype=pl.Float64),
            pl.Series("pvalue", pvalues, dtype=pl.Float64),
            pl.Series("fdr", [float(q) for q in fdr], dtype=pl.Float64),
        )
        .select(list(RESULT_SCHEMA))
        .cast(RESULT_SCHEMA)
        .sort(["pvalue", "go_id"])
    )

    logger.info(
        "run_enrichment_complete",
        tested_terms=results.height,
        min_pvalue=results["pvalue"].min(),
        terms_fdr_below_0_05=results.filter(pl.col("fdr") < 0.05).height,
    )
    return results


def select_enriched(
    results: pl.DataFrame,
    max_fdr: float = 0.05,
    min_observed: int = 0,
) -> pl.DataFrame:
    """Terms with FDR below ``max_fdr`` and at least ``min_observed`` candidate genes."""
    return results.filter(
        (pl.col("fdr") < max_fdr) & (pl.col("observed") >= min_observed)
    )
