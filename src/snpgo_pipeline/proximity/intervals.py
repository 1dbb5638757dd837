"""Variant-to-gene overlap, windowed proximity and distance.

All comparisons are between closed, 1-based intervals on the same reference
sequence; pairs on different sequences never overlap.
"""

from typing import Optional

import polars as pl
import structlog

logger = structlog.get_logger()


def nearest_distance(pos: int, start: int, end: int) -> int:
    """Distance from a variant to a gene: 0 inside the body, else the nearer edge."""
    if start <= pos <= end:
        return 0
    return min(abs(pos - start), abs(pos - end))


def distance_expr(
    pos: str = "pos",
    start: str = "start",
    end: str = "end",
) -> pl.Expr:
    """Vectorised :func:`nearest_distance` over frame columns."""
    return (
        pl.when((pl.col(pos) >= pl.col(start)) & (pl.col(pos) <= pl.col(end)))
        .then(pl.lit(0, dtype=pl.Int64))
        .otherwise(
            pl.min_horizontal(
                (pl.col(pos) - pl.col(start)).abs(),
                (pl.col(pos) - pl.col(end)).abs(),
            )
        )
        .alias("distance")
    )


def containment(variants: pl.DataFrame, intervals: pl.DataFrame) -> pl.DataFrame:
    """All (variant, interval) pairs where the variant lies within [start, end].

    Works for gene bodies and, given the exon table, for exonic overlap.

    Args:
        variants: Frame with at least chrom and pos
        intervals: Frame with at least chrom, start, end

    Returns:
        Variant columns joined with interval columns, one row per pair
    """
    return (
        variants.lazy()
        .join(intervals.lazy(), on="chrom", how="inner")
        .filter((pl.col("pos") >= pl.col("start")) & (pl.col("pos") <= pl.col("end")))
        .collect()
    )


def window_bounds(
    variants: pl.DataFrame,
    width: int,
    chrom_lengths: Optional[dict[str, int]] = None,
) -> pl.DataFrame:
    """Add win_start / win_end for a symmetric window of ``width`` bp.

    The half-width is ``(width - 1) // 2`` so width 20001 spans pos ± 20000.
    Windows are clipped at 1 and, when lengths are known, at the sequence end.
    """
    if width < 1:
        raise ValueError(f"Window width must be >= 1, got {width}")
    half = (width - 1) // 2

    df = variants.with_columns(
        pl.max_horizontal(pl.col("pos") - half, pl.lit(1)).alias("win_start"),
        (pl.col("pos") + half).alias("win_end"),
    )
    if chrom_lengths:
        lengths = pl.DataFrame(
            {"chrom": list(chrom_lengths), "_chrom_length": list(chrom_lengths.values())},
            schema={"chrom": pl.Utf8, "_chrom_length": pl.Int64},
        )
        df = (
            df.join(lengths, on="chrom", how="left", maintain_order="left")
            .with_columns(
                pl.min_horizontal(
                    pl.col("win_end"),
                    pl.col("_chrom_length").fill_null(pl.col("win_end")),
                ).alias("win_end")
            )
            .drop("_chrom_length")
        )
    return df


def windowed_pairs(
    variants: pl.DataFrame,
    genes: pl.DataFrame,
    width: int,
    chrom_lengths: Optional[dict[str, int]] = None,
) -> pl.DataFrame:
    """(variant, gene) pairs whose gene interval intersects the variant window.

    Returns:
        Variant columns, gene columns and ``distance`` (see
        :func:`nearest_distance`), without the window helper columns
    """
    windows = window_bounds(variants, width, chrom_lengths)
    return (
        windows.lazy()
        .join(genes.lazy(), on="chrom", how="inner")
        .filter((pl.col("start") <= pl.col("win_end")) & (pl.col("end") >= pl.col("win_start")))
        .drop(["win_start", "win_end"])
        .with_columns(distance_expr())
        .collect()
    )


def windowed_overlap(
    variants: pl.DataFrame,
    genes: pl.DataFrame,
    width: int,
    chrom_lengths: Optional[dict[str, int]] = None,
) -> pl.DataFrame:
    """Distinct genes within the window of any variant.

    A gene hit by several nearby variants appears once.

    Returns:
        Gene rows (columns of ``genes``) sorted by gene_id
    """
    pairs = windowed_pairs(variants, genes, width, chrom_lengths)
    return (
        pairs.select(genes.columns)
        .unique(subset=["gene_id"], keep="first")
        .sort("gene_id")
    )


def partition_genes(
    variants: pl.DataFrame,
    genes: pl.DataFrame,
    width: int,
    chrom_lengths: Optional[dict[str, int]] = None,
) -> tuple[frozenset[str], frozenset[str]]:
    """Split genes near variants into candidate and background sets.

    Candidate genes lie within the window of at least one significant variant.
    Background genes lie within the window of a non-significant variant and
    are not candidates. The two sets are disjoint and together cover every
    gene within the window of any variant.

    Args:
        variants: Frame with chrom, pos and a boolean ``significant`` column
        genes: Gene intervals
        width: Window width in bp

    Returns:
        (candidate gene ids, background gene ids)
    """
    significant = variants.filter(pl.col("significant").fill_null(False))
    not_significant = variants.filter(~pl.col("significant").fill_null(False))

    candidate = frozenset(
        windowed_overlap(significant, genes, width, chrom_lengths)["gene_id"].to_list()
    )
    near_other = frozenset(
        windowed_overlap(not_significant, genes, width, chrom_lengths)["gene_id"].to_list()
    )
    background = near_other - candidate

    logger.info(
        "partition_genes",
        width=width,
        significant_variants=significant.height,
        other_variants=not_significant.height,
        candidate_genes=len(candidate),
        background_genes=len(background),
    )
    return candidate, background
