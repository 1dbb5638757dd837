"""Per-variant gene annotation export for significant variants."""

from typing import Optional

import polars as pl
import structlog

from snpgo_pipeline.proximity.intervals import containment, windowed_pairs
from snpgo_pipeline.variants.models import locus_expr, pvalue_columns

logger = structlog.get_logger()

ANNOTATION_LEADING_COLUMNS = [
    "locus",
    "snp_id",
    "chrom",
    "pos",
    "gene_id",
    "gene_name",
    "strand",
    "gene_start",
    "gene_end",
    "gene_width",
    "distance",
    "in_exon",
]


def build_annotation_export(
    variants: pl.DataFrame,
    genes: pl.DataFrame,
    exons: pl.DataFrame,
    width: int,
    procedures: list[str],
    chrom_lengths: Optional[dict[str, int]] = None,
) -> pl.DataFrame:
    """One row per (significant variant, gene within ``width``).

    Args:
        variants: Merged variant statistics with ``significant``
        genes: Gene intervals
        exons: Exon intervals (marks variants inside a coding region of the gene)
        width: Window width, normally the widest configured window
        procedures: Procedure names whose p-value columns are carried over

    Returns:
        Columns ANNOTATION_LEADING_COLUMNS + per-procedure p-values + min_pvalue,
        sorted by min_pvalue, snp_id, distance, gene_id
    """
    significant = variants.filter(pl.col("significant").fill_null(False))
    pcols = pvalue_columns(variants.columns, procedures)

    pairs = windowed_pairs(significant, genes, width, chrom_lengths)

    exonic = (
        containment(significant.select("snp_id", "chrom", "pos"), exons)
        .select("snp_id", "gene_id")
        .unique()
        .with_columns(pl.lit(True).alias("in_exon"))
    )

    if pcols:
        min_p = pl.min_horizontal(pcols)
    else:
        min_p = pl.lit(None, dtype=pl.Float64)

    df = (
        pairs.join(exonic, on=["snp_id", "gene_id"], how="left")
        .with_columns(
            locus_expr("snp_id"),
            pl.col("start").alias("gene_start"),
            pl.col("end").alias("gene_end"),
            (pl.col("end") - pl.col("start") + 1).alias("gene_width"),
            pl.col("in_exon").fill_null(False),
            min_p.alias("min_pvalue"),
        )
        .select(ANNOTATION_LEADING_COLUMNS + pcols + ["min_pvalue"])
        .sort(["min_pvalue", "snp_id", "distance", "gene_id"], nulls_last=True)
    )

    logger.info(
        "annotation_export_built",
        width=width,
        significant_variants=significant.height,
        annotated_variants=df["snp_id"].n_unique(),
        row_count=df.height,
    )
    return df
