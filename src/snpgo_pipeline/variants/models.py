"""Column conventions for merged variant statistics."""

import re

import polars as pl

# Table name for DuckDB storage
VARIANT_TABLE_NAME = "variants"

VARIANT_KEY = ["snp_id", "chrom", "pos"]

# Trailing numeric suffix, with an optional separator, stripped to form a locus key
LOCUS_SUFFIX_PATTERN = r"[_.:\-]?\d+$"


def locus_key(snp_id: str) -> str:
    """Group key for a variant: its identifier without the trailing number.

    ``"ctg1042_5531"`` -> ``"ctg1042"``. Identifiers that are entirely
    numeric are returned unchanged.
    """
    stripped = re.sub(LOCUS_SUFFIX_PATTERN, "", snp_id)
    return stripped or snp_id


def locus_expr(column: str = "snp_id") -> pl.Expr:
    """Vectorised :func:`locus_key`."""
    stripped = pl.col(column).str.replace(LOCUS_SUFFIX_PATTERN, "")
    return (
        pl.when(stripped.str.len_chars() > 0)
        .then(stripped)
        .otherwise(pl.col(column))
        .alias("locus")
    )


def fdr_columns(columns: list[str], procedure: str) -> list[str]:
    """FDR columns belonging to ``procedure`` (prefixed ``<procedure>_``)."""
    return [c for c in columns if c.startswith(f"{procedure}_") and c.endswith("_fdr")]


def pvalue_columns(columns: list[str], procedures: list[str]) -> list[str]:
    """Raw p-value columns of the given procedures, in procedure order."""
    return [
        c
        for procedure in procedures
        for c in columns
        if c.startswith(f"{procedure}_") and c.endswith("_pvalue")
    ]
