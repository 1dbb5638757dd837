"""Load per-procedure variant statistics and derive significance."""

from functools import reduce
from pathlib import Path

import polars as pl
import structlog

from snpgo_pipeline.variants.models import VARIANT_KEY, fdr_columns

logger = structlog.get_logger()


def _stat_label(column: str) -> str | None:
    """'pvalue' -> 'pvalue', 'EUR_fdr' -> 'EUR_fdr', anything else -> None."""
    if column in ("pvalue", "fdr") or column.endswith("_pvalue") or column.endswith("_fdr"):
        return column
    return None


def read_procedure_results(path: Path, procedure: str) -> pl.DataFrame:
    """Read one procedure's results keyed by (snp_id, chrom, pos).

    Statistic columns are ``pvalue``/``fdr`` or ``<label>_pvalue``/``<label>_fdr``
    (one pair per population or test). They are renamed with the procedure
    prefix, e.g. ``EUR_fdr`` -> ``af_EUR_fdr``. Other columns are dropped.

    Raises:
        ValueError: If key columns or FDR columns are missing
    """
    df = pl.read_csv(path, separator="\t", null_values=["", "NA", "nan"], infer_schema_length=0)

    missing = set(VARIANT_KEY) - set(df.columns)
    if missing:
        raise ValueError(f"{procedure} results {path} missing key columns: {sorted(missing)}")

    stats = [c for c in df.columns if c not in VARIANT_KEY and _stat_label(c)]
    if not any(c.endswith("fdr") for c in stats):
        raise ValueError(f"{procedure} results {path} have no FDR column")

    df = (
        df.select(
            pl.col("snp_id"),
            pl.col("chrom"),
            pl.col("pos").cast(pl.Int64),
            *[pl.col(c).cast(pl.Float64).alias(f"{procedure}_{c}") for c in stats],
        )
        .unique(subset=VARIANT_KEY, keep="first", maintain_order=True)
    )

    logger.info(
        "procedure_results_read",
        procedure=procedure,
        path=str(path),
        variant_count=df.height,
        stat_columns=[f"{procedure}_{c}" for c in stats],
    )
    return df


def merge_procedure_results(frames: list[pl.DataFrame]) -> pl.DataFrame:
    """Full outer join on (snp_id, chrom, pos).

    A variant absent from a procedure's table keeps null values for that
    procedure's columns.
    """
    if not frames:
        raise ValueError("At least one procedure result table is required")

    merged = reduce(
        lambda left, right: left.join(right, on=VARIANT_KEY, how="full", coalesce=True),
        frames,
    )
    merged = merged.sort(["chrom", "pos", "snp_id"])

    logger.info("procedure_results_merged", table_count=len(frames), variant_count=merged.height)
    return merged


def flag_significant(df: pl.DataFrame, thresholds: dict[str, float]) -> pl.DataFrame:
    """Add ``significant``: any procedure has an FDR column below its threshold.

    Null FDRs (variant not tested by that procedure) never make a variant
    significant.
    """
    conditions = []
    for procedure, threshold in thresholds.items():
        columns = fdr_columns(df.columns, procedure)
        if not columns:
            logger.warning("flag_significant_no_columns", procedure=procedure)
            continue
        conditions.extend((pl.col(c) < threshold).fill_null(False) for c in columns)

    if conditions:
        flag = pl.any_horizontal(conditions)
    else:
        flag = pl.lit(False)

    df = df.with_columns(flag.alias("significant"))
    logger.info(
        "flag_significant_complete",
        thresholds=thresholds,
        variant_count=df.height,
        significant_count=df.filter(pl.col("significant")).height,
    )
    return df


def load_variants(config: "PipelineConfig") -> pl.DataFrame:
    """Read every configured procedure, merge, and flag significant variants."""
    frames = [
        read_procedure_results(procedure.path, procedure.name)
        for procedure in config.inputs.procedures
    ]
    return flag_significant(merge_procedure_results(frames), config.fdr_thresholds())
