"""Read gene and exon models from a feature table or a GTF file."""

from pathlib import Path

import polars as pl
import structlog

from snpgo_pipeline.proximity.models import EXON_SCHEMA, GENE_SCHEMA

logger = structlog.get_logger()

GTF_COLUMNS = [
    "chrom", "source", "feature_type", "start", "end",
    "score", "strand", "frame", "attributes",
]


def _validate_intervals(df: pl.DataFrame, label: str) -> pl.DataFrame:
    bad = df.filter(pl.col("end") < pl.col("start"))
    if bad.height:
        raise ValueError(
            f"{bad.height} {label} records have end < start, e.g. {bad.row(0, named=True)}"
        )
    return df


def read_feature_table(path: Path) -> pl.DataFrame:
    """Read a TSV of feature_type, gene_id, gene_name, chrom, start, end, strand.

    An optional exon_id column names exon rows; otherwise exons get
    ``<gene_id>:<start>-<end>``.
    """
    df = pl.read_csv(
        path,
        separator="\t",
        null_values=["", "NA"],
        infer_schema_length=0,
    )
    required = {"feature_type", "gene_id", "chrom", "start", "end"}
    missing = required - set(df.columns)
    if missing:
        raise ValueError(f"Feature table {path} is missing columns: {sorted(missing)}")

    if "gene_name" not in df.columns:
        df = df.with_columns(pl.lit(None, dtype=pl.Utf8).alias("gene_name"))
    if "strand" not in df.columns:
        df = df.with_columns(pl.lit(".").alias("strand"))
    if "exon_id" not in df.columns:
        df = df.with_columns(pl.lit(None, dtype=pl.Utf8).alias("exon_id"))
    return df


def read_gtf(path: Path) -> pl.DataFrame:
    """Read gene and exon features from a GTF, extracting gene_id/gene_name/exon_id."""
    df = pl.read_csv(
        path,
        separator="\t",
        has_header=False,
        new_columns=GTF_COLUMNS,
        comment_prefix="#",
        quote_char=None,
        infer_schema_length=0,
    )
    return df.filter(pl.col("feature_type").is_in(["gene", "exon"])).with_columns(
        pl.col("start").cast(pl.Int64),
        pl.col("end").cast(pl.Int64),
        pl.col("attributes").str.extract(r'gene_id "([^"]+)"', 1).alias("gene_id"),
        pl.col("attributes").str.extract(r'gene_name "([^"]+)"', 1).alias("gene_name"),
        pl.col("attributes").str.extract(r'exon_id "([^"]+)"', 1).alias("exon_id"),
    )


def read_gene_models(path: Path) -> tuple[pl.DataFrame, pl.DataFrame]:
    """Load gene and exon intervals.

    ``.gtf`` / ``.gtf.gz`` files are parsed as GTF; anything else as a feature
    TSV. Duplicate gene records collapse to one row per gene_id.

    Returns:
        (genes, exons) with the GENE_SCHEMA / EXON_SCHEMA columns

    Raises:
        ValueError: On missing columns or intervals with end < start
    """
    path = Path(path)
    is_gtf = path.name.endswith(".gtf") or path.name.endswith(".gtf.gz")
    df = read_gtf(path) if is_gtf else read_feature_table(path)
    df = df.with_columns(pl.col("chrom").cast(pl.Utf8))

    genes = (
        df.filter(pl.col("feature_type") == "gene")
        .select(list(GENE_SCHEMA))
        .cast(GENE_SCHEMA)
        .unique(subset=["gene_id"], keep="first", maintain_order=True)
        .sort(["chrom", "start", "gene_id"])
    )
    exons = (
        df.filter(pl.col("feature_type") == "exon")
        .with_columns(
            pl.coalesce(
                pl.col("exon_id"),
                pl.format("{}:{}-{}", pl.col("gene_id"), pl.col("start"), pl.col("end")),
            ).alias("exon_id")
        )
        .select(list(EXON_SCHEMA))
        .cast(EXON_SCHEMA)
        .unique(maintain_order=True)
        .sort(["chrom", "start", "exon_id"])
    )

    _validate_intervals(genes, "gene")
    _validate_intervals(exons, "exon")

    logger.info(
        "gene_models_read",
        path=str(path),
        gene_count=genes.height,
        exon_count=exons.height,
        chrom_count=genes["chrom"].n_unique(),
    )
    return genes, exons
