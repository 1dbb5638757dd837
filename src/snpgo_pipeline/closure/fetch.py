"""Fetch or read raw gene-to-GO associations."""

import math
from pathlib import Path

import mygene
import polars as pl
import structlog

from snpgo_pipeline.closure.models import ASSOCIATION_SCHEMA
from snpgo_pipeline.ontology.models import NAMESPACES, namespace_code

logger = structlog.get_logger()

# Reused across calls
_mg_client = None


def _get_mygene_client() -> mygene.MyGeneInfo:
    """Get or create mygene client singleton."""
    global _mg_client
    if _mg_client is None:
        _mg_client = mygene.MyGeneInfo()
    return _mg_client


def _as_list(value) -> list:
    # mygene returns a bare dict when a gene has a single term in a namespace
    if not value:
        return []
    return value if isinstance(value, list) else [value]


def fetch_go_associations(
    gene_ids: list[str],
    batch_size: int = 1000,
    species: str = "human",
    scopes: str = "ensembl.gene,symbol",
) -> pl.DataFrame:
    """Fetch direct GO annotations for genes from mygene.info.

    Queries in batches; a failed batch is logged and skipped so the rest of
    the gene set still yields associations.

    Args:
        gene_ids: Gene identifiers as used in the gene models
        batch_size: Genes per querymany call
        species: mygene species name or taxid
        scopes: mygene fields the identifiers are matched against

    Returns:
        DataFrame with gene_id, go_id, namespace (BP/CC/MF), deduplicated
    """
    logger.info("fetch_go_associations_start", gene_count=len(gene_ids))

    mg = _get_mygene_client()
    rows = []
    failed_batches = 0
    num_batches = math.ceil(len(gene_ids) / batch_size)

    for i in range(num_batches):
        batch = gene_ids[i * batch_size:(i + 1) * batch_size]
        logger.info(
            "fetch_go_batch",
            batch_num=i + 1,
            total_batches=num_batches,
            batch_size=len(batch),
        )

        try:
            results = mg.querymany(
                batch,
                scopes=scopes,
                fields="go",
                species=species,
                returnall=False,
            )
        except Exception as e:
            failed_batches += 1
            logger.warning("fetch_go_batch_error", batch_num=i + 1, error=str(e))
            continue

        for result in results:
            if result.get("notfound"):
                continue
            go_data = result.get("go")
            if not isinstance(go_data, dict):
                continue
            for namespace in NAMESPACES:
                for entry in _as_list(go_data.get(namespace)):
                    go_id = entry.get("id") if isinstance(entry, dict) else None
                    if go_id:
                        rows.append((result.get("query"), go_id, namespace))

    df = pl.DataFrame(rows, schema=ASSOCIATION_SCHEMA, orient="row").unique().sort(
        ["gene_id", "go_id"]
    )

    logger.info(
        "fetch_go_associations_complete",
        association_count=df.height,
        gene_count=df["gene_id"].n_unique(),
        failed_batches=failed_batches,
    )
    return df


def read_go_associations(path: Path) -> pl.DataFrame:
    """Read raw associations from a TSV of gene_id, go_id, namespace.

    Rows with an empty go_id are discarded. Namespace labels such as
    ``biological_process`` are mapped to BP/CC/MF. Duplicate rows collapse.

    Raises:
        ValueError: If required columns are missing or a namespace label is unknown
    """
    df = pl.read_csv(path, separator="\t", infer_schema_length=0, null_values=["", "NA"])

    missing = set(ASSOCIATION_SCHEMA) - set(df.columns)
    if missing:
        raise ValueError(f"Association table {path} is missing columns: {sorted(missing)}")

    total = df.height
    df = df.filter(
        pl.col("go_id").is_not_null()
        & (pl.col("go_id").str.strip_chars() != "")
        & pl.col("gene_id").is_not_null()
    )
    dropped_empty = total - df.height

    labels = df["namespace"].unique().drop_nulls().to_list()
    mapping = {label: namespace_code(label) for label in labels}

    df = (
        df.select(
            pl.col("gene_id"),
            pl.col("go_id").str.strip_chars(),
            pl.col("namespace").replace_strict(mapping, default=None),
        )
        .unique()
        .sort(["gene_id", "go_id"])
    )

    logger.info(
        "go_associations_read",
        path=str(path),
        association_count=df.height,
        dropped_empty=dropped_empty,
    )
    return df
