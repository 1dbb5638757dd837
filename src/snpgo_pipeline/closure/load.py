"""Persist and read back the gene-to-GO closure reference."""

from pathlib import Path
from typing import Optional

import polars as pl
import structlog

from snpgo_pipeline.closure.models import (
    CLOSURE_SCHEMA,
    CLOSURE_TABLE_NAME,
    GeneGOClosure,
    UNRESOLVED_TABLE_NAME,
)
from snpgo_pipeline.closure.transform import closure_summary
from snpgo_pipeline.persistence import PipelineStore, ProvenanceTracker

logger = structlog.get_logger()


def write_closure_tsv(df: pl.DataFrame, path: Path) -> Path:
    """Write the closure as a tab-separated cache (gene_id, go_id, namespace)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.select(list(CLOSURE_SCHEMA)).write_csv(path, separator="\t", include_header=True)
    logger.info("closure_tsv_written", path=str(path), row_count=df.height)
    return path


def read_closure_tsv(path: Path) -> pl.DataFrame:
    """Read a cached closure TSV without recomputation.

    Raises:
        FileNotFoundError: If the cache has not been built
        ValueError: If the file lacks the closure columns
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Closure cache not found: {path} (run 'closure build' first)")

    df = pl.read_csv(path, separator="\t", schema_overrides=CLOSURE_SCHEMA)
    missing = set(CLOSURE_SCHEMA) - set(df.columns)
    if missing:
        raise ValueError(f"Closure cache {path} is missing columns: {sorted(missing)}")
    return df.select(list(CLOSURE_SCHEMA))


def load_to_duckdb(
    df: pl.DataFrame,
    unresolved: pl.DataFrame,
    store: PipelineStore,
    provenance: ProvenanceTracker,
    description: str = "",
) -> None:
    """Save the closure and the unresolved-term audit to DuckDB with provenance.

    Both tables are replaced (idempotent rebuild).
    """
    summary = closure_summary(df)
    logger.info("closure_load_start", row_count=df.height)

    store.save_dataframe(
        df=df,
        table_name=CLOSURE_TABLE_NAME,
        description=description or "Gene to GO term closure (direct terms plus all ancestors)",
        replace=True,
    )
    store.save_dataframe(
        df=unresolved,
        table_name=UNRESOLVED_TABLE_NAME,
        description="Raw associations whose GO term is absent from the ontology",
        replace=True,
    )

    provenance.record_step("load_gene_go_closure", {
        **summary,
        "unresolved_association_count": unresolved.height,
        "unresolved_term_count": unresolved["go_id"].n_unique() if unresolved.height else 0,
    })

    logger.info(
        "closure_load_complete",
        row_count=summary["row_count"],
        gene_count=summary["gene_count"],
        term_count=summary["term_count"],
        unresolved=unresolved.height,
    )


def load_closure(
    store: Optional[PipelineStore] = None,
    path: Optional[Path] = None,
) -> GeneGOClosure:
    """Query mode: open the built closure from DuckDB, falling back to the TSV cache.

    Raises:
        FileNotFoundError: If neither source holds a built closure
    """
    if store is not None and store.has_checkpoint(CLOSURE_TABLE_NAME):
        df = store.load_dataframe(CLOSURE_TABLE_NAME)
        logger.info("closure_loaded", source="duckdb", row_count=df.height)
        return GeneGOClosure(df)

    if path is None:
        raise FileNotFoundError("No closure checkpoint in store and no cache path given")

    df = read_closure_tsv(path)
    logger.info("closure_loaded", source=str(path), row_count=df.height)
    return GeneGOClosure(df)


def query_gene_terms(store: PipelineStore, gene_ids: list[str]) -> pl.DataFrame:
    """Closure rows for the given genes, sorted by gene_id, go_id."""
    lookup = pl.DataFrame({"gene_id": gene_ids}, schema={"gene_id": pl.Utf8}).unique()
    store.conn.register("_gene_lookup", lookup)
    try:
        return store.execute_query(
            f"""
            SELECT c.gene_id, c.go_id, c.namespace
            FROM {CLOSURE_TABLE_NAME} c
            INNER JOIN _gene_lookup l ON c.gene_id = l.gene_id
            ORDER BY c.gene_id, c.go_id
            """
        )
    finally:
        store.conn.unregister("_gene_lookup")
