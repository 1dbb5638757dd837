"""Enrichment across the configured window widths."""

from typing import Optional

import polars as pl
import structlog

from snpgo_pipeline.closure.models import GeneGOClosure
from snpgo_pipeline.config.schema import WindowConfig
from snpgo_pipeline.enrichment.models import enrichment_table_name
from snpgo_pipeline.enrichment.tester import run_enrichment, select_enriched
from snpgo_pipeline.persistence import PipelineStore, ProvenanceTracker
from snpgo_pipeline.proximity.intervals import partition_genes

logger = structlog.get_logger()


def enrich_windows(
    closure: GeneGOClosure,
    variants: pl.DataFrame,
    genes: pl.DataFrame,
    windows: list[WindowConfig],
    shallow: frozenset[str],
    single_gene: frozenset[str],
    chrom_lengths: Optional[dict[str, int]] = None,
) -> dict[int, pl.DataFrame]:
    """Partition genes and run enrichment once per window width.

    Returns:
        {width: results frame}, in ascending width order
    """
    results = {}
    for window in windows:
        candidate, background = partition_genes(variants, genes, window.width, chrom_lengths)
        df = run_enrichment(closure, candidate, background, shallow, single_gene)
        enriched = select_enriched(df, window.max_fdr, window.min_observed)

        logger.info(
            "window_enrichment_complete",
            width=window.width,
            candidate_genes=len(candidate),
            background_genes=len(background),
            tested_terms=df.height,
            enriched_terms=enriched.height,
            max_fdr=window.max_fdr,
            min_observed=window.min_observed,
        )
        results[window.width] = df
    return results


def save_enrichment(
    results: dict[int, pl.DataFrame],
    windows: list[WindowConfig],
    store: PipelineStore,
    provenance: ProvenanceTracker,
) -> None:
    """Persist each window's results as enrichment_w<width> with provenance."""
    thresholds = {w.width: w for w in windows}
    for width, df in results.items():
        window = thresholds[width]
        store.save_dataframe(
            df=df,
            table_name=enrichment_table_name(width),
            description=f"GO enrichment of genes within {width} bp windows",
            replace=True,
        )
        provenance.record_step("enrichment_window", {
            "width": width,
            "tested_terms": df.height,
            "enriched_terms": select_enriched(df, window.max_fdr, window.min_observed).height,
            "max_fdr": window.max_fdr,
            "min_observed": window.min_observed,
        })
