"""GO term enrichment of genes near significant variants."""

from snpgo_pipeline.enrichment.models import (
    ENRICHMENT_TABLE_PREFIX,
    EnrichmentRecord,
    RESULT_SCHEMA,
    enrichment_table_name,
)
from snpgo_pipeline.enrichment.tester import (
    build_contingency,
    candidate_terms,
    run_enrichment,
    select_enriched,
    term_counts,
    term_exact_test,
)
from snpgo_pipeline.enrichment.pipeline import enrich_windows, save_enrichment

__all__ = [
    "ENRICHMENT_TABLE_PREFIX",
    "EnrichmentRecord",
    "RESULT_SCHEMA",
    "enrichment_table_name",
    "build_contingency",
    "candidate_terms",
    "run_enrichment",
    "select_enriched",
    "term_counts",
    "term_exact_test",
    "enrich_windows",
    "save_enrichment",
]
