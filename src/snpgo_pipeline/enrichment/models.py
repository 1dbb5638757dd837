"""Data models for GO term enrichment results."""

import polars as pl
from pydantic import BaseModel

# Per-window result tables are stored as enrichment_w<width>
ENRICHMENT_TABLE_PREFIX = "enrichment_w"

RESULT_SCHEMA = {
    "go_id": pl.Utf8,
    "namespace": pl.Utf8,
    "expected": pl.Float64,
    "observed": pl.Int64,
    "background_observed": pl.Int64,
    "pvalue": pl.Float64,
    "fdr": pl.Float64,
}


def enrichment_table_name(width: int) -> str:
    return f"{ENRICHMENT_TABLE_PREFIX}{width}"


class EnrichmentRecord(BaseModel):
    """Result of testing one GO term at one window width.

    Attributes:
        go_id: Tested GO term
        namespace: BP, CC or MF
        expected: Candidate genes expected to carry the term if candidate and
            background shared the background's term prevalence
            (n_candidate * background_observed / n_background); None when the
            background is empty
        observed: Candidate genes carrying the term
        background_observed: Background genes carrying the term
        pvalue: Two-sided Fisher exact test p-value
        fdr: Benjamini-Hochberg adjusted p-value over all terms tested in the window
    """

    go_id: str
    namespace: str | None = None
    expected: float | None = None
    observed: int
    background_observed: int
    pvalue: float
    fdr: float
