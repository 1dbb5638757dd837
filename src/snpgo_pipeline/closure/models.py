"""Data models for the gene-to-GO closure reference table."""

import polars as pl
from pydantic import BaseModel, Field

# Table names for DuckDB storage
CLOSURE_TABLE_NAME = "gene_go_closure"
UNRESOLVED_TABLE_NAME = "unresolved_go_terms"

ASSOCIATION_SCHEMA = {
    "gene_id": pl.Utf8,
    "go_id": pl.Utf8,
    "namespace": pl.Utf8,
}

CLOSURE_SCHEMA = {
    "gene_id": pl.Utf8,
    "go_id": pl.Utf8,
    "namespace": pl.Utf8,
}


class GeneTermRecord(BaseModel):
    """One (gene, term) row of the closure table.

    Attributes:
        gene_id: Gene identifier as used in the gene models
        go_id: GO identifier, either directly annotated or an ancestor of one
        namespace: BP, CC or MF, derived from the term rather than the raw row
    """

    gene_id: str
    go_id: str
    namespace: str = Field(pattern=r"^(BP|CC|MF)$")


class GeneGOClosure:
    """Read-only lookup over a built closure table.

    Wraps the (gene_id, go_id, namespace) frame produced by the build step.
    Enrichment runs only read from it.
    """

    def __init__(self, df: pl.DataFrame):
        self._df = df.select(list(CLOSURE_SCHEMA)).sort(["gene_id", "go_id"])
        grouped = self._df.group_by("gene_id").agg(pl.col("go_id"))
        self._terms = {
            row["gene_id"]: frozenset(row["go_id"])
            for row in grouped.iter_rows(named=True)
        }

    @property
    def frame(self) -> pl.DataFrame:
        return self._df

    @property
    def gene_count(self) -> int:
        return len(self._terms)

    def genes(self) -> list[str]:
        return sorted(self._terms)

    def terms_for(self, gene_id: str) -> frozenset[str]:
        """Closure of ``gene_id``; empty for genes without GO annotation."""
        return self._terms.get(gene_id, frozenset())

    def genes_with_term(self, go_id: str) -> frozenset[str]:
        return frozenset(
            self._df.filter(pl.col("go_id") == go_id)["gene_id"].to_list()
        )

    def __len__(self) -> int:
        return self._df.height
