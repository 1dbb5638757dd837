"""Gene, exon and variant records for proximity queries."""

import polars as pl
from pydantic import BaseModel, Field, model_validator

# Table names for DuckDB storage
GENE_TABLE_NAME = "gene_models"
EXON_TABLE_NAME = "exon_models"

GENE_SCHEMA = {
    "gene_id": pl.Utf8,
    "gene_name": pl.Utf8,
    "chrom": pl.Utf8,
    "start": pl.Int64,
    "end": pl.Int64,
    "strand": pl.Utf8,
}

EXON_SCHEMA = {
    "exon_id": pl.Utf8,
    "gene_id": pl.Utf8,
    "chrom": pl.Utf8,
    "start": pl.Int64,
    "end": pl.Int64,
    "strand": pl.Utf8,
}


class GeneModel(BaseModel):
    """A gene body on a reference sequence (1-based, closed interval)."""

    gene_id: str
    gene_name: str | None = None
    chrom: str
    start: int = Field(ge=1)
    end: int = Field(ge=1)
    strand: str = Field(default=".", pattern=r"^[+\-.]$")

    @model_validator(mode="after")
    def check_interval(self) -> "GeneModel":
        if self.end < self.start:
            raise ValueError(f"{self.gene_id}: end {self.end} < start {self.start}")
        return self

    @property
    def width(self) -> int:
        return self.end - self.start + 1


class ExonModel(GeneModel):
    """An exon interval belonging to ``gene_id``."""

    exon_id: str


class Variant(BaseModel):
    """A point variant with its derived significance flag."""

    snp_id: str
    chrom: str
    pos: int = Field(ge=1)
    significant: bool = False
