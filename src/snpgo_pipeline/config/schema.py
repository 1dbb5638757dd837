"""Pydantic models for pipeline configuration."""

import hashlib
import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class DataSourceVersions(BaseModel):
    """Version information for external data sources."""

    go_release: str = Field(
        ...,
        description="Gene Ontology release date or tag (e.g. 2024-06-17)",
    )
    annotation_source: str = Field(
        default="mygene.info",
        description="Source of raw gene-to-GO associations",
    )
    genome_build: str = Field(
        default="unknown",
        description="Reference assembly of the gene models and variant coordinates",
    )


class ProcedureConfig(BaseModel):
    """One independent statistical test procedure and its significance cutoff."""

    name: str = Field(
        ...,
        pattern=r"^[A-Za-z][A-Za-z0-9]*$",
        description="Short procedure name, used as column prefix (e.g. af, gt)",
    )
    path: Path = Field(
        ...,
        description="TSV of per-variant p-values and FDR-adjusted p-values",
    )
    fdr_threshold: float = Field(
        default=0.05,
        gt=0.0,
        le=1.0,
        description="A variant is significant when any FDR of this procedure is below this value",
    )


class InputPaths(BaseModel):
    """Locations of the externally produced inputs."""

    gene_models: Path = Field(
        ...,
        description="Gene/exon models (feature TSV or GTF)",
    )
    ontology: Path = Field(
        ...,
        description="GO term graph (edge TSV or OBO)",
    )
    go_associations: Optional[Path] = Field(
        default=None,
        description="Raw gene-to-GO associations TSV (fetched from mygene.info when absent)",
    )
    procedures: list[ProcedureConfig] = Field(
        default_factory=list,
        description="Statistical test procedures whose results define variant significance",
    )

    @field_validator("procedures")
    @classmethod
    def unique_procedure_names(cls, v: list[ProcedureConfig]) -> list[ProcedureConfig]:
        """Reject duplicate procedure names (they become column prefixes)."""
        names = [p.name for p in v]
        if len(names) != len(set(names)):
            raise ValueError(f"Procedure names must be unique, got {names}")
        return v


class OntologyConfig(BaseModel):
    """Ontology traversal and term filtering settings."""

    relationships: list[str] = Field(
        default_factory=lambda: ["is_a", "part_of"],
        description="Relationship types followed when building ancestor closures",
    )
    shallow_depth: int = Field(
        default=3,
        ge=0,
        description="Terms within this many edges of their namespace root are not tested",
    )
    min_genes_per_term: int = Field(
        default=2,
        ge=1,
        description="Terms annotated to fewer genes than this are not tested",
    )


class WindowConfig(BaseModel):
    """A symmetric window around each variant and its enrichment thresholds."""

    width: int = Field(
        ...,
        ge=1,
        description="Total window width in bp, centred on the variant (e.g. 20001)",
    )
    max_fdr: float = Field(
        default=0.05,
        gt=0.0,
        le=1.0,
        description="Terms with FDR below this value are reported as enriched",
    )
    min_observed: int = Field(
        default=0,
        ge=0,
        description="Minimum number of candidate genes carrying the term",
    )

    @property
    def half_width(self) -> int:
        return (self.width - 1) // 2


class APIConfig(BaseModel):
    """Configuration for the mygene.info association client."""

    batch_size: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Genes per mygene querymany batch",
    )
    timeout_seconds: int = Field(
        default=120,
        ge=1,
        description="Download timeout in seconds",
    )
    species: str = Field(
        default="human",
        description="Species passed to mygene",
    )


class ComputeConfig(BaseModel):
    """Worker pool settings for the closure build."""

    max_workers: int = Field(
        default=12,
        ge=1,
        description="Upper bound on worker processes",
    )
    chunk_size: int = Field(
        default=500,
        ge=1,
        description="Genes per worker task",
    )

    def effective_workers(self) -> int:
        """Worker count bounded by available cores."""
        return max(1, min(os.cpu_count() or 1, self.max_workers))


def _default_windows() -> list[WindowConfig]:
    return [
        WindowConfig(width=20001, max_fdr=0.05, min_observed=0),
        WindowConfig(width=80001, max_fdr=0.10, min_observed=3),
    ]


class PipelineConfig(BaseModel):
    """Main pipeline configuration."""

    data_dir: Path = Field(
        ...,
        description="Directory for inputs, caches and outputs",
    )
    cache_dir: Path = Field(
        ...,
        description="Directory for downloaded files",
    )
    duckdb_path: Path = Field(
        ...,
        description="Path to DuckDB database file",
    )
    versions: DataSourceVersions = Field(
        ...,
        description="Data source version information",
    )
    inputs: InputPaths = Field(
        ...,
        description="Input file locations",
    )
    ontology: OntologyConfig = Field(
        default_factory=OntologyConfig,
        description="Ontology traversal settings",
    )
    windows: list[WindowConfig] = Field(
        default_factory=_default_windows,
        description="Window widths and their enrichment thresholds",
    )
    api: APIConfig = Field(
        default_factory=APIConfig,
        description="Association client configuration",
    )
    compute: ComputeConfig = Field(
        default_factory=ComputeConfig,
        description="Worker pool configuration",
    )

    @field_validator("data_dir", "cache_dir")
    @classmethod
    def create_directory(cls, v: Path) -> Path:
        """Create directory if it doesn't exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("windows")
    @classmethod
    def sort_windows(cls, v: list[WindowConfig]) -> list[WindowConfig]:
        """Require at least one window, unique widths, ascending order."""
        if not v:
            raise ValueError("At least one window must be configured")
        widths = [w.width for w in v]
        if len(widths) != len(set(widths)):
            raise ValueError(f"Window widths must be unique, got {widths}")
        return sorted(v, key=lambda w: w.width)

    @property
    def closure_path(self) -> Path:
        """Cached gene-to-GO closure TSV."""
        return self.data_dir / "gene_go_closure.tsv"

    @property
    def widest_window(self) -> WindowConfig:
        return self.windows[-1]

    def fdr_thresholds(self) -> dict[str, float]:
        """Procedure name -> FDR significance threshold."""
        return {p.name: p.fdr_threshold for p in self.inputs.procedures}

    def config_hash(self) -> str:
        """
        Compute SHA-256 hash of the configuration.

        Returns a deterministic hash based on all config values,
        useful for tracking config changes and cache invalidation.
        """
        config_dict = self.model_dump(mode="python")
        config_json = json.dumps(
            config_dict,
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(config_json.encode()).hexdigest()
