"""Persistence layer for pipeline checkpoints and provenance tracking."""

from snpgo_pipeline.persistence.duckdb_store import PipelineStore
from snpgo_pipeline.persistence.provenance import ProvenanceTracker

__all__ = ["PipelineStore", "ProvenanceTracker"]
