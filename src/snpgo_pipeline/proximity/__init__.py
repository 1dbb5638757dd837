"""Genomic proximity between variants and gene/exon intervals."""

from snpgo_pipeline.proximity.models import (
    EXON_SCHEMA,
    EXON_TABLE_NAME,
    ExonModel,
    GENE_SCHEMA,
    GENE_TABLE_NAME,
    GeneModel,
    Variant,
)
from snpgo_pipeline.proximity.load import read_gene_models
from snpgo_pipeline.proximity.intervals import (
    containment,
    distance_expr,
    nearest_distance,
    partition_genes,
    window_bounds,
    windowed_overlap,
    windowed_pairs,
)

__all__ = [
    "EXON_SCHEMA",
    "EXON_TABLE_NAME",
    "ExonModel",
    "GENE_SCHEMA",
    "GENE_TABLE_NAME",
    "GeneModel",
    "Variant",
    "read_gene_models",
    "containment",
    "distance_expr",
    "nearest_distance",
    "partition_genes",
    "window_bounds",
    "windowed_overlap",
    "windowed_pairs",
]
