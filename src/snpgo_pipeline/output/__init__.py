"""Result export: enrichment tables and the significant-variant gene annotation."""

from snpgo_pipeline.output.annotation import (
    ANNOTATION_LEADING_COLUMNS,
    build_annotation_export,
)
from snpgo_pipeline.output.writers import (
    write_annotation_export,
    write_enrichment_tables,
)

__all__ = [
    "ANNOTATION_LEADING_COLUMNS",
    "build_annotation_export",
    "write_annotation_export",
    "write_enrichment_tables",
]
