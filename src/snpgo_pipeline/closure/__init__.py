"""Gene-to-GO closure: raw associations expanded to every implied ancestor term."""

from snpgo_pipeline.closure.models import (
    CLOSURE_TABLE_NAME,
    GeneGOClosure,
    GeneTermRecord,
    UNRESOLVED_TABLE_NAME,
)
from snpgo_pipeline.closure.fetch import fetch_go_associations, read_go_associations
from snpgo_pipeline.closure.transform import (
    build_gene_go_closure,
    closure_summary,
    find_unresolved_terms,
)
from snpgo_pipeline.closure.load import (
    load_closure,
    load_to_duckdb,
    query_gene_terms,
    read_closure_tsv,
    write_closure_tsv,
)

__all__ = [
    "CLOSURE_TABLE_NAME",
    "UNRESOLVED_TABLE_NAME",
    "GeneGOClosure",
    "GeneTermRecord",
    "fetch_go_associations",
    "read_go_associations",
    "build_gene_go_closure",
    "closure_summary",
    "find_unresolved_terms",
    "load_closure",
    "load_to_duckdb",
    "query_gene_terms",
    "read_closure_tsv",
    "write_closure_tsv",
]
