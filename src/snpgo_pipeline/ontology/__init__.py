"""Gene Ontology graph loading, ancestor closure and depth classification."""

from snpgo_pipeline.ontology.models import (
    GOTerm,
    NAMESPACES,
    NAMESPACE_CODES,
    NAMESPACE_ROOTS,
    ONTOLOGY_TABLE_NAME,
    ROOT_SENTINEL,
    namespace_code,
)
from snpgo_pipeline.ontology.index import AncestorIndex
from snpgo_pipeline.ontology.fetch import (
    download_obo,
    load_ontology,
    parse_obo,
    read_ontology_edges,
)
from snpgo_pipeline.ontology.depth import (
    shallow_terms,
    single_gene_terms,
    term_depths,
    term_gene_counts,
)

__all__ = [
    "GOTerm",
    "NAMESPACES",
    "NAMESPACE_CODES",
    "NAMESPACE_ROOTS",
    "ONTOLOGY_TABLE_NAME",
    "ROOT_SENTINEL",
    "namespace_code",
    "AncestorIndex",
    "download_obo",
    "load_ontology",
    "parse_obo",
    "read_ontology_edges",
    "shallow_terms",
    "single_gene_terms",
    "term_depths",
    "term_gene_counts",
]
