"""Gene Ontology namespaces, roots and term records."""

from pydantic import BaseModel, Field

# Table name for DuckDB storage
ONTOLOGY_TABLE_NAME = "go_ontology"

BIOLOGICAL_PROCESS = "BP"
CELLULAR_COMPONENT = "CC"
MOLECULAR_FUNCTION = "MF"

NAMESPACES = (BIOLOGICAL_PROCESS, CELLULAR_COMPONENT, MOLECULAR_FUNCTION)

# Upstream namespace labels -> three-letter codes
NAMESPACE_CODES = {
    "biological_process": BIOLOGICAL_PROCESS,
    "cellular_component": CELLULAR_COMPONENT,
    "molecular_function": MOLECULAR_FUNCTION,
}

NAMESPACE_ROOTS = {
    BIOLOGICAL_PROCESS: "GO:0008150",
    CELLULAR_COMPONENT: "GO:0005575",
    MOLECULAR_FUNCTION: "GO:0003674",
}

# Synthetic parent of the three roots in some ancestor tables; never a real term
ROOT_SENTINEL = "all"

GO_OBO_URL = "https://current.geneontology.org/ontology/go-basic.obo"


def namespace_code(label: str) -> str:
    """Map an upstream namespace label (or an existing code) to BP/CC/MF.

    Raises:
        ValueError: If the label is not one of the three GO namespaces
    """
    if label in NAMESPACES:
        return label
    code = NAMESPACE_CODES.get(label.strip().lower())
    if code is None:
        raise ValueError(f"Unknown GO namespace label: {label!r}")
    return code


class GOTerm(BaseModel):
    """A GO term with its direct parents.

    Attributes:
        go_id: GO identifier (e.g. GO:0007155)
        namespace: BP, CC or MF
        parents: Direct parent identifiers (is_a and any followed relationships)
    """

    go_id: str
    namespace: str = Field(pattern=r"^(BP|CC|MF)$")
    parents: frozenset[str] = frozenset()
