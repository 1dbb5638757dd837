"""Load the GO term graph from an edge table or an OBO release."""

from pathlib import Path
from typing import Optional

import httpx
import polars as pl
import structlog
from goatools.obo_parser import GODag
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from snpgo_pipeline.ontology.models import GO_OBO_URL, namespace_code

logger = structlog.get_logger()

EDGE_SCHEMA = {
    "go_id": pl.Utf8,
    "namespace": pl.Utf8,
    "parent_id": pl.Utf8,
    "relationship": pl.Utf8,
}


@retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=4, max=60),
    retry=retry_if_exception_type(
        (httpx.HTTPStatusError, httpx.ConnectError, httpx.TimeoutException)
    ),
)
def download_obo(
    output_path: Path,
    url: str = GO_OBO_URL,
    force: bool = False,
    timeout: float = 120.0,
) -> Path:
    """Stream a GO OBO release to disk (skipped when already present).

    Raises:
        httpx.HTTPStatusError: On HTTP errors (after retries)
        httpx.ConnectError: On connection errors (after retries)
        httpx.TimeoutException: On timeout (after retries)
    """
    output_path = Path(output_path)

    if output_path.exists() and not force:
        logger.info("go_obo_exists", path=str(output_path))
        return output_path

    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = output_path.with_suffix(output_path.suffix + ".tmp")

    logger.info("go_obo_download_start", url=url)
    with httpx.stream("GET", url, timeout=timeout, follow_redirects=True) as response:
        response.raise_for_status()
        with open(temp_path, "wb") as f:
            for chunk in response.iter_bytes(chunk_size=65536):
                f.write(chunk)
    temp_path.rename(output_path)

    logger.info(
        "go_obo_download_complete",
        path=str(output_path),
        size_mb=round(output_path.stat().st_size / 1024 / 1024, 2),
    )
    return output_path


def read_ontology_edges(path: Path) -> pl.DataFrame:
    """Read a tab-separated GO edge table.

    Expected columns: go_id, namespace, parent_id and optionally
    relationship. Roots carry an empty parent_id.

    Raises:
        ValueError: If required columns are missing
    """
    df = pl.read_csv(
        path,
        separator="\t",
        null_values=["", "NA"],
        infer_schema_length=0,
    )

    missing = {"go_id", "namespace", "parent_id"} - set(df.columns)
    if missing:
        raise ValueError(f"Ontology edge table {path} is missing columns: {sorted(missing)}")

    if "relationship" not in df.columns:
        df = df.with_columns(
            pl.when(pl.col("parent_id").is_not_null())
            .then(pl.lit("is_a"))
            .otherwise(None)
            .alias("relationship")
        )

    df = df.with_columns(
        pl.col("namespace").map_elements(namespace_code, return_dtype=pl.Utf8)
    )

    logger.info("ontology_edges_read", path=str(path), edge_count=df.height)
    return df.select(list(EDGE_SCHEMA)).unique(maintain_order=True)


def parse_obo(path: Path, relationships: Optional[list[str]] = None) -> pl.DataFrame:
    """Parse an OBO file into the edge table layout using goatools.

    Obsolete terms are skipped. ``is_a`` edges are always kept; other
    relationship types are included when named in ``relationships``.
    """
    relationships = relationships if relationships is not None else ["is_a"]
    dag = GODag(str(path), optional_attrs={"relationship"}, prt=None)

    rows = []
    seen = set()
    for term in dag.values():
        # alt_ids map to the same term object
        if term.item_id in seen or term.is_obsolete:
            continue
        seen.add(term.item_id)
        namespace = namespace_code(term.namespace)

        edges = [(parent.item_id, "is_a") for parent in term.parents]
        for rel_name, targets in getattr(term, "relationship", {}).items():
            if rel_name in relationships:
                edges.extend((target.item_id, rel_name) for target in targets)

        if not edges:
            rows.append((term.item_id, namespace, None, None))
        rows.extend((term.item_id, namespace, parent_id, rel) for parent_id, rel in edges)

    df = pl.DataFrame(rows, schema=EDGE_SCHEMA, orient="row").sort(["go_id", "parent_id"])
    logger.info("ontology_obo_parsed", path=str(path), term_count=len(seen), edge_count=df.height)
    return df


def load_ontology(path: Path, relationships: Optional[list[str]] = None) -> pl.DataFrame:
    """Load edges from ``path``, choosing the parser by suffix (.obo or TSV)."""
    path = Path(path)
    if path.suffix == ".obo":
        return parse_obo(path, relationships)
    return read_ontology_edges(path)
