"""Ontology command: load the GO graph into the checkpoint store."""

import logging
import sys

import click
import polars as pl

from snpgo_pipeline.config.loader import load_config
from snpgo_pipeline.ontology import (
    AncestorIndex,
    NAMESPACES,
    ONTOLOGY_TABLE_NAME,
    download_obo,
    load_ontology,
    shallow_terms,
)
from snpgo_pipeline.ontology.models import GO_OBO_URL
from snpgo_pipeline.persistence import PipelineStore, ProvenanceTracker

logger = logging.getLogger(__name__)


def load_index(config, store: PipelineStore) -> AncestorIndex:
    """Ancestor index from the stored edge table, or straight from the input file."""
    relationships = config.ontology.relationships
    if store.has_checkpoint(ONTOLOGY_TABLE_NAME):
        edges = store.load_dataframe(ONTOLOGY_TABLE_NAME)
    else:
        edges = load_ontology(config.inputs.ontology, relationships)
    return AncestorIndex.from_dataframe(edges, relationships)


@click.command('ontology')
@click.option(
    '--force',
    is_flag=True,
    help='Reload the ontology even if a checkpoint exists'
)
@click.option(
    '--download',
    is_flag=True,
    help='Download go-basic.obo to the configured ontology path if it is missing'
)
@click.option(
    '--url',
    default=GO_OBO_URL,
    help='Override the OBO download URL'
)
@click.pass_context
def ontology(ctx, force, download, url):
    """Load the GO term graph (edge TSV or OBO) into DuckDB.

    Examples:

        snpgo-pipeline ontology

        snpgo-pipeline ontology --download --force
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== GO Ontology ===", bold=True))
    click.echo()

    store = None
    try:
        config = load_config(config_path)
        store = PipelineStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)

        if store.has_checkpoint(ONTOLOGY_TABLE_NAME) and not force:
            click.echo(click.style(
                "Ontology checkpoint exists. Skipping load (use --force to reload).",
                fg='yellow'
            ))
            edges = store.load_dataframe(ONTOLOGY_TABLE_NAME)
        else:
            source = config.inputs.ontology
            if download and not source.exists():
                click.echo(f"Downloading {url}...")
                download_obo(source, url=url, timeout=config.api.timeout_seconds)

            click.echo(f"Loading ontology from {source}...")
            edges = load_ontology(source, config.ontology.relationships)
            store.save_dataframe(
                df=edges,
                table_name=ONTOLOGY_TABLE_NAME,
                description=f"GO {config.versions.go_release} term graph",
                replace=True,
            )
            provenance.record_step('load_ontology', {
                'source': str(source),
                'go_release': config.versions.go_release,
                'edge_count': edges.height,
                'relationships': config.ontology.relationships,
            })
            provenance.save_to_store(store)
            click.echo(click.style(f"  Saved to '{ONTOLOGY_TABLE_NAME}' table", fg='green'))

        index = AncestorIndex.from_dataframe(edges, config.ontology.relationships)
        shallow = shallow_terms(index, config.ontology.shallow_depth)

        per_namespace = (
            edges.group_by("namespace").agg(pl.col("go_id").n_unique().alias("terms")).sort("namespace")
        )
        counts = {row["namespace"]: row["terms"] for row in per_namespace.iter_rows(named=True)}

        click.echo()
        click.echo(click.style("=== Summary ===", bold=True))
        click.echo(f"Terms: {len(index)}")
        for namespace in NAMESPACES:
            click.echo(f"  {namespace}: {counts.get(namespace, 0)}")
        click.echo(
            f"Shallow terms (<= {config.ontology.shallow_depth} edges from root): {len(shallow)}"
        )

    except Exception as e:
        click.echo(click.style(f"Ontology command failed: {e}", fg='red'), err=True)
        logger.exception("Ontology command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
