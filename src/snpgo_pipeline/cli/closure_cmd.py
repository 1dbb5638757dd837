"""Closure commands: build the gene-to-GO closure once, then inspect it."""

import logging
import sys

import click

from snpgo_pipeline.closure import (
    CLOSURE_TABLE_NAME,
    UNRESOLVED_TABLE_NAME,
    build_gene_go_closure,
    closure_summary,
    fetch_go_associations,
    find_unresolved_terms,
    load_closure,
    load_to_duckdb,
    read_go_associations,
    write_closure_tsv,
)
from snpgo_pipeline.cli.ontology_cmd import load_index
from snpgo_pipeline.config.loader import load_config
from snpgo_pipeline.persistence import PipelineStore, ProvenanceTracker
from snpgo_pipeline.proximity import read_gene_models

logger = logging.getLogger(__name__)


def _echo_summary(summary: dict, unresolved_count: int) -> None:
    click.echo(click.style("=== Summary ===", bold=True))
    click.echo(f"Genes: {summary['gene_count']}")
    click.echo(f"Distinct terms: {summary['term_count']}")
    click.echo(f"Gene-term rows: {summary['row_count']}")
    for namespace, count in summary["terms_per_namespace"].items():
        click.echo(f"  {namespace}: {count} terms")
    if unresolved_count:
        click.echo(click.style(
            f"Unresolved associations dropped: {unresolved_count} "
            f"(see '{UNRESOLVED_TABLE_NAME}' table)",
            fg='yellow'
        ))


@click.group('closure')
def closure():
    """Build or inspect the gene-to-GO ancestor closure."""
    pass


@closure.command('build')
@click.option(
    '--force',
    is_flag=True,
    help='Rebuild the closure even if a checkpoint exists'
)
@click.option(
    '--fetch/--no-fetch',
    default=True,
    help='Fetch associations from mygene.info when no associations file is configured'
)
@click.option(
    '--workers',
    type=int,
    default=None,
    help='Override the number of worker processes'
)
@click.pass_context
def build(ctx, force, fetch, workers):
    """Expand raw gene-to-GO associations to all ancestor terms and cache them.

    Reads the associations file from the config (or fetches them from
    mygene.info for every gene in the gene models), resolves each term
    against the loaded ontology, and writes the closure to DuckDB and to a
    TSV cache that later commands read without recomputation.

    Examples:

        snpgo-pipeline closure build

        snpgo-pipeline closure build --force --workers 4
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== Gene-to-GO Closure ===", bold=True))
    click.echo()

    store = None
    try:
        config = load_config(config_path)
        store = PipelineStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)

        if store.has_checkpoint(CLOSURE_TABLE_NAME) and not force:
            click.echo(click.style(
                "Closure checkpoint exists. Skipping build (use --force to rebuild).",
                fg='yellow'
            ))
            df = store.load_dataframe(CLOSURE_TABLE_NAME)
            unresolved = store.load_dataframe(UNRESOLVED_TABLE_NAME)
            click.echo()
            _echo_summary(closure_summary(df), unresolved.height if unresolved is not None else 0)
            return

        click.echo("Loading ontology...")
        index = load_index(config, store)
        click.echo(f"  {len(index)} terms indexed")

        source = config.inputs.go_associations
        if source is not None and source.exists():
            click.echo(f"Reading associations from {source}...")
            raw = read_go_associations(source)
        elif fetch:
            genes, _ = read_gene_models(config.inputs.gene_models)
            gene_ids = genes["gene_id"].to_list()
            click.echo(f"Fetching GO associations for {len(gene_ids)} genes from mygene.info...")
            raw = fetch_go_associations(
                gene_ids,
                batch_size=config.api.batch_size,
                species=config.api.species,
            )
            raw_path = source or config.cache_dir / "go_associations.tsv"
            raw_path.parent.mkdir(parents=True, exist_ok=True)
            raw.write_csv(raw_path, separator="\t")
            click.echo(f"  Raw associations cached at {raw_path}")
        else:
            raise click.UsageError(
                "No associations file configured or found; rerun with --fetch"
            )
        click.echo(f"  {raw.height} raw associations for {raw['gene_id'].n_unique()} genes")

        max_workers = workers if workers is not None else config.compute.effective_workers()
        click.echo(f"Building closure ({max_workers} workers)...")
        df = build_gene_go_closure(
            raw,
            index,
            max_workers=max_workers,
            chunk_size=config.compute.chunk_size,
        )
        unresolved = find_unresolved_terms(raw, index)

        tsv_path = write_closure_tsv(df, config.closure_path)
        load_to_duckdb(
            df,
            unresolved,
            store,
            provenance,
            description=f"Gene to GO closure, GO {config.versions.go_release}",
        )
        provenance.save_sidecar(tsv_path)
        provenance.save_to_store(store)

        click.echo(click.style(f"  Saved to '{CLOSURE_TABLE_NAME}' table", fg='green'))
        click.echo(click.style(f"  Cached at {tsv_path}", fg='green'))
        click.echo()
        _echo_summary(closure_summary(df), unresolved.height)

    except click.UsageError:
        raise
    except Exception as e:
        click.echo(click.style(f"Closure build failed: {e}", fg='red'), err=True)
        logger.exception("Closure build failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()


@closure.command('show')
@click.option(
    '--gene',
    'gene_ids',
    multiple=True,
    help='Print the closure terms of a gene (repeatable)'
)
@click.pass_context
def show(ctx, gene_ids):
    """Summarise the cached closure, or list the terms of specific genes."""
    config_path = ctx.obj['config_path']

    store = None
    try:
        config = load_config(config_path)
        store = PipelineStore.from_config(config)

        gene_closure = load_closure(store, config.closure_path)

        if gene_ids:
            for gene_id in gene_ids:
                terms = sorted(gene_closure.terms_for(gene_id))
                click.echo(click.style(f"{gene_id}: {len(terms)} terms", bold=True))
                for go_id in terms:
                    click.echo(f"  {go_id}")
            return

        unresolved = store.load_dataframe(UNRESOLVED_TABLE_NAME)
        _echo_summary(
            closure_summary(gene_closure.frame),
            unresolved.height if unresolved is not None else 0,
        )

    except Exception as e:
        click.echo(click.style(f"Error: {e}", fg='red'), err=True)
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
