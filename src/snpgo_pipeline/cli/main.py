"""Main CLI entry point for snpgo-pipeline.

Provides the command group with global options and the pipeline subcommands.
"""

import logging
from pathlib import Path

import click

from snpgo_pipeline import __version__
from snpgo_pipeline.config.loader import load_config
from snpgo_pipeline.cli.ontology_cmd import ontology
from snpgo_pipeline.cli.closure_cmd import closure
from snpgo_pipeline.cli.enrich_cmd import annotate, enrich


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@click.group()
@click.option(
    '--config',
    type=click.Path(exists=True, path_type=Path),
    default='config/default.yaml',
    help='Path to pipeline configuration YAML file'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable verbose logging (DEBUG level)'
)
@click.pass_context
def cli(ctx, config, verbose):
    """snpgo-pipeline: GO term enrichment of genes near significant variants.

    Builds a reusable gene-to-GO ancestor closure, partitions genes by their
    proximity to significant variants, and tests each GO term with Fisher's
    exact test across several window widths.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Verbose logging enabled")


@cli.command()
@click.pass_context
def info(ctx):
    """Display pipeline information and configuration summary."""
    config_path = ctx.obj['config_path']

    click.echo(f"snpgo-pipeline v{__version__}")
    click.echo(f"Config: {config_path}")
    click.echo()

    try:
        config = load_config(config_path)

        click.echo(f"Config Hash: {config.config_hash()[:16]}...")
        click.echo()

        click.echo(click.style("Data Source Versions:", bold=True))
        click.echo(f"  GO Release:        {config.versions.go_release}")
        click.echo(f"  Annotation Source: {config.versions.annotation_source}")
        click.echo(f"  Genome Build:      {config.versions.genome_build}")
        click.echo()

        click.echo(click.style("Paths:", bold=True))
        click.echo(f"  Data Directory: {config.data_dir}")
        click.echo(f"  Cache Directory: {config.cache_dir}")
        click.echo(f"  DuckDB Path: {config.duckdb_path}")
        click.echo(f"  Closure Cache: {config.closure_path}")
        click.echo()

        click.echo(click.style("Procedures:", bold=True))
        for procedure in config.inputs.procedures:
            click.echo(f"  {procedure.name}: FDR < {procedure.fdr_threshold} ({procedure.path})")
        click.echo()

        click.echo(click.style("Windows:", bold=True))
        for window in config.windows:
            click.echo(
                f"  {window.width} bp: FDR < {window.max_fdr}, "
                f"observed >= {window.min_observed}"
            )
        click.echo()

        click.echo(click.style("Term Filters:", bold=True))
        click.echo(f"  Shallow Depth: {config.ontology.shallow_depth}")
        click.echo(f"  Min Genes per Term: {config.ontology.min_genes_per_term}")
        click.echo(f"  Relationships: {', '.join(config.ontology.relationships)}")
        click.echo(f"  Workers: {config.compute.effective_workers()}")

    except Exception as e:
        click.echo(click.style(f"Error loading config: {e}", fg='red'), err=True)
        ctx.exit(1)


cli.add_command(ontology)
cli.add_command(closure)
cli.add_command(enrich)
cli.add_command(annotate)


if __name__ == '__main__':
    cli()
