"""Enrichment and annotation commands (query mode over the cached closure)."""

import hashlib
import logging
import sys
from pathlib import Path

import click

from snpgo_pipeline.cli.ontology_cmd import load_index
from snpgo_pipeline.closure import load_closure
from snpgo_pipeline.config.loader import load_config
from snpgo_pipeline.enrichment import enrich_windows, save_enrichment, select_enriched
from snpgo_pipeline.ontology import shallow_terms, single_gene_terms
from snpgo_pipeline.output import (
    build_annotation_export,
    write_annotation_export,
    write_enrichment_tables,
)
from snpgo_pipeline.persistence import PipelineStore, ProvenanceTracker
from snpgo_pipeline.proximity import EXON_TABLE_NAME, GENE_TABLE_NAME, read_gene_models
from snpgo_pipeline.variants import VARIANT_TABLE_NAME, load_variants

logger = logging.getLogger(__name__)


def _file_digest(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for block in iter(lambda: f.read(1 << 20), b''):
            digest.update(block)
    return digest.hexdigest()


def _load_inputs(config, store: PipelineStore, provenance: ProvenanceTracker, force: bool = False):
    """Gene models and merged variant statistics.

    Gene models are checkpointed with the sha256 of their source file and
    re-read when the file changes or ``force`` is set.
    """
    source = Path(config.inputs.gene_models)
    description = f"Gene intervals from {source} sha256 {_file_digest(source)}"
    cached = (
        not force
        and store.has_checkpoint(EXON_TABLE_NAME)
        and store.checkpoint_description(GENE_TABLE_NAME) == description
    )
    if cached:
        genes = store.load_dataframe(GENE_TABLE_NAME)
        exons = store.load_dataframe(EXON_TABLE_NAME)
    else:
        if store.has_checkpoint(GENE_TABLE_NAME):
            click.echo("Gene models changed or --force given. Reloading.")
        genes, exons = read_gene_models(source)
        store.save_dataframe(genes, GENE_TABLE_NAME, description, replace=True)
        store.save_dataframe(exons, EXON_TABLE_NAME, "Exon intervals", replace=True)
        provenance.record_step('load_gene_models', {
            'source': str(source),
            'gene_count': genes.height,
            'exon_count': exons.height,
        })

    variants = load_variants(config)
    store.save_dataframe(
        variants, VARIANT_TABLE_NAME, "Merged variant statistics with significance", replace=True
    )
    provenance.record_step('load_variants', {
        'procedures': config.fdr_thresholds(),
        'variant_count': variants.height,
        'significant_count': int(variants['significant'].sum()),
    })
    return genes, exons, variants


@click.command('enrich')
@click.option(
    '--force',
    is_flag=True,
    help='Re-read gene models even if an up-to-date checkpoint exists'
)
@click.option(
    '--output-dir',
    type=click.Path(path_type=Path),
    default=None,
    help='Output directory (default: {data_dir}/enrichment)'
)
@click.option(
    '--top',
    type=int,
    default=5,
    help='Number of enriched terms to print per window'
)
@click.pass_context
def enrich(ctx, force, output_dir, top):
    """Test GO term enrichment of genes near significant variants.

    For each configured window width, genes near significant variants are
    compared with genes near the remaining variants using the cached
    gene-to-GO closure. Run 'closure build' first.

    Examples:

        snpgo-pipeline enrich

        snpgo-pipeline enrich --output-dir results/
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== GO Enrichment ===", bold=True))
    click.echo()

    store = None
    try:
        config = load_config(config_path)
        store = PipelineStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)
        output_dir = output_dir or config.data_dir / "enrichment"

        gene_closure = load_closure(store, config.closure_path)
        click.echo(f"Closure: {gene_closure.gene_count} annotated genes")

        index = load_index(config, store)
        shallow = shallow_terms(index, config.ontology.shallow_depth)
        single_gene = single_gene_terms(gene_closure.frame, config.ontology.min_genes_per_term)
        click.echo(
            f"Excluding {len(shallow)} shallow terms and "
            f"{len(single_gene)} terms below {config.ontology.min_genes_per_term} genes"
        )

        genes, _, variants = _load_inputs(config, store, provenance, force)
        click.echo(
            f"Variants: {variants.height} "
            f"({int(variants['significant'].sum())} significant)"
        )
        click.echo()

        results = enrich_windows(
            gene_closure,
            variants,
            genes,
            config.windows,
            shallow,
            single_gene,
        )
        save_enrichment(results, config.windows, store, provenance)
        paths = write_enrichment_tables(results, output_dir, config.windows)
        provenance.save_sidecar(output_dir / "enrichment")
        provenance.save_to_store(store)

        for window in config.windows:
            df = results[window.width]
            enriched = select_enriched(df, window.max_fdr, window.min_observed)
            click.echo(click.style(f"Window {window.width} bp", bold=True))
            click.echo(f"  Tested terms: {df.height}")
            click.echo(
                f"  Enriched (FDR < {window.max_fdr}, observed >= {window.min_observed}): "
                f"{enriched.height}"
            )
            for row in enriched.head(top).iter_rows(named=True):
                click.echo(
                    f"    {row['go_id']} [{row['namespace']}] "
                    f"observed={row['observed']} p={row['pvalue']:.3g} fdr={row['fdr']:.3g}"
                )
            click.echo(f"  Wrote {paths[window.width]['tsv']}")

        click.echo()
        click.echo(click.style("Enrichment complete", fg='green', bold=True))

    except Exception as e:
        click.echo(click.style(f"Enrichment failed: {e}", fg='red'), err=True)
        logger.exception("Enrichment failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()


@click.command('annotate')
@click.option(
    '--force',
    is_flag=True,
    help='Re-read gene models even if an up-to-date checkpoint exists'
)
@click.option(
    '--output-dir',
    type=click.Path(path_type=Path),
    default=None,
    help='Output directory (default: {data_dir}/annotation)'
)
@click.pass_context
def annotate(ctx, force, output_dir):
    """Export every gene within the widest window of each significant variant.

    Examples:

        snpgo-pipeline annotate --output-dir results/
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== Significant Variant Annotation ===", bold=True))
    click.echo()

    store = None
    try:
        config = load_config(config_path)
        store = PipelineStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)
        output_dir = output_dir or config.data_dir / "annotation"

        genes, exons, variants = _load_inputs(config, store, provenance, force)
        width = config.widest_window.width
        df = build_annotation_export(
            variants,
            genes,
            exons,
            width,
            [p.name for p in config.inputs.procedures],
        )
        paths = write_annotation_export(df, output_dir)
        provenance.record_step('annotation_export', {
            'width': width,
            'row_count': df.height,
        })
        provenance.save_to_store(store)

        click.echo(f"Window: {width} bp")
        click.echo(f"Significant variants annotated: {df['snp_id'].n_unique()}")
        click.echo(f"Variant-gene rows: {df.height}")
        click.echo(click.style(f"Wrote {paths['tsv']}", fg='green'))

    except Exception as e:
        click.echo(click.style(f"Annotation failed: {e}", fg='red'), err=True)
        logger.exception("Annotation failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
