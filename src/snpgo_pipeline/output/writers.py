"""TSV + Parquet writers with YAML provenance sidecars."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import polars as pl
import yaml

from snpgo_pipeline.config.schema import WindowConfig
from snpgo_pipeline.enrichment.models import enrichment_table_name
from snpgo_pipeline.enrichment.tester import select_enriched


def _write_dual(df: pl.DataFrame, output_dir: Path, filename_base: str) -> tuple[Path, Path]:
    tsv_path = output_dir / f"{filename_base}.tsv"
    parquet_path = output_dir / f"{filename_base}.parquet"
    df.write_csv(tsv_path, separator="\t", include_header=True)
    df.write_parquet(parquet_path, compression="snappy")
    return tsv_path, parquet_path


def _write_provenance(path: Path, provenance: dict) -> None:
    with open(path, "w") as f:
        yaml.dump(provenance, f, default_flow_style=False, sort_keys=False)


def write_enrichment_tables(
    results: dict[int, pl.DataFrame],
    output_dir: Path,
    windows: Optional[list[WindowConfig]] = None,
) -> dict[int, dict]:
    """
    Write one enrichment table per window width.

    Files are named after the window (``enrichment_w20001.tsv`` / ``.parquet``)
    and sorted ascending by raw p-value. A single
    ``enrichment.provenance.yaml`` lists the files with tested and enriched
    term counts per window.

    Args:
        results: {width: results frame} from enrich_windows
        output_dir: Directory for output files (created if needed)
        windows: Window thresholds used for the enriched counts

    Returns:
        {width: {"tsv": Path, "parquet": Path}} plus key "provenance"
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    thresholds = {w.width: w for w in windows or []}

    paths: dict = {}
    stats = {}
    for width in sorted(results):
        df = results[width].sort(["pvalue", "go_id"])
        tsv_path, parquet_path = _write_dual(df, output_dir, enrichment_table_name(width))
        paths[width] = {"tsv": tsv_path, "parquet": parquet_path}

        window_stats = {"tested_terms": df.height}
        window = thresholds.get(width)
        if window is not None:
            window_stats.update({
                "max_fdr": window.max_fdr,
                "min_observed": window.min_observed,
                "enriched_terms": select_enriched(df, window.max_fdr, window.min_observed).height,
            })
        stats[f"w{width}"] = window_stats

    provenance_path = output_dir / "enrichment.provenance.yaml"
    _write_provenance(provenance_path, {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "output_files": [p.name for entry in paths.values() for p in entry.values()],
        "windows": stats,
    })
    paths["provenance"] = provenance_path
    return paths


def write_annotation_export(
    df: pl.DataFrame,
    output_dir: Path,
    filename_base: str = "significant_variant_genes",
) -> dict:
    """
    Write the per-variant annotation export as TSV and Parquet.

    Returns:
        {"tsv": Path, "parquet": Path, "provenance": Path}
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    tsv_path, parquet_path = _write_dual(df, output_dir, filename_base)

    provenance_path = output_dir / f"{filename_base}.provenance.yaml"
    _write_provenance(provenance_path, {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "output_files": [tsv_path.name, parquet_path.name],
        "statistics": {
            "row_count": df.height,
            "variant_count": df["snp_id"].n_unique() if df.height else 0,
            "locus_count": df["locus"].n_unique() if df.height else 0,
            "gene_count": df["gene_id"].n_unique() if df.height else 0,
        },
        "column_count": len(df.columns),
        "column_names": df.columns,
    })

    return {
        "tsv": tsv_path,
        "parquet": parquet_path,
        "provenance": provenance_path,
    }
