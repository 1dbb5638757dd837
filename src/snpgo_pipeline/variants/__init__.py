"""Variant statistical results from independent test procedures."""

from snpgo_pipeline.variants.models import (
    VARIANT_KEY,
    VARIANT_TABLE_NAME,
    fdr_columns,
    locus_expr,
    locus_key,
    pvalue_columns,
)
from snpgo_pipeline.variants.load import (
    flag_significant,
    load_variants,
    merge_procedure_results,
    read_procedure_results,
)

__all__ = [
    "VARIANT_KEY",
    "VARIANT_TABLE_NAME",
    "fdr_columns",
    "locus_expr",
    "locus_key",
    "pvalue_columns",
    "flag_significant",
    "load_variants",
    "merge_procedure_results",
    "read_procedure_results",
]
