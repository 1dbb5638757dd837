"""snpgo-pipeline: GO term enrichment of genes near significant variants."""

__version__ = "0.1.0"
