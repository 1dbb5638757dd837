"""Command-line interface for snpgo-pipeline."""
