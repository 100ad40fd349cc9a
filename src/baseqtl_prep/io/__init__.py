"""
I/O module for baseqtl-prep.

Readers for the VCF, the reference panel, gene coordinates and the
tab-separated per-gene inputs.
"""

from .variant_source import (
    Genotype,
    GenotypeASE,
    SnpKey,
    VariantTables,
)
from .gene_coords import GeneBounds, gene_coordinates
from .panel import load_panel_window, population_haplotype_columns
from .vcf_source import resolve_variants

__all__ = [
    "Genotype",
    "GenotypeASE",
    "SnpKey",
    "VariantTables",
    "GeneBounds",
    "gene_coordinates",
    "load_panel_window",
    "population_haplotype_columns",
    "resolve_variants",
]
