"""
Preparation stages for one gene.

Option checks, gene-scoped extraction, fSNP filters, reference panel window,
LD tagging and the per-rSNP sampler input builder.
"""

from .run_prep import GenePrep, prepare_gene, write_diagnostics
from .stan_input import RSnpInput, build_rsnp_input, build_stan_inputs, info_score
from .tagging import TagResult, tag_snps
from .validate import describe_inputs, validate_config

__all__ = [
    "GenePrep",
    "prepare_gene",
    "write_diagnostics",
    "RSnpInput",
    "build_rsnp_input",
    "build_stan_inputs",
    "info_score",
    "TagResult",
    "tag_snps",
    "describe_inputs",
    "validate_config",
]
