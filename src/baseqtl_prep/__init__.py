"""
baseqtl-prep: inputs for BaseQTL without rSNP genotypes.

For one gene this package:
- checks options and input files
- extracts total counts and scaled covariates
- filters feature SNPs (fSNPs) and their allele-specific counts
- reads the reference panel around the gene and LD tags candidate rSNPs
- infers rSNP genotype probabilities from the panel and builds sampler data

Genes without usable allele-specific information fall back to the
total-count model.
"""

__version__ = "0.1.0"

from .config import PrepConfig, load_config
from .errors import (
    GeneNotFoundError,
    InvalidConfigError,
    MissingInputFilesError,
    NoFeatureSnpsError,
    NoPanelSnpsError,
    PrepError,
    TaggingError,
    ZeroVarianceError,
)
from .ledger import ExclusionLedger
from .prep import GenePrep, prepare_gene
from .result import Degraded, Outcome, Success

__all__ = [
    "PrepConfig",
    "load_config",
    "PrepError",
    "InvalidConfigError",
    "MissingInputFilesError",
    "GeneNotFoundError",
    "NoFeatureSnpsError",
    "NoPanelSnpsError",
    "ZeroVarianceError",
    "TaggingError",
    "ExclusionLedger",
    "GenePrep",
    "prepare_gene",
    "Degraded",
    "Outcome",
    "Success",
]
