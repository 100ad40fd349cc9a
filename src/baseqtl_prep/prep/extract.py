"""
Gene-scoped extraction of total counts and covariates.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from ..config import PrepConfig
from ..errors import GeneNotFoundError, InvalidConfigError
from ..io.tables import read_additional_covariates, read_covariates, read_gene_counts

logger = logging.getLogger(__name__)

DEFAULT_PROBS = [0.005, 0.025, 0.25, 0.5, 0.75, 0.975, 0.995]


@dataclass
class GeneInputs:
    """Per-gene inputs shared by every rSNP.

    Attributes:
        counts: Total reads of the gene, indexed by sample
        covariates: Scaled covariates (rows = samples), None without covariates
        probs: Posterior quantiles to report
        population: Panel population for allele frequencies
    """

    counts: pd.Series
    covariates: Optional[pd.DataFrame]
    probs: List[float]
    population: str

    @property
    def samples(self) -> List[str]:
        return self.counts.index.tolist()


def posterior_quantiles(prob: Optional[float] = None) -> List[float]:
    """Quantiles of the posterior to report for a credible mass ``prob``."""
    if prob is None:
        return list(DEFAULT_PROBS)
    return sorted({(1 - prob) / 2, 0.25, 0.5, 0.75, (1 + prob) / 2})


def scale_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Centre each column and scale it to unit sample variance.

    Raises:
        InvalidConfigError: If a column is constant
    """
    df = df.astype(float)
    sd = df.std(ddof=1)
    constant = sd.index[~(sd > 0)].tolist()
    if constant:
        raise InvalidConfigError(
            f"Covariates with zero variance cannot be scaled: {', '.join(map(str, constant))}"
        )
    return (df - df.mean()) / sd


def _align_rows(df: pd.DataFrame, samples: List[str], source: str) -> pd.DataFrame:
    if len(df) != len(samples):
        raise InvalidConfigError(
            f"Number of individuals in {source}: {len(df)}, "
            f"number of individuals in gene counts: {len(samples)}, please adjust"
        )
    if set(df.index) == set(samples):
        return df.loc[samples]
    # Rows are taken in count order when they are not keyed by sample
    df = df.copy()
    df.index = pd.Index(samples)
    return df


def gene_covariates(path: str, gene: str, samples: List[str]) -> pd.DataFrame:
    """Scaled covariates for a gene, rows aligned with ``samples``."""
    cov = read_covariates(path)

    if gene in cov.index:
        cov = cov.loc[[gene]].T
    elif cov.shape[1] >= len(samples):
        raise InvalidConfigError(
            "Either the number of covariates is >= number of samples "
            "or the gene is not in covariates"
        )

    return scale_columns(_align_rows(cov, samples, "covariates matrix"))


def additional_covariates(path: str, samples: List[str]) -> pd.DataFrame:
    """Scaled gene independent covariates, rows aligned with ``samples``."""
    cov = read_additional_covariates(path)
    if len(cov) != len(samples):
        raise InvalidConfigError(
            f"Number of individuals in additional covariates: {len(cov)}, "
            f"number of individuals in gene counts: {len(samples)}, please adjust"
        )

    unknown = [s for s in samples if s not in cov.index]
    if unknown:
        raise InvalidConfigError(
            f"Samples missing from additional covariates: {', '.join(unknown)}"
        )
    return scale_columns(cov.loc[samples])


def extract_gene_inputs(config: PrepConfig) -> GeneInputs:
    """Counts, covariates and reported quantiles for ``config.gene``.

    Raises:
        GeneNotFoundError: If the gene is not in the counts file
        InvalidConfigError: If covariates do not match the samples
    """
    counts = read_gene_counts(config.counts_file, config.gene)
    if counts is None:
        raise GeneNotFoundError(f"Gene id {config.gene} is not found in count matrix")
    samples = counts.index.tolist()

    covariates = None
    if config.covariates is not None:
        covariates = gene_covariates(config.covariates, config.gene, samples)

    if config.additional_cov is not None:
        extra = additional_covariates(config.additional_cov, samples)
        covariates = extra if covariates is None else pd.concat([covariates, extra], axis=1)

    logger.info(
        f"{config.gene}: {len(samples)} samples, "
        f"{0 if covariates is None else covariates.shape[1]} covariates"
    )

    return GeneInputs(
        counts=counts,
        covariates=covariates,
        probs=posterior_quantiles(config.prob),
        population=config.population,
    )
