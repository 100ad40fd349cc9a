"""
Feature SNP (fSNP) selection and quality filters.

Selection failures that leave a gene without any fSNP are fatal. Filters
that only remove the allele-specific information return ``Degraded`` so the
caller can fall back to the total-count model.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

import pandas as pd
import polars as pl
from scipy.stats import fisher_exact

from ..errors import NoFeatureSnpsError
from ..io.panel import panel_dosages
from ..io.tables import read_fsnp_list
from ..io.variant_source import Genotype, GenotypeASE
from ..result import Degraded, Outcome, Success
from .ase import column_snp_ids, zero_fsnps

logger = logging.getLogger(__name__)

FISHER_COLUMNS = ["gene_id", "fsnp", "odds_ratio", "pvalue"]


def select_gene_fsnps(path: Union[str, Path], gene: str) -> pl.DataFrame:
    """Exonic SNPs listed for ``gene``.

    Raises:
        NoFeatureSnpsError: If the gene has no entry in the file
    """
    fsnps = read_fsnp_list(path, gene)
    if fsnps.height == 0:
        raise NoFeatureSnpsError(f"No entry for gene {gene} in {path}")

    logger.info(f"{gene}: {fsnps.height} fSNPs listed")
    return fsnps


def exclude_fsnp_ids(fsnps: pl.DataFrame, ex_ids: Iterable[str]) -> pl.DataFrame:
    """Drop fSNPs by id.

    Raises:
        NoFeatureSnpsError: If nothing is left
    """
    ex_ids = list(ex_ids)
    fsnps = fsnps.filter(~pl.col("id").is_in(ex_ids))
    if fsnps.height == 0:
        raise NoFeatureSnpsError(f"No valid fSNPs after excluding {', '.join(ex_ids)}")
    return fsnps


def fisher_heterozygosity_test(
    genotypes: GenotypeASE,
    panel_haplotypes: pd.DataFrame,
    gene_id: str,
) -> pd.DataFrame:
    """Compare heterozygote frequency between samples and the reference panel.

    For each fSNP present in both inputs a Fisher exact test is run on the
    2x2 table of (heterozygous, homozygous) counts in the samples and in the
    panel individuals. Missing sample genotypes are not counted.

    Args:
        genotypes: Sample genotypes of the fSNPs
        panel_haplotypes: Panel haplotypes of the fSNPs, index = SNP id
        gene_id: Gene the fSNPs belong to

    Returns:
        DataFrame with columns gene_id, fsnp, odds_ratio, pvalue
    """
    codes = genotypes.genotype_codes()
    shared = [snp_id for snp_id in codes.index if snp_id in panel_haplotypes.index]

    rows = []
    for snp_id in shared:
        sample = codes.loc[snp_id].to_numpy()
        sample = sample[sample != Genotype.MISSING.value]
        panel = panel_dosages(panel_haplotypes.loc[snp_id].to_numpy())[0]

        het_s = int((sample == Genotype.HET.value).sum())
        het_p = int((panel == Genotype.HET.value).sum())
        table = [[het_s, len(sample) - het_s], [het_p, len(panel) - het_p]]

        odds_ratio, pvalue = fisher_exact(table)
        rows.append((gene_id, snp_id, float(odds_ratio), float(pvalue)))

    return pd.DataFrame(rows, columns=FISHER_COLUMNS)


def fisher_filter(fisher: pd.DataFrame, cutoff: float) -> Outcome[pd.DataFrame]:
    """fSNPs whose heterozygosity is compatible with the panel."""
    kept = fisher.loc[fisher["pvalue"] > cutoff]
    if kept.empty:
        return Degraded("None of the fSNPs are above Fisher cut-off for p-value")
    return Success(kept.reset_index(drop=True))


def restrict_to_ai_estimates(
    fsnp_ids: Iterable[str],
    ai: pd.DataFrame,
) -> Outcome[List[str]]:
    """fSNPs that have a reference bias estimate."""
    estimated = set(ai["id"])
    kept = [snp_id for snp_id in fsnp_ids if snp_id in estimated]
    if not kept:
        return Degraded("No fSNPs with allelic imbalance estimates")
    return Success(kept)


def restrict_to_unique_fsnps(
    c_ase: pd.DataFrame,
    unique_path: Union[str, Path],
    gene: str,
    ai_ids: Optional[Iterable[str]] = None,
) -> Outcome[pd.DataFrame]:
    """Keep ASE counts only for fSNPs unique to the gene.

    Counts of the other fSNPs are zeroed; their columns stay so they can
    still be used for phasing. ``ai_ids`` further restricts the unique list
    to fSNPs with bias estimates.
    """
    no_unique = Degraded(f"No unique fSNPs for gene {gene}")

    unique = read_fsnp_list(unique_path, gene)
    unique_ids = set(unique["id"].to_list())
    if ai_ids is not None:
        unique_ids &= set(ai_ids)
    if not unique_ids:
        return no_unique

    present = column_snp_ids(c_ase.columns)
    keep = [snp_id for snp_id in present if snp_id in unique_ids]
    if not keep:
        return no_unique

    logger.debug(f"{gene}: {len(keep)} of {len(present)} fSNPs unique to the gene")
    return Success(zero_fsnps(c_ase, [snp_id for snp_id in present if snp_id not in keep]))

