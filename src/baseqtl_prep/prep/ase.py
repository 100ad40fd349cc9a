"""
Allele-specific read count aggregation and depth filters.

The ASE count table has one row per sample and two columns per fSNP:
``<id>.n`` with reads matching the alternate allele and ``<id>.m`` with all
reads at the SNP. Only heterozygous calls carry counts; other cells are 0.
Filters zero cells instead of dropping columns so that every fSNP stays
available for phasing.
"""

import logging
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from ..io.variant_source import GenotypeASE
from ..result import Degraded, Outcome, Success

logger = logging.getLogger(__name__)

ALT_SUFFIX = ".n"
TOTAL_SUFFIX = ".m"


def ase_columns(snp_id: str) -> Tuple[str, str]:
    return f"{snp_id}{ALT_SUFFIX}", f"{snp_id}{TOTAL_SUFFIX}"


def column_snp_ids(columns: Iterable[str]) -> List[str]:
    """SNP ids of ASE count columns, in order and without repeats."""
    ids = []
    for col in columns:
        snp_id = col[: -len(ALT_SUFFIX)] if col.endswith((ALT_SUFFIX, TOTAL_SUFFIX)) else col
        if snp_id not in ids:
            ids.append(snp_id)
    return ids


def total_ase_counts(genotypes: GenotypeASE) -> pd.DataFrame:
    """ASE count table for the heterozygous calls in ``genotypes``."""
    het = genotypes.het_mask()
    alt = genotypes.alt_counts.where(het, 0)
    total = (genotypes.ref_counts + genotypes.alt_counts).where(het, 0)

    data = {}
    for snp_id in genotypes.ids:
        n_col, m_col = ase_columns(snp_id)
        data[n_col] = alt.loc[snp_id]
        data[m_col] = total.loc[snp_id]

    c_ase = pd.DataFrame(data, index=pd.Index(genotypes.samples), dtype="int64")
    c_ase.index.name = "sample"
    return c_ase


def ase_totals(c_ase: pd.DataFrame) -> pd.Series:
    """Total ASE reads per sample."""
    return c_ase[[c for c in c_ase.columns if c.endswith(TOTAL_SUFFIX)]].sum(axis=1)


def zero_fsnps(c_ase: pd.DataFrame, snp_ids: Iterable[str]) -> pd.DataFrame:
    """Copy of ``c_ase`` with the counts of ``snp_ids`` set to 0."""
    c_ase = c_ase.copy()
    cols = [c for snp_id in snp_ids for c in ase_columns(snp_id) if c in c_ase.columns]
    if cols:
        c_ase[cols] = 0
    return c_ase


def filter_ase_depth(
    c_ase: pd.DataFrame,
    min_ase: float,
    min_ase_snp: Optional[float] = None,
    min_n: Optional[float] = None,
) -> Outcome[pd.DataFrame]:
    """Keep individuals with enough allele-specific reads.

    Per-fSNP cells with fewer than ``min_ase_snp`` reads are zeroed, then
    samples whose total ASE reads reach ``min_ase`` are kept.

    Returns:
        Success with the filtered table, or Degraded when no sample or fewer
        than ``min_n`` samples are kept
    """
    min_ase_snp = min_ase_snp or 0
    min_n = min_n or 0

    c_ase = c_ase.copy()
    for snp_id in column_snp_ids(c_ase.columns):
        n_col, m_col = ase_columns(snp_id)
        low = c_ase[m_col] < min_ase_snp
        c_ase.loc[low, [n_col, m_col]] = 0

    keep = ase_totals(c_ase) >= min_ase
    logger.debug(f"{int(keep.sum())} of {len(c_ase)} samples with at least {min_ase} ASE reads")

    if keep.sum() < min_n or not keep.any():
        return Degraded(
            f"No fSNPs usable for ASE: fewer than {min_n} individuals "
            f"with at least {min_ase} ASE reads"
        )
    return Success(c_ase.loc[keep])
