"""
Reference panel access (IMPUTE2 legend/hap format).

The legend has one row per SNP (``id position a0 a1`` plus optional ``TYPE``
and per-population alternate allele frequency columns); line i of the
haplotype file holds the 0/1 alleles of that SNP for every panel haplotype,
two consecutive columns per panel individual.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .variant_source import make_ids

logger = logging.getLogger(__name__)

SNP_TYPE = "Biallelic_SNP"


def read_legend(legend_path: Union[str, Path]) -> pd.DataFrame:
    """Read a legend file, compressed or not."""
    legend = pd.read_csv(legend_path, sep=r"\s+", dtype={"id": str, "a0": str, "a1": str})
    missing = {"position", "a0", "a1"} - set(legend.columns)
    if missing:
        raise ValueError(f"Legend {legend_path} lacks columns: {', '.join(sorted(missing))}")
    return legend.reset_index(drop=True)


def read_haplotype_rows(haplotype_path: Union[str, Path], rows: Sequence[int]) -> pd.DataFrame:
    """Read the given 0-based lines of a haplotype file as an int8 matrix."""
    wanted = set(int(r) for r in rows)
    if not wanted:
        return pd.DataFrame(dtype=np.int8)

    haps = pd.read_csv(
        haplotype_path,
        sep=r"\s+",
        header=None,
        skiprows=lambda i: i not in wanted,
        dtype=np.int8,
    )
    if len(haps) != len(wanted):
        raise ValueError(
            f"Haplotype file {haplotype_path} has {len(haps)} of {len(wanted)} requested rows"
        )
    haps.columns = range(haps.shape[1])
    return haps


def load_panel_window(
    legend_path: Union[str, Path],
    haplotype_path: Union[str, Path],
    window: Tuple[int, int],
    population: str = "ALL",
    maf: Optional[float] = None,
) -> pd.DataFrame:
    """Haplotypes of panel SNPs in a window that pass the MAF cut-off.

    Args:
        legend_path: Legend file
        haplotype_path: Haplotype file aligned with the legend
        window: (start, end), 1-based inclusive
        population: Legend column with the alternate allele frequency; when
            the legend has no such column the frequency is computed from the
            haplotypes
        maf: Minimum minor allele frequency, no filtering when None

    Returns:
        DataFrame indexed by ``pos:ref:alt`` with one int8 column per haplotype
    """
    start, end = window
    legend = read_legend(legend_path)

    in_window = legend["position"].between(start, end)
    if "TYPE" in legend.columns:
        in_window &= legend["TYPE"] == SNP_TYPE

    rows = np.flatnonzero(in_window.to_numpy())
    if not len(rows):
        return pd.DataFrame(dtype=np.int8)

    haps = read_haplotype_rows(haplotype_path, rows)
    sub = legend.iloc[rows]
    haps.index = pd.Index(make_ids(sub["position"], sub["a0"], sub["a1"]), name="id")

    if population in legend.columns:
        af = sub[population].to_numpy(dtype=float)
    else:
        af = haps.mean(axis=1).to_numpy()

    if maf is not None:
        haps = haps.loc[np.minimum(af, 1 - af) >= maf]

    haps = haps.loc[~haps.index.duplicated(keep="first")]

    logger.info(f"Extracted {len(haps)} panel SNPs in window {start}-{end}")
    return haps


def population_haplotype_columns(sample_file: Union[str, Path], population: str) -> List[int]:
    """Haplotype columns of panel individuals whose GROUP is ``population``.

    The sample description lists panel individuals in haplotype-file order
    with at least the columns ``ID`` and ``GROUP``.
    """
    samples = pd.read_csv(sample_file, sep=r"\s+", dtype=str)
    if "GROUP" not in samples.columns:
        raise ValueError(f"Sample file {sample_file} has no GROUP column")

    rows = np.flatnonzero((samples["GROUP"] == population).to_numpy())
    return sorted([2 * int(i) for i in rows] + [2 * int(i) + 1 for i in rows])


def panel_dosages(haplotypes: np.ndarray) -> np.ndarray:
    """Per-individual alternate allele dosage from paired haplotype columns."""
    haplotypes = np.atleast_2d(haplotypes)
    return haplotypes[:, 0::2] + haplotypes[:, 1::2]
