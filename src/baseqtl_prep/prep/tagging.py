"""
LD tagging of candidate regulatory SNPs.

Candidates are grouped by complete-linkage clustering on 1 - r2 computed
over reference panel haplotypes, so every pair within a group has
r2 >= threshold. One SNP per group (the tag) is carried forward.
"""

import logging
from dataclasses import dataclass, field
from typing import List

import numpy as np
import pandas as pd
import scipy.cluster.hierarchy as sch
from scipy.spatial.distance import squareform

from ..errors import TaggingError, ZeroVarianceError

logger = logging.getLogger(__name__)

ZERO_SD = "Snp with zero standard deviation"
LOOKUP_COLUMNS = ["Gene_id", "tag", "SNP"]

# Pairs with r2 within rounding of the threshold are kept together
R2_TOLERANCE = 1e-9


@dataclass
class TagResult:
    """Tag assignment for the candidates of one gene.

    Attributes:
        lookup: (Gene_id, tag, SNP) for every candidate that was tagged
        tags: Tag SNPs, in candidate order
        zero_variance: Candidates dropped for having no variation in the panel
    """

    lookup: pd.DataFrame
    tags: List[str]
    zero_variance: List[str] = field(default_factory=list)


def r_squared(x: np.ndarray) -> np.ndarray:
    """Pairwise squared correlation between the columns of ``x``."""
    x = np.asarray(x, dtype=float)
    centred = x - x.mean(axis=0)
    sd = np.sqrt((centred ** 2).sum(axis=0))
    with np.errstate(divide="ignore", invalid="ignore"):
        r = (centred.T @ centred) / np.outer(sd, sd)
    r2 = np.nan_to_num(r * r, nan=0.0, posinf=0.0, neginf=0.0)
    np.fill_diagonal(r2, 1.0)
    return np.clip(r2, 0.0, 1.0)


def tag_snps(haplotypes: pd.DataFrame, threshold: float, gene: str = "") -> TagResult:
    """Group candidate SNPs by LD and pick one tag per group.

    Args:
        haplotypes: Panel haplotypes, rows = haplotypes, columns = candidate SNPs
        threshold: Minimum r2 between members of a group
        gene: Gene id written into the lookup table

    Returns:
        TagResult, the tag of a group is the member with the largest summed r2
        to the rest of the group (first in column order on ties)

    Raises:
        TaggingError: If there is a single candidate
        ZeroVarianceError: If every candidate is constant in the panel
    """
    if haplotypes.shape[1] == 1:
        raise TaggingError(
            "Only one regulatory snp to test, please set tag_threshold='no'. "
            "Cannot cluster one snp only"
        )

    sd = haplotypes.std(axis=0)
    constant = sd.index[~(sd > 0)].tolist()
    if len(constant) == haplotypes.shape[1]:
        raise ZeroVarianceError(
            "All SNPs have zero standard deviation, please correct maf cut-off and rerun"
        )
    x = haplotypes.drop(columns=constant)
    snps = x.columns.tolist()

    if len(snps) == 1:
        groups = np.array([1])
        r2 = np.ones((1, 1))
    else:
        r2 = r_squared(x.to_numpy())
        dist = squareform(1.0 - r2, checks=False)
        link = sch.linkage(dist, method="complete")
        groups = sch.fcluster(link, t=1.0 - threshold + R2_TOLERANCE, criterion="distance")

    tag_of = {}
    for group in pd.unique(groups):
        members = np.flatnonzero(groups == group)
        strength = r2[np.ix_(members, members)].sum(axis=1)
        tag = snps[members[int(np.argmax(strength))]]
        for i in members:
            tag_of[snps[i]] = tag

    lookup = pd.DataFrame(
        [(gene, tag_of[s], s) for s in snps],
        columns=LOOKUP_COLUMNS,
    )
    tags = [s for s in snps if tag_of[s] == s]

    logger.info(f"{gene}: {len(snps)} candidate SNPs grouped into {len(tags)} tags "
                f"at r2 >= {threshold}")
    return TagResult(lookup=lookup, tags=tags, zero_variance=constant)
