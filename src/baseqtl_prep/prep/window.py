"""
Reference panel extraction around a gene.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Tuple, Union

import pandas as pd

from ..errors import NoPanelSnpsError
from ..io.gene_coords import GeneBounds
from ..io.panel import load_panel_window
from ..io.variant_source import snp_position
from ..ledger import ExclusionLedger

logger = logging.getLogger(__name__)

NOT_IN_PANEL = "snp not in reference panel"


@dataclass
class PanelWindow:
    """Panel haplotypes of a cis window.

    Attributes:
        window: (start, end) that was read
        panel: Every panel SNP in the window passing the MAF cut-off
        rsnps: Candidate regulatory SNPs, a subset of ``panel``
    """

    window: Tuple[int, int]
    panel: pd.DataFrame
    rsnps: pd.DataFrame


def cis_window(bounds: GeneBounds, snps: Union[int, float, List[str]]) -> Tuple[int, int]:
    """Window covering the gene and either a flank or the requested SNPs."""
    if isinstance(snps, (list, tuple)):
        positions = [p for p in map(snp_position, snps) if not math.isnan(p)]
        return int(min(positions + [bounds.start])), int(max(positions + [bounds.end]))

    flanked = bounds.widen(int(snps))
    return flanked.start, flanked.end


def extract_panel_window(
    legend_path: str,
    haplotype_path: str,
    bounds: GeneBounds,
    snps: Union[int, float, List[str]],
    ledger: ExclusionLedger,
    population: str = "EUR",
    maf: float = 0.05,
) -> PanelWindow:
    """Read the panel around a gene and pick the candidate rSNPs.

    With a numeric ``snps`` every panel SNP in the window is a candidate.
    With explicit ids, requested SNPs missing from the panel are ledgered.

    Raises:
        NoPanelSnpsError: If the window holds no panel SNP, or none of the
            requested SNPs is in the panel
    """
    window = cis_window(bounds, snps)
    panel = load_panel_window(legend_path, haplotype_path, window, population=population, maf=maf)
    if panel.empty:
        raise NoPanelSnpsError(f"No snps extracted from the reference panel in {window[0]}-{window[1]}")

    if not isinstance(snps, (list, tuple)):
        return PanelWindow(window, panel, panel)

    present = [s for s in snps if s in panel.index]
    if not present:
        raise NoPanelSnpsError(f"None of the snps {', '.join(snps)} are in the reference panel")

    ledger.extend([s for s in snps if s not in panel.index], NOT_IN_PANEL)
    logger.info(f"{len(present)} of {len(snps)} requested SNPs found in the reference panel")
    return PanelWindow(window, panel, panel.loc[present])
