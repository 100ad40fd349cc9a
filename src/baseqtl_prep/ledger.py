"""
Exclusion ledger.

Collects the SNPs dropped while preparing a gene together with the reason,
and renders them as a (Gene_id, id, reason) table once the gene is done.
"""

import logging
from typing import Iterable, List, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

LEDGER_COLUMNS = ["Gene_id", "id", "reason"]


class ExclusionLedger:
    """Append-only record of excluded SNPs for one gene."""

    def __init__(self, gene: str) -> None:
        self.gene: str = gene
        self._entries: List[Tuple[str, str]] = []

    def add(self, snp_id: str, reason: str) -> None:
        self._entries.append((str(snp_id), str(reason)))

    def extend(self, snp_ids: Iterable[str], reason: str) -> None:
        snp_ids = list(snp_ids)
        if snp_ids:
            logger.debug(f"{self.gene}: excluding {len(snp_ids)} SNPs ({reason})")
        for snp_id in snp_ids:
            self.add(snp_id, reason)

    def extend_table(self, df: pd.DataFrame) -> None:
        """Append rows of a table with ``id`` and ``reason`` columns."""
        for snp_id, reason in zip(df["id"], df["reason"]):
            self.add(snp_id, reason)

    def ids(self) -> List[str]:
        return [snp_id for snp_id, _ in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def to_frame(self) -> pd.DataFrame:
        if not self._entries:
            return pd.DataFrame(columns=LEDGER_COLUMNS)
        df = pd.DataFrame(self._entries, columns=["id", "reason"])
        df.insert(0, "Gene_id", self.gene)
        return df
