"""
SNP identity and genotype/ASE containers for baseqtl-prep.

SNPs are joined across the reference panel, the VCF and the ASE tables by a
canonical ``pos:ref:alt`` key. Two records are the same SNP only when the
keys are identical strings.
"""

from dataclasses import dataclass, field
from enum import Enum

import numpy as np
import pandas as pd


class Genotype(Enum):
    """Genotype encoding for a sample at one SNP.

    - HOM_REF: Homozygous reference (0|0)
    - HET: Heterozygous (0|1 or 1|0)
    - HOM_ALT: Homozygous alternate (1|1)
    - MISSING: Missing genotype (.|.)
    """

    HOM_REF = 0
    HET = 1
    HOM_ALT = 2
    MISSING = -1


@dataclass(frozen=True, slots=True)
class SnpKey:
    """Canonical SNP identity.

    Attributes:
        pos: 1-based genomic position
        ref: Reference allele
        alt: Alternate allele
    """

    pos: int
    ref: str
    alt: str

    @property
    def id(self) -> str:
        return f"{self.pos}:{self.ref}:{self.alt}"

    def __str__(self) -> str:
        return self.id

    @classmethod
    def parse(cls, snp_id: str) -> "SnpKey":
        """Parse a ``pos:ref:alt`` id.

        Raises:
            ValueError: If the id does not have three fields or the position
                is not an integer
        """
        parts = str(snp_id).split(":")
        if len(parts) != 3:
            raise ValueError(f"Expected pos:ref:alt, got {snp_id!r}")
        return cls(int(parts[0]), parts[1], parts[2])


def snp_position(snp_id: str) -> float:
    """Numeric position of an id, NaN when the first field is not a number."""
    try:
        return float(str(snp_id).split(":")[0])
    except ValueError:
        return float("nan")


def make_ids(pos, ref, alt) -> list[str]:
    """Canonical ids for aligned position/allele sequences."""
    return [SnpKey(int(p), str(r), str(a)).id for p, r, a in zip(pos, ref, alt)]


@dataclass
class GenotypeASE:
    """Phased genotypes and allele-specific read counts for a set of SNPs.

    All tables are indexed by canonical SNP id and have one column per sample.

    Attributes:
        variants: chrom, pos, ref, alt per SNP
        hap1: Allele (0/1) on the first haplotype, -1 if missing
        hap2: Allele (0/1) on the second haplotype, -1 if missing
        ref_counts: Reads supporting the reference allele
        alt_counts: Reads supporting the alternate allele
    """

    variants: pd.DataFrame
    hap1: pd.DataFrame
    hap2: pd.DataFrame
    ref_counts: pd.DataFrame
    alt_counts: pd.DataFrame

    @property
    def ids(self) -> list[str]:
        return self.variants.index.tolist()

    @property
    def samples(self) -> list[str]:
        return self.hap1.columns.tolist()

    def __len__(self) -> int:
        return len(self.variants)

    def subset(self, ids) -> "GenotypeASE":
        """Rows whose id is in ``ids``, in this table's order."""
        keep = self.variants.index.isin(list(ids))
        return GenotypeASE(
            variants=self.variants.loc[keep],
            hap1=self.hap1.loc[keep],
            hap2=self.hap2.loc[keep],
            ref_counts=self.ref_counts.loc[keep],
            alt_counts=self.alt_counts.loc[keep],
        )

    def genotype_codes(self) -> pd.DataFrame:
        """Unphased allele dosage per SNP and sample, -1 when missing."""
        missing = (self.hap1 < 0) | (self.hap2 < 0)
        dosage = self.hap1.clip(lower=0) + self.hap2.clip(lower=0)
        return dosage.mask(missing, Genotype.MISSING.value).astype(np.int8)

    def het_mask(self) -> pd.DataFrame:
        """True where the sample is heterozygous with both alleles called."""
        return (self.genotype_codes() == Genotype.HET.value)

    @classmethod
    def from_records(cls, records: list[dict], samples: list[str]) -> "GenotypeASE":
        """Build from per-SNP records.

        Each record holds ``chrom``, ``pos``, ``ref``, ``alt`` and per-sample
        lists ``hap1``, ``hap2``, ``ref_count``, ``alt_count`` aligned with
        ``samples``.
        """
        ids = make_ids([r["pos"] for r in records],
                       [r["ref"] for r in records],
                       [r["alt"] for r in records])
        index = pd.Index(ids, name="id")
        variants = pd.DataFrame(
            {k: [r[k] for r in records] for k in ("chrom", "pos", "ref", "alt")},
            index=index,
        )

        def table(key, dtype):
            values = np.array([r[key] for r in records], dtype=dtype).reshape(len(records), len(samples))
            return pd.DataFrame(values, index=index, columns=samples)

        return cls(
            variants=variants,
            hap1=table("hap1", np.int8),
            hap2=table("hap2", np.int8),
            ref_counts=table("ref_count", np.int64),
            alt_counts=table("alt_count", np.int64),
        )


@dataclass
class VariantTables:
    """Variants split into usable records and excluded ones.

    Attributes:
        keep: Informative genotype/ASE records
        excluded: ``id`` and ``reason`` for dropped records
    """

    keep: GenotypeASE
    excluded: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame(columns=["id", "reason"])
    )
