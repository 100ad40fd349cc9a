"""
VCF decoding for baseqtl-prep.

Reads phased genotypes (GT) and allele-specific counts (AS, ref and alt
reads) for every sample in a genomic window using pysam, and splits the
records into informative ones and those excluded because no sample carries
information.
"""

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import pandas as pd
import pysam

from .variant_source import GenotypeASE, VariantTables, make_ids

logger = logging.getLogger(__name__)

MISSING_ALL = "missing genotype in all samples"
HOMOZYGOUS_ALL = "homozygous in all samples"


def _fetch(vcf: pysam.VariantFile, chrom: str, start: int, end: int) -> Iterator:
    """Records overlapping [start, end] (1-based, inclusive).

    Uses the index when there is one, otherwise scans the file.
    """
    try:
        return vcf.fetch(str(chrom), start - 1, end)
    except ValueError:
        logger.debug(f"No usable index for {vcf.filename!r}, scanning records")

    return (record for record in vcf.fetch()
            if record.chrom == str(chrom) and start <= record.pos <= end)


def _parse_sample(sample) -> Tuple[int, int, int, int]:
    """Return (hap1, hap2, ref_count, alt_count) for one sample call."""
    gt = sample.get("GT", None)
    if gt is None or len(gt) != 2 or None in gt:
        hap1, hap2 = -1, -1
    else:
        hap1, hap2 = (min(int(a), 1) for a in gt)

    try:
        counts = sample["AS"]
    except KeyError:
        counts = None

    if counts is None or None in counts:
        ref_count, alt_count = 0, 0
    else:
        ref_count, alt_count = int(counts[0]), int(counts[1])

    return hap1, hap2, ref_count, alt_count


def resolve_variants(
    path: str,
    chrom: str,
    start: int,
    end: int,
    exclude: bool = True,
    samples: Optional[List[str]] = None,
) -> VariantTables:
    """Decode genotypes and ASE counts for SNPs in a window.

    Only biallelic SNVs are read. Records missing in every sample or
    homozygous in every sample are returned in ``excluded`` when ``exclude``
    is set, and otherwise kept.

    Args:
        path: VCF/BCF path, FORMAT must include GT and AS
        chrom: Chromosome name as used in the VCF
        start: First position (1-based)
        end: Last position (1-based, inclusive)
        exclude: Route non-informative records to ``excluded``
        samples: Samples to read, defaults to all samples in the header

    Returns:
        VariantTables with ``keep`` and ``excluded``

    Raises:
        ValueError: If the file cannot be opened or samples are unknown
    """
    try:
        vcf = pysam.VariantFile(str(Path(path)))
    except (OSError, ValueError) as e:
        raise ValueError(f"Failed to open VCF file {path}: {e}")

    with vcf:
        header_samples = list(vcf.header.samples)
        if samples is None:
            samples = header_samples
        else:
            unknown = [s for s in samples if s not in header_samples]
            if unknown:
                raise ValueError(f"Samples not found in VCF: {', '.join(unknown)}")
            vcf.subset_samples(samples)

        keep_records = []
        excluded = []
        for record in _fetch(vcf, chrom, start, end):
            if not record.alts or len(record.alts) != 1:
                continue
            if len(record.ref) != 1 or len(record.alts[0]) != 1:
                continue

            hap1, hap2, ref_count, alt_count = [], [], [], []
            for s in samples:
                h1, h2, r, a = _parse_sample(record.samples[s])
                hap1.append(h1)
                hap2.append(h2)
                ref_count.append(r)
                alt_count.append(a)

            entry = {
                "chrom": record.chrom, "pos": record.pos,
                "ref": record.ref, "alt": record.alts[0],
                "hap1": hap1, "hap2": hap2,
                "ref_count": ref_count, "alt_count": alt_count,
            }

            reason = None
            if exclude:
                called = [(a, b) for a, b in zip(hap1, hap2) if a >= 0 and b >= 0]
                if not called:
                    reason = MISSING_ALL
                elif all(a == b for a, b in called):
                    reason = HOMOZYGOUS_ALL

            if reason is None:
                keep_records.append(entry)
            else:
                snp_id = make_ids([record.pos], [record.ref], [record.alts[0]])[0]
                excluded.append((snp_id, reason))

    logger.info(f"Read {len(keep_records)} informative SNPs from {Path(path).name} "
                f"({len(excluded)} excluded) in {chrom}:{start}-{end}")

    return VariantTables(
        keep=GenotypeASE.from_records(keep_records, samples),
        excluded=pd.DataFrame(excluded, columns=["id", "reason"]),
    )
