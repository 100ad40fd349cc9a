"""
Pytest configuration and shared fixtures for baseqtl-prep tests.

This module provides a small synthetic gene:
- 8 samples with total counts and phased fSNP genotypes plus ASE counts
- a 10-individual reference panel (IMPUTE2 legend/hap, gzipped)
- fSNP lists, gene coordinates in both schemas and bias estimates

Panel haplotypes (per half of the panel, repeated twice):

    hap    0 1 2 3 4 5 6 7 8 9
    f1     0 0 0 0 0 1 1 1 1 1     1200:A:G
    f2     0 0 0 1 1 0 0 1 1 1     1500:C:T
    r1     0 1 0 1 0 1 1 1 0 1     900:G:A  (r2 at 950:T:C is identical)
    r3     1 0 0 0 1 0 0 1 0 0     2100:A:C
"""

import gzip
from pathlib import Path
from typing import Dict

import pytest

from baseqtl_prep.config import PrepConfig

SAMPLES = ["S1", "S2", "S3", "S4", "S5", "S6", "S7", "S8"]

HALF = {
    "r1": [0, 1, 0, 1, 0, 1, 1, 1, 0, 1],
    "f1": [0, 0, 0, 0, 0, 1, 1, 1, 1, 1],
    "f2": [0, 0, 0, 1, 1, 0, 0, 1, 1, 1],
    "r3": [1, 0, 0, 0, 1, 0, 0, 1, 0, 0],
    "multi": [0, 1, 0, 1, 0, 1, 0, 1, 0, 1],
    "far": [1, 1, 0, 0, 1, 1, 0, 0, 1, 1],
}

LEGEND_ROWS = [
    ("rs_r1", 900, "G", "A", "Biallelic_SNP", "r1"),
    ("rs_r2", 950, "T", "C", "Biallelic_SNP", "r1"),
    ("rs_f1", 1200, "A", "G", "Biallelic_SNP", "f1"),
    ("rs_f2", 1500, "C", "T", "Biallelic_SNP", "f2"),
    ("rs_r3", 2100, "A", "C", "Biallelic_SNP", "r3"),
    ("rs_m1", 2150, "G", "T", "Multiallelic_SNP", "multi"),
    ("rs_far", 5000, "C", "G", "Biallelic_SNP", "far"),
]

# (pos, ref, alt, per-sample "GT:AS")
VCF_RECORDS = [
    (1200, "A", "G", ["0|1:6,4", "1|0:5,5", "0|0:0,0", "0|1:3,7",
                      "1|0:8,2", "0|0:0,0", "1|1:0,12", "0|0:0,0"]),
    (1500, "C", "T", ["0|0:0,0", "0|1:4,6", "0|1:5,5", "1|1:0,9",
                      "0|0:0,0", "1|0:7,3", "0|1:2,8", "0|0:0,0"]),
    (1600, "A", "C,G", ["0|1:5,5"] * 8),
    (1700, "G", "A", ["0|0:3,0"] * 8),
    (1750, "C", "T", ["./.:."] * 8),
    (1800, "T", "G", ["0|1:5,5", "0|0:4,0", "0|1:2,2", "0|0:0,0",
                      "0|0:0,0", "1|0:1,1", "0|0:0,0", "0|0:0,0"]),
    (3000, "A", "T", ["0|1:5,5"] * 8),
]


def _write(path: Path, text: str) -> Path:
    path.write_text(text)
    return path


def write_vcf(path: Path) -> Path:
    lines = [
        "##fileformat=VCFv4.2",
        "##contig=<ID=22,length=50000000>",
        '##FORMAT=<ID=GT,Number=1,Type=String,Description="Genotype">',
        '##FORMAT=<ID=AS,Number=2,Type=Integer,Description="Reference and alternate read counts">',
        "\t".join(["#CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO", "FORMAT"] + SAMPLES),
    ]
    for pos, ref, alt, calls in VCF_RECORDS:
        lines.append("\t".join(["22", str(pos), ".", ref, alt, ".", "PASS", ".", "GT:AS"] + calls))
    return _write(path, "\n".join(lines) + "\n")


def write_panel(legend_path: Path, haps_path: Path) -> None:
    with gzip.open(legend_path, "wt") as f:
        f.write("id position a0 a1 TYPE\n")
        for rsid, pos, a0, a1, snp_type, _ in LEGEND_ROWS:
            f.write(f"{rsid} {pos} {a0} {a1} {snp_type}\n")

    with gzip.open(haps_path, "wt") as f:
        for *_, pattern in LEGEND_ROWS:
            f.write(" ".join(str(a) for a in HALF[pattern] * 2) + "\n")


@pytest.fixture
def gene_files(tmp_path) -> Dict[str, Path]:
    """Every input file of the synthetic gene G1 on chromosome 22."""
    files = {}
    files["counts"] = _write(
        tmp_path / "counts.txt",
        "gene_id\t" + "\t".join(SAMPLES) + "\n"
        "G1\t100\t120\t90\t110\t130\t95\t105\t115\n"
        "G2\t10\t12\t9\t11\t13\t9\t10\t11\n",
    )
    files["fsnps"] = _write(
        tmp_path / "fsnps.txt",
        "22\t1200\trs_f1\tA\tG\tG1\n"
        "22\t1500\trs_f2\tC\tT\tG1\n"
        "22\t1700\trs_f3\tG\tA\tG1\n"
        "22\t1800\trs_f4\tT\tG\tG1\n"
        "22\t5000\trs_x\tA\tC\tG2\n",
    )
    files["unique"] = _write(tmp_path / "unique_fsnps.txt", "22\t1200\trs_f1\tA\tG\tG1\n")
    files["gene_coord"] = _write(
        tmp_path / "gene_coord.txt",
        "gene_id\tchrom\tstart\tend\tlongest_transcript_length\tpercentage_gc_content\n"
        "G1\t22\t1000\t2000\t800\t45.2\n"
        "G2\t22\t4000\t6000\t900\t51.0\n",
    )
    files["exon_coord"] = _write(
        tmp_path / "exon_coord.txt",
        "gene_id\tchrom\tstart\tend\n"
        "G1\tchr22\t1000\t1300\n"
        "G1\tchr22\t1400\t2000\n"
        "G2\tchr22\t4000\t6000\n",
    )
    files["vcf"] = write_vcf(tmp_path / "chr22.vcf")
    files["legend"] = tmp_path / "panel.legend.gz"
    files["haps"] = tmp_path / "panel.hap.gz"
    write_panel(files["legend"], files["haps"])
    files["sample_file"] = _write(
        tmp_path / "panel.sample",
        "ID POP GROUP SEX\n"
        + "".join(f"P{i} GBR EUR male\n" for i in range(5))
        + "".join(f"P{i} YRI AFR female\n" for i in range(5, 10)),
    )
    files["ai"] = _write(
        tmp_path / "ai_estimates.txt",
        "CHROM\tPOS\tREF\tALT\tNREF_post\tNALT_post\tTotal_post\tAI_post\tTotal_pre\tKeep\n"
        "22\t1200\tA\tG\t52\t48\t100\t0.48\t150\tyes\n"
        "22\t1500\tC\tT\t50\t50\t100\t0.5\t50\tyes\n"
        "22\t1800\tT\tG\t50\t50\t100\t0.5\t200\tno\n",
    )
    files["covariates"] = _write(
        tmp_path / "covariates.txt",
        "sample\tlib_size\tbatch\n"
        "S1\t1.0\t0\nS2\t2.0\t1\nS3\t3.0\t0\nS4\t4.0\t1\n"
        "S5\t5.0\t0\nS6\t6.0\t1\nS7\t7.0\t0\nS8\t9.0\t1\n",
    )
    files["out"] = tmp_path / "out"
    files["out"].mkdir()
    return files


@pytest.fixture
def base_config(gene_files) -> PrepConfig:
    """Options for G1 with a 200 bp window."""
    return PrepConfig(
        gene="G1",
        chrom="22",
        counts_file=str(gene_files["counts"]),
        e_snps=str(gene_files["fsnps"]),
        gene_coord=str(gene_files["gene_coord"]),
        vcf=str(gene_files["vcf"]),
        le_file=str(gene_files["legend"]),
        h_file=str(gene_files["haps"]),
        snps=200,
        out=str(gene_files["out"]),
    )
