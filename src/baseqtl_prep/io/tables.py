"""
Readers for the tab-separated inputs of a gene run.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import pandas as pd
import polars as pl

from .gene_coords import normalize_chrom
from .variant_source import make_ids

logger = logging.getLogger(__name__)

FSNP_COLUMNS = ["chrom", "pos", "rsid", "ref", "alt", "gene_id"]
AI_COLUMNS = ["id", "NREF_post", "NALT_post", "Total_post", "AI_post"]


def read_gene_counts(counts_file: Union[str, Path], gene: str) -> Optional[pd.Series]:
    """Total counts of one gene across samples, None if the gene is absent.

    The counts file has a header; the first column holds gene ids and the
    remaining columns are samples.
    """
    df = pd.read_csv(counts_file, sep="\t", index_col=0)
    df.index = df.index.astype(str)

    if gene not in df.index:
        return None

    row = df.loc[[gene]].iloc[0]
    row.name = gene
    return row.astype("int64")


def read_fsnp_list(path: Union[str, Path], gene: str) -> pl.DataFrame:
    """SNPs listed for a gene in an exonic (or unique exonic) SNP file.

    The file has no header; columns are chrom, pos, rsid, ref, alt and the
    gene id last. Returns the gene's rows with an added canonical ``id``.
    """
    empty = pl.DataFrame(
        schema={**{c: pl.Utf8 for c in FSNP_COLUMNS + ["id"]}, "pos": pl.Int64},
    )
    if Path(path).stat().st_size == 0:
        return empty

    df = pl.read_csv(path, separator="\t", has_header=False, infer_schema_length=0)
    if df.width < 6:
        raise ValueError(f"Expected at least 6 columns in {path}, found {df.width}")

    # Might carry extra annotation columns between alt and gene id
    subset_cols = [df.columns[i] for i in [0, 1, 2, 3, 4, -1]]
    rename_cols = {old_col: new_col for old_col, new_col in zip(subset_cols, FSNP_COLUMNS)}

    df = df.select(subset_cols).rename(rename_cols).filter(pl.col("gene_id") == gene)
    if df.height == 0:
        return empty

    df = df.with_columns(pl.col("pos").cast(pl.Int64))
    df = df.with_columns(
        pl.concat_str([pl.col("pos").cast(pl.Utf8), pl.col("ref"), pl.col("alt")],
                      separator=":").alias("id")
    )
    return df.unique(subset="id", maintain_order=True)


def read_ai_estimates(
    path: Union[str, Path],
    chrom: Union[str, int],
    pretotal_reads: float = 100,
) -> pd.DataFrame:
    """Reference mapping bias estimates usable for a chromosome.

    Keeps estimates with ``Total_pre >= pretotal_reads``, ``Keep == "yes"``
    and a non-zero ``AI_post``.
    """
    ai = pd.read_csv(path, sep="\t", dtype={"CHROM": str, "REF": str, "ALT": str})
    ai = ai.loc[
        (ai["CHROM"].map(normalize_chrom) == normalize_chrom(chrom))
        & (ai["Total_pre"] >= pretotal_reads)
        & (ai["Keep"] == "yes")
        & (ai["AI_post"] != 0)
    ].copy()

    ai["id"] = make_ids(ai["POS"], ai["REF"], ai["ALT"])
    ai = ai.drop_duplicates(subset="id")

    logger.info(f"{len(ai)} fSNPs with allelic imbalance estimates on {chrom}")
    return ai[AI_COLUMNS].reset_index(drop=True)


def read_covariates(path: Union[str, Path]) -> pd.DataFrame:
    """Covariate matrix with its first column as the row index.

    Rows are either gene ids (gene specific covariates, columns are samples)
    or samples (columns are covariates).
    """
    cov = pd.read_csv(path, sep="\t", index_col=0)
    cov.index = cov.index.astype(str)
    return cov


def read_additional_covariates(path: Union[str, Path]) -> pd.DataFrame:
    """Gene independent covariates indexed by the sample names in column one."""
    cov = pd.read_csv(path, sep="\t")
    cov = cov.set_index(cov.columns[0])
    cov.index = cov.index.astype(str)
    return cov
