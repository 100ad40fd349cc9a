"""
Gene coordinate lookup supporting two file schemas.

- Gene-level table (newer): one row per gene with ``gene_id chrom start end``
  plus ``longest_transcript_length`` and ``percentage_gc_content``.
- Exon-level table (legacy): one row per exon with ``gene_id chrom start end``;
  gene bounds are the outermost exon coordinates.

Both resolve to the same ``GeneBounds``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

import polars as pl

from ..errors import InvalidConfigError

REQUIRED_COLUMNS = {"gene_id", "chrom", "start", "end"}


@dataclass(frozen=True)
class GeneBounds:
    start: int
    end: int

    def widen(self, flank: int) -> "GeneBounds":
        return GeneBounds(self.start - flank, self.end + flank)


def normalize_chrom(chrom: Union[str, int]) -> str:
    """Chromosome name without a leading ``chr``."""
    chrom = str(chrom)
    return chrom[3:] if chrom.lower().startswith("chr") else chrom


class CoordinateSchema(ABC):
    """Parser for one gene coordinate layout.

    Subclasses register themselves with ``CoordinateSchema.register``; the
    first registered schema whose ``matches`` accepts the header is used.
    """

    _registry: List[type] = []

    @classmethod
    def register(cls, subclass):
        cls._registry.append(subclass)
        return subclass

    @classmethod
    def detect(cls, columns: Iterable[str]) -> "CoordinateSchema":
        columns = set(columns)
        for schema in cls._registry:
            if schema.matches(columns):
                return schema()
        raise InvalidConfigError(
            f"Unrecognised gene coordinate columns: {', '.join(sorted(columns))}"
        )

    @classmethod
    @abstractmethod
    def matches(cls, columns: set) -> bool:
        """Whether a file with these columns uses this schema."""

    @abstractmethod
    def bounds(self, gene_rows: pl.DataFrame) -> GeneBounds:
        """Gene bounds from the rows of a single gene."""


@CoordinateSchema.register
class GeneLevelSchema(CoordinateSchema):

    @classmethod
    def matches(cls, columns: set) -> bool:
        return "percentage_gc_content" in columns and REQUIRED_COLUMNS <= columns

    def bounds(self, gene_rows: pl.DataFrame) -> GeneBounds:
        return GeneBounds(int(gene_rows["start"][0]), int(gene_rows["end"][0]))


@CoordinateSchema.register
class ExonLevelSchema(CoordinateSchema):

    @classmethod
    def matches(cls, columns: set) -> bool:
        return REQUIRED_COLUMNS <= columns

    def bounds(self, gene_rows: pl.DataFrame) -> GeneBounds:
        return GeneBounds(int(gene_rows["start"].min()), int(gene_rows["end"].max()))


def read_gene_coordinates(path: Union[str, Path]) -> pl.DataFrame:
    df = pl.read_csv(path, separator="\t", infer_schema_length=0)
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise InvalidConfigError(
            f"Gene coordinate file {path} lacks columns: {', '.join(sorted(missing))}"
        )
    return df.with_columns(
        pl.col("start").cast(pl.Int64),
        pl.col("end").cast(pl.Int64),
    )


def gene_coordinates(
    path: Union[str, Path],
    chrom: Union[str, int],
    gene_id: str,
    coords: Optional[pl.DataFrame] = None,
) -> GeneBounds:
    """Start and end of a gene.

    Raises:
        InvalidConfigError: If the gene is not on ``chrom`` in the file
    """
    if coords is None:
        coords = read_gene_coordinates(path)

    schema = CoordinateSchema.detect(coords.columns)
    gene_rows = coords.filter(
        (pl.col("gene_id") == gene_id)
        & (pl.col("chrom").str.replace(r"(?i)^chr", "") == normalize_chrom(chrom))
    )
    if gene_rows.height == 0:
        raise InvalidConfigError(
            f"Gene {gene_id} and chromosome {chrom} are incompatibles in gene coordinate input"
        )

    return schema.bounds(gene_rows)
