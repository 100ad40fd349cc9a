"""
Tests for ASE count aggregation and depth filters.

Run with: pytest tests/unit/test_ase.py -v
"""

import pandas as pd
import pytest

from baseqtl_prep.io.variant_source import GenotypeASE
from baseqtl_prep.prep.ase import (
    ase_columns,
    ase_totals,
    column_snp_ids,
    filter_ase_depth,
    total_ase_counts,
    zero_fsnps,
)
from baseqtl_prep.result import Degraded, Success


@pytest.fixture
def genotypes():
    """Two fSNPs in three samples; sample C is homozygous at the first."""
    records = [
        {"chrom": "1", "pos": 10, "ref": "A", "alt": "G",
         "hap1": [0, 1, 1], "hap2": [1, 0, 1],
         "ref_count": [6, 3, 0], "alt_count": [4, 9, 8]},
        {"chrom": "1", "pos": 20, "ref": "C", "alt": "T",
         "hap1": [0, -1, 1], "hap2": [1, -1, 0],
         "ref_count": [2, 5, 1], "alt_count": [1, 5, 2]},
    ]
    return GenotypeASE.from_records(records, ["A", "B", "C"])


@pytest.fixture
def c_ase():
    return pd.DataFrame(
        {"10:A:G.n": [4, 9, 0], "10:A:G.m": [10, 12, 0],
         "20:C:T.n": [1, 0, 2], "20:C:T.m": [3, 0, 3]},
        index=pd.Index(["A", "B", "C"], name="sample"),
    )


class TestTotalAseCounts:
    """Count table built from heterozygous calls."""

    def test_columns(self, genotypes):
        table = total_ase_counts(genotypes)
        assert table.columns.tolist() == ["10:A:G.n", "10:A:G.m", "20:C:T.n", "20:C:T.m"]
        assert table.index.tolist() == ["A", "B", "C"]

    def test_only_heterozygous_cells_count(self, genotypes, c_ase):
        """Test that homozygous and missing calls carry no reads."""
        pd.testing.assert_frame_equal(total_ase_counts(genotypes), c_ase.astype("int64"))


class TestHelpers:

    def test_ase_columns(self):
        assert ase_columns("10:A:G") == ("10:A:G.n", "10:A:G.m")

    def test_column_snp_ids(self, c_ase):
        assert column_snp_ids(c_ase.columns) == ["10:A:G", "20:C:T"]

    def test_totals(self, c_ase):
        assert ase_totals(c_ase).tolist() == [13, 12, 3]

    def test_zero_fsnps_keeps_columns(self, c_ase):
        zeroed = zero_fsnps(c_ase, ["20:C:T", "99:A:C"])
        assert zeroed.columns.tolist() == c_ase.columns.tolist()
        assert zeroed["20:C:T.m"].sum() == 0
        assert c_ase["20:C:T.m"].sum() == 6


class TestFilterAseDepth:
    """Per-sample and per-fSNP depth filters."""

    def test_keeps_deep_samples(self, c_ase):
        result = filter_ase_depth(c_ase, min_ase=5)
        assert isinstance(result, Success)
        assert result.payload.index.tolist() == ["A", "B"]

    def test_per_snp_cut_off_zeroes_cells(self, c_ase):
        """Test that shallow cells are zeroed before samples are totalled."""
        result = filter_ase_depth(c_ase, min_ase=1, min_ase_snp=5)

        assert result.payload.index.tolist() == ["A", "B"]
        assert result.payload.loc["A", "20:C:T.m"] == 0
        assert result.payload.loc["A", "10:A:G.m"] == 10

    def test_too_few_samples(self, c_ase):
        result = filter_ase_depth(c_ase, min_ase=5, min_n=3)
        assert isinstance(result, Degraded)
        assert "fewer than 3 individuals" in result.reason

    def test_nobody_kept(self, c_ase):
        assert isinstance(filter_ase_depth(c_ase, min_ase=100), Degraded)

    def test_input_unchanged(self, c_ase):
        before = c_ase.copy()
        filter_ase_depth(c_ase, min_ase=1, min_ase_snp=5)
        pd.testing.assert_frame_equal(c_ase, before)
