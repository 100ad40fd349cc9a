"""
Tests for panel-based genotype probabilities and sampler inputs.

Panel used throughout (one fSNP, four haplotypes):

    fSNP  0 0 1 1
    rSNP  0 1 1 1

Run with: pytest tests/unit/test_stan_input.py -v
"""

import numpy as np
import pandas as pd
import pytest

from baseqtl_prep.io.variant_source import GenotypeASE
from baseqtl_prep.ledger import ExclusionLedger
from baseqtl_prep.prep import stan_input
from baseqtl_prep.prep.stan_input import (
    BELOW_INFO,
    INCOMPATIBLE,
    NO_INPUT,
    build_rsnp_input,
    build_stan_inputs,
    info_score,
    prepare_fsnp_inputs,
)
from baseqtl_prep.result import Degraded, Success

FSNP = "10:A:G"
RSNP = np.array([0, 1, 1, 1])


@pytest.fixture
def panel_fsnps():
    return pd.DataFrame([[0, 0, 1, 1]], index=[FSNP])


@pytest.fixture
def genotypes():
    # A is 0|1, B has a missing first allele; C is not in the VCF
    records = [{"chrom": "1", "pos": 10, "ref": "A", "alt": "G",
                "hap1": [0, -1], "hap2": [1, 0],
                "ref_count": [7, 0], "alt_count": [3, 0]}]
    return GenotypeASE.from_records(records, ["A", "B"])


@pytest.fixture
def counts():
    return pd.Series({"A": 20, "B": 30, "C": 40})


@pytest.fixture
def c_ase():
    return pd.DataFrame({f"{FSNP}.n": [3, 0], f"{FSNP}.m": [10, 0]}, index=["A", "B"])


@pytest.fixture
def fsnp_inputs(genotypes, panel_fsnps, counts, c_ase):
    return prepare_fsnp_inputs(genotypes, panel_fsnps, counts.index.tolist(), c_ase).payload


class TestPrepareFsnpInputs:
    """Haplotype matching and ASE summaries."""

    def test_matches(self, genotypes, panel_fsnps, counts):
        inputs = prepare_fsnp_inputs(genotypes, panel_fsnps, counts.index.tolist()).payload

        assert inputs.match1.tolist() == [[True, True, False, False],
                                          [True, True, True, True],
                                          [True, True, True, True]]
        assert inputs.match2[0].tolist() == [False, False, True, True]
        assert not inputs.has_ase

    def test_ase_samples_need_reads(self, fsnp_inputs):
        """Test that samples without ASE reads are dropped."""
        assert fsnp_inputs.ase_samples == ["A"]
        assert fsnp_inputs.m.tolist() == [10]
        assert fsnp_inputs.n.tolist() == [3]

    def test_no_ase_reads(self, genotypes, panel_fsnps, counts, c_ase):
        result = prepare_fsnp_inputs(genotypes, panel_fsnps, counts.index.tolist(), c_ase * 0)
        assert isinstance(result, Degraded)

    def test_bias_estimates(self, genotypes, panel_fsnps, counts, c_ase):
        ai = pd.DataFrame({"id": [FSNP], "AI_post": [0.4]})
        inputs = prepare_fsnp_inputs(genotypes, panel_fsnps, counts.index.tolist(), c_ase, ai).payload

        assert inputs.ai0 == pytest.approx([0.4])
        assert inputs.min_ai == pytest.approx(0.4)


class TestBuildRsnpInput:
    """Genotype probabilities for one rSNP."""

    def test_nb_probabilities(self, fsnp_inputs, counts):
        rsnp = build_rsnp_input("5:C:T", RSNP, fsnp_inputs, counts).payload

        np.testing.assert_allclose(rsnp.nb.p_g["A"], [0, 0.5, 0.5])
        np.testing.assert_allclose(rsnp.nb.p_g["B"], [0.125, 0.5, 0.375])
        np.testing.assert_allclose(rsnp.nb.p_g["C"], [0.0625, 0.375, 0.5625])

    def test_probabilities_sum_to_one(self, fsnp_inputs, counts):
        rsnp = build_rsnp_input("5:C:T", RSNP, fsnp_inputs, counts).payload
        for probs in rsnp.nb.p_g.values():
            assert probs.sum() == pytest.approx(1.0)

    def test_ase_genotypes(self, fsnp_inputs, counts):
        """Test that impossible phased genotypes are dropped."""
        rsnp = build_rsnp_input("5:C:T", RSNP, fsnp_inputs, counts).payload

        assert rsnp.ase.g["A"].tolist() == [1, 2]
        np.testing.assert_allclose(rsnp.ase.p["A"], [0.5, 0.5])
        assert rsnp.ase.n["A"].tolist() == [3, 3]

    def test_incompatible_sample(self, genotypes, counts):
        panel = pd.DataFrame([[0, 0, 0, 0]], index=[FSNP])
        inputs = prepare_fsnp_inputs(genotypes, panel, counts.index.tolist()).payload

        assert build_rsnp_input("5:C:T", RSNP, inputs, counts) == Degraded(INCOMPATIBLE)

    @pytest.mark.parametrize("haps", [np.array([0, 1, 1]), np.array([0, 1, 2, 1])])
    def test_invalid_haplotypes(self, fsnp_inputs, counts, haps):
        assert build_rsnp_input("5:C:T", haps, fsnp_inputs, counts) is None

    def test_no_fsnps(self, genotypes, counts):
        """Test that without fSNPs every sample gets the panel frequency."""
        inputs = prepare_fsnp_inputs(genotypes.subset([]), pd.DataFrame([[0, 0, 1, 1]], index=["9:A:C"]),
                                     counts.index.tolist()).payload
        rsnp = build_rsnp_input("5:C:T", RSNP, inputs, counts).payload

        np.testing.assert_allclose(rsnp.nb.p_g["A"], [0.0625, 0.375, 0.5625])


class TestStanData:

    def test_nb_layout(self, fsnp_inputs, counts):
        data = build_rsnp_input("5:C:T", RSNP, fsnp_inputs, counts).payload.to_stan_data()

        assert data["N"] == 3
        assert data["K"] == 0
        assert data["Y"].tolist() == [20, 30, 40]
        assert data["sNB"].tolist() == [2, 3, 3]
        assert data["G"] == 8
        assert data["gNB"][:2].tolist() == [1, 2]
        assert data["cov"].shape == (3, 1)

    def test_ase_layout(self, fsnp_inputs, counts):
        data = build_rsnp_input("5:C:T", RSNP, fsnp_inputs, counts).payload.to_stan_data()

        assert data["A"] == 1
        assert data["L"] == 2
        assert data["m"].tolist() == [10]
        assert data["s"].tolist() == [2]
        assert data["gase"].tolist() == [1, 2]
        assert data["n"].tolist() == [3, 3]
        assert "ai0" not in data

    def test_covariates_after_intercept(self, fsnp_inputs, counts):
        cov = pd.DataFrame({"x": [1.0, -1.0, 0.0]}, index=["C", "A", "B"])
        data = build_rsnp_input("5:C:T", RSNP, fsnp_inputs, counts).payload.to_stan_data(cov)

        assert data["K"] == 1
        assert data["cov"].tolist() == [[1.0, -1.0], [1.0, 0.0], [1.0, 1.0]]


class TestInfoScore:

    def test_value(self, fsnp_inputs, counts):
        rsnp = build_rsnp_input("5:C:T", RSNP, fsnp_inputs, counts).payload
        # E[G] = [1.5, 1.25, 1.5], panel dosages [1, 2]
        assert info_score(rsnp, RSNP) == pytest.approx((1 / 72) / 0.25)

    def test_constant_panel(self, fsnp_inputs, counts):
        rsnp = build_rsnp_input("5:C:T", RSNP, fsnp_inputs, counts).payload
        assert info_score(rsnp, np.array([1, 1, 1, 1])) == 0.0


class TestBuildStanInputs:
    """All rSNPs of a gene."""

    @pytest.fixture
    def rsnps(self):
        return pd.DataFrame([RSNP, [1, 0, 0, 1], [0, 1, 2, 1]],
                            index=["5:C:T", "6:A:T", "7:G:C"])

    def test_failures_and_info_ledgered(self, rsnps, fsnp_inputs, counts):
        ledger = ExclusionLedger("G1")
        result = build_stan_inputs(rsnps, fsnp_inputs, counts, ledger, info_cutoff=0.01)

        assert isinstance(result, Success)
        assert list(result.payload.inputs) == ["5:C:T"]
        assert ledger.to_frame()[["id", "reason"]].values.tolist() == [
            ["7:G:C", NO_INPUT],
            ["6:A:T", BELOW_INFO],
        ]

    def test_no_info_cut_off(self, rsnps, fsnp_inputs, counts):
        result = build_stan_inputs(rsnps, fsnp_inputs, counts, ExclusionLedger("G1"), info_cutoff=None)
        assert list(result.payload.inputs) == ["5:C:T", "6:A:T"]
        assert result.payload.info.index.tolist() == ["5:C:T", "6:A:T"]

    def test_nothing_above_cut_off(self, rsnps, fsnp_inputs, counts):
        result = build_stan_inputs(rsnps, fsnp_inputs, counts, ExclusionLedger("G1"), info_cutoff=0.9)
        assert result == Degraded("None of the snps met the conditions to be run by model")

    def test_all_incompatible(self, genotypes, counts, rsnps):
        panel = pd.DataFrame([[0, 0, 0, 0]], index=[FSNP])
        inputs = prepare_fsnp_inputs(genotypes, panel, counts.index.tolist()).payload
        ledger = ExclusionLedger("G1")

        result = build_stan_inputs(rsnps.iloc[:2], inputs, counts, ledger)

        assert isinstance(result, Degraded)
        assert ledger.ids() == ["5:C:T", "6:A:T"]

    def test_workers_match_serial(self, rsnps, fsnp_inputs, counts):
        serial = build_stan_inputs(rsnps, fsnp_inputs, counts, ExclusionLedger("G1"), info_cutoff=None)
        ledger = ExclusionLedger("G1")
        parallel = build_stan_inputs(rsnps, fsnp_inputs, counts, ledger, info_cutoff=None, threads=2)

        assert list(parallel.payload.inputs) == list(serial.payload.inputs)
        pd.testing.assert_series_equal(parallel.payload.info, serial.payload.info)
        assert ledger.ids() == ["7:G:C"]

    def test_workers_in_chunks(self, fsnp_inputs, counts):
        """Test that rSNPs mapped in chunks keep their order."""
        patterns = [RSNP, [1, 0, 0, 1], [1, 1, 0, 0], [0, 0, 1, 1]]
        rsnps = pd.DataFrame([patterns[i % 4] for i in range(20)],
                             index=[f"{i + 1}:C:T" for i in range(20)])

        serial = build_stan_inputs(rsnps, fsnp_inputs, counts, ExclusionLedger("G1"), info_cutoff=None)
        parallel = build_stan_inputs(rsnps, fsnp_inputs, counts, ExclusionLedger("G1"),
                                     info_cutoff=None, threads=2)

        assert list(parallel.payload.inputs) == list(serial.payload.inputs)
        pd.testing.assert_series_equal(parallel.payload.info, serial.payload.info)

    def test_worker_uses_initialized_inputs(self, monkeypatch, fsnp_inputs, counts):
        """Test that a worker builds from the inputs handed to its initializer."""
        monkeypatch.setattr(stan_input, "_worker_fsnp_inputs", None)
        monkeypatch.setattr(stan_input, "_worker_counts", None)
        stan_input._init_worker(fsnp_inputs, counts)

        built = stan_input._build_in_worker("5:C:T", RSNP).payload
        expected = build_rsnp_input("5:C:T", RSNP, fsnp_inputs, counts).payload

        np.testing.assert_equal(built.to_stan_data(), expected.to_stan_data())
