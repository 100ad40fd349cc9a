"""
Per-rSNP sampler inputs without observed rSNP genotypes.

The genotype of a candidate rSNP is inferred for each sample from the
reference panel: each sample haplotype is matched to the panel haplotypes
that carry the same fSNP alleles, and the rSNP alternate allele frequency
among the matching panel haplotypes is the probability that the sample
haplotype carries it.
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from ..io.panel import panel_dosages
from ..io.variant_source import GenotypeASE
from ..ledger import ExclusionLedger
from ..result import Degraded, Outcome, Success, unexpected
from .ase import ase_columns

logger = logging.getLogger(__name__)

INCOMPATIBLE = "Genotypes of fSNPs not compatible with reference panel"
NO_INPUT = "No input made"
BELOW_INFO = "Below info cut-off"

# ASE genotype codes: -1 is a heterozygote with the alternate allele on haplotype 1
ASE_CODES = np.array([0, 1, -1, 2])
NB_GENOTYPES = np.array([0, 1, 2])


@dataclass
class FsnpInputs:
    """Per-gene fSNP information shared by every rSNP.

    Attributes:
        fsnps: fSNP ids used for phasing
        samples: Samples with total counts
        match1: samples x panel haplotypes, True where the panel haplotype
            carries the fSNP alleles of the sample's first haplotype
        match2: Same for the second haplotype
        ase_samples: Samples used on the allele-specific side, empty for NB
        m: Total ASE reads per ASE sample
        n: Reads on the second haplotype per ASE sample
        ai0: Expected second-haplotype read fraction under reference
            mapping bias, per ASE sample
        min_ai: Smallest bias estimate used
    """

    fsnps: List[str]
    samples: List[str]
    match1: np.ndarray
    match2: np.ndarray
    ase_samples: List[str] = field(default_factory=list)
    m: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    n: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    ai0: Optional[np.ndarray] = None
    min_ai: Optional[float] = None

    @property
    def has_ase(self) -> bool:
        return len(self.ase_samples) > 0


@dataclass
class NBInput:
    counts: pd.Series
    p_g: Dict[str, np.ndarray]


@dataclass
class ASEInput:
    m: pd.Series
    g: Dict[str, np.ndarray]
    p: Dict[str, np.ndarray]
    n: Dict[str, np.ndarray]
    ai0: Optional[Dict[str, np.ndarray]] = None


@dataclass
class RSnpInput:
    """Sampler input for one rSNP.

    ``nb.p_g`` maps each sample to the probabilities of genotypes 0, 1, 2.
    ``ase`` holds, per ASE sample, the possible phased genotypes, their
    probabilities and the reads on haplotype 2 (repeated per genotype).
    """

    snp_id: str
    nb: NBInput
    ase: Optional[ASEInput] = None

    def expected_dosage(self) -> np.ndarray:
        return np.array([p @ NB_GENOTYPES for p in self.nb.p_g.values()])

    def to_stan_data(self, covariates: Optional[pd.DataFrame] = None) -> dict:
        """Ragged-array data for the sampler.

        Genotypes with zero probability are left out. ``cov`` has an
        intercept column of ones first; ``K`` does not count it.
        """
        samples = self.nb.counts.index.tolist()

        s_nb, g_nb, p_nb = [], [], []
        for sample in samples:
            p = self.nb.p_g[sample]
            nz = p > 0
            s_nb.append(int(nz.sum()))
            g_nb.extend(NB_GENOTYPES[nz].tolist())
            p_nb.extend(p[nz].tolist())

        if covariates is None:
            cov = np.ones((len(samples), 1))
        else:
            cov = np.column_stack([np.ones(len(samples)), covariates.loc[samples].to_numpy(dtype=float)])

        data = {
            "N": len(samples),
            "G": len(g_nb),
            "K": cov.shape[1] - 1,
            "Y": self.nb.counts.to_numpy(dtype=np.int64),
            "sNB": np.array(s_nb, dtype=np.int64),
            "gNB": np.array(g_nb, dtype=np.int64),
            "pNB": np.array(p_nb),
            "cov": cov,
        }
        if self.ase is None:
            return data

        ase_samples = self.ase.m.index.tolist()
        data.update({
            "A": len(ase_samples),
            "L": int(sum(len(self.ase.g[s]) for s in ase_samples)),
            "m": self.ase.m.to_numpy(dtype=np.int64),
            "s": np.array([len(self.ase.g[s]) for s in ase_samples], dtype=np.int64),
            "gase": np.concatenate([self.ase.g[s] for s in ase_samples]).astype(np.int64),
            "pase": np.concatenate([self.ase.p[s] for s in ase_samples]),
            "n": np.concatenate([self.ase.n[s] for s in ase_samples]).astype(np.int64),
        })
        if self.ase.ai0 is not None:
            data["ai0"] = np.concatenate([self.ase.ai0[s] for s in ase_samples])
        return data


def _haplotype_matches(alleles: np.ndarray, panel: np.ndarray) -> np.ndarray:
    """samples x panel haplotypes compatibility; -1 alleles match anything.

    Args:
        alleles: fSNPs x samples, 0/1 or -1
        panel: fSNPs x panel haplotypes, 0/1
    """
    if alleles.shape[0] == 0:
        return np.ones((alleles.shape[1], panel.shape[1]), dtype=bool)
    a = alleles[:, :, None]
    return np.all((a < 0) | (a == panel[:, None, :]), axis=0)


def prepare_fsnp_inputs(
    genotypes: GenotypeASE,
    panel_fsnps: pd.DataFrame,
    samples: List[str],
    c_ase: Optional[pd.DataFrame] = None,
    ai: Optional[pd.DataFrame] = None,
) -> Outcome[FsnpInputs]:
    """Pre-compute the fSNP information used by every rSNP of a gene.

    Args:
        genotypes: Sample genotypes and ASE counts of the fSNPs
        panel_fsnps: Panel haplotypes of the fSNPs, index = SNP id
        samples: Samples with total counts, in count order
        c_ase: Filtered ASE count table; None for the total-count model
        ai: Reference bias estimates (id, AI_post, ...)

    Returns:
        Success with FsnpInputs, or Degraded when ASE was requested but no
        sample has ASE reads on the fSNPs
    """
    typed = set(genotypes.ids)
    fsnps = [snp_id for snp_id in panel_fsnps.index if snp_id in typed]
    panel = panel_fsnps.loc[fsnps].to_numpy()

    # Samples without a VCF column are treated as missing at every fSNP
    hap1 = genotypes.hap1.loc[fsnps].reindex(columns=samples, fill_value=-1).to_numpy()
    hap2 = genotypes.hap2.loc[fsnps].reindex(columns=samples, fill_value=-1).to_numpy()

    inputs = FsnpInputs(
        fsnps=fsnps,
        samples=list(samples),
        match1=_haplotype_matches(hap1, panel),
        match2=_haplotype_matches(hap2, panel),
    )
    if c_ase is None:
        return Success(inputs)

    ase_samples = [s for s in c_ase.index if s in genotypes.samples and s in inputs.samples]
    n_cols = [ase_columns(f)[0] for f in fsnps]
    m_cols = [ase_columns(f)[1] for f in fsnps]
    alt = c_ase.reindex(index=ase_samples, columns=n_cols, fill_value=0).to_numpy()
    total = c_ase.reindex(index=ase_samples, columns=m_cols, fill_value=0).to_numpy()

    m = total.sum(axis=1)
    keep = m > 0
    if not keep.any():
        return Degraded("No individuals with ASE reads on the fSNPs")

    on_hap2 = genotypes.hap2.loc[fsnps, ase_samples].to_numpy().T == 1
    hap2_reads = np.where(on_hap2, alt, total - alt).sum(axis=1)

    inputs.ase_samples = [s for s, k in zip(ase_samples, keep) if k]
    inputs.m = m[keep].astype(np.int64)
    inputs.n = hap2_reads[keep].astype(np.int64)

    if ai is not None:
        ai_post = ai.set_index("id")["AI_post"].reindex(fsnps)
        weights = np.where(ai_post.notna().to_numpy(), total, 0)[keep]
        frac = np.where(on_hap2, ai_post.to_numpy(), 1 - ai_post.to_numpy())[keep]
        frac = np.nan_to_num(frac)
        wsum = weights.sum(axis=1)
        with np.errstate(divide="ignore", invalid="ignore"):
            inputs.ai0 = np.where(wsum > 0, (weights * frac).sum(axis=1) / wsum, 0.5)
        inputs.min_ai = float(ai_post.min())

    logger.debug(f"{len(inputs.ase_samples)} samples with ASE reads on {len(fsnps)} fSNPs")
    return Success(inputs)


def build_rsnp_input(
    snp_id: str,
    rsnp_haplotypes: np.ndarray,
    fsnp_inputs: FsnpInputs,
    counts: pd.Series,
) -> Optional[Outcome[RSnpInput]]:
    """Genotype probabilities of one rSNP for every sample.

    Returns:
        Success with the rSNP input; Degraded when a sample haplotype matches
        no panel haplotype; None when the rSNP haplotypes are not all 0/1
    """
    r = np.asarray(rsnp_haplotypes, dtype=float)
    if r.shape[0] != fsnp_inputs.match1.shape[1] or not np.isin(r, (0, 1)).all():
        return None

    k1 = fsnp_inputs.match1.sum(axis=1)
    k2 = fsnp_inputs.match2.sum(axis=1)
    if (k1 == 0).any() or (k2 == 0).any():
        return Degraded(INCOMPATIBLE)

    p1 = (fsnp_inputs.match1 @ r) / k1
    p2 = (fsnp_inputs.match2 @ r) / k2

    nb_probs = np.column_stack([(1 - p1) * (1 - p2), p1 * (1 - p2) + (1 - p1) * p2, p1 * p2])
    counts = counts.loc[fsnp_inputs.samples]
    nb = NBInput(counts=counts, p_g=dict(zip(fsnp_inputs.samples, nb_probs)))

    if not fsnp_inputs.has_ase:
        return Success(RSnpInput(snp_id, nb))

    row = {s: i for i, s in enumerate(fsnp_inputs.samples)}
    g, p, n, ai0 = {}, {}, {}, {}
    for j, sample in enumerate(fsnp_inputs.ase_samples):
        a, b = p1[row[sample]], p2[row[sample]]
        probs = np.array([(1 - a) * (1 - b), (1 - a) * b, a * (1 - b), a * b])
        nz = probs > 0
        g[sample] = ASE_CODES[nz]
        p[sample] = probs[nz]
        n[sample] = np.repeat(fsnp_inputs.n[j], nz.sum())
        if fsnp_inputs.ai0 is not None:
            ai0[sample] = np.repeat(fsnp_inputs.ai0[j], nz.sum())

    ase = ASEInput(
        m=pd.Series(fsnp_inputs.m, index=fsnp_inputs.ase_samples),
        g=g,
        p=p,
        n=n,
        ai0=ai0 if fsnp_inputs.ai0 is not None else None,
    )
    return Success(RSnpInput(snp_id, nb, ase))


def info_score(rsnp_input: RSnpInput, rsnp_haplotypes: np.ndarray) -> float:
    """var(E[G]) over samples relative to the panel dosage variance.

    Both variances are population variances; 0 when the panel does not vary.
    """
    panel_var = np.var(panel_dosages(np.asarray(rsnp_haplotypes))[0])
    if panel_var == 0:
        return 0.0
    return float(np.var(rsnp_input.expected_dosage()) / panel_var)


_worker_fsnp_inputs: Optional[FsnpInputs] = None
_worker_counts: Optional[pd.Series] = None


def _init_worker(fsnp_inputs: FsnpInputs, counts: pd.Series) -> None:
    """Keep the per-gene inputs in a worker process."""
    global _worker_fsnp_inputs, _worker_counts
    _worker_fsnp_inputs = fsnp_inputs
    _worker_counts = counts


def _build_in_worker(snp_id: str, rsnp_haplotypes: np.ndarray) -> Optional[Outcome[RSnpInput]]:
    return build_rsnp_input(snp_id, rsnp_haplotypes, _worker_fsnp_inputs, _worker_counts)


@dataclass
class StanInputs:
    """rSNP inputs that passed every check, with their info scores."""

    inputs: Dict[str, RSnpInput]
    info: pd.Series


def build_stan_inputs(
    rsnps: pd.DataFrame,
    fsnp_inputs: FsnpInputs,
    counts: pd.Series,
    ledger: ExclusionLedger,
    info_cutoff: Optional[float] = 0.3,
    threads: int = 1,
) -> Outcome[StanInputs]:
    """Build inputs for every rSNP, then drop failures and low-info rSNPs.

    Args:
        rsnps: Panel haplotypes of the rSNPs, index = SNP id
        fsnp_inputs: Output of ``prepare_fsnp_inputs``
        counts: Total counts of the gene
        ledger: Receives the rSNPs that are dropped
        info_cutoff: Minimum info score, None keeps every rSNP
        threads: Worker processes; 1 runs in this process

    Returns:
        Success with StanInputs, or Degraded when no rSNP is left
    """
    snp_ids = rsnps.index.tolist()
    haps = {snp_id: rsnps.loc[snp_id].to_numpy() for snp_id in snp_ids}

    results = {}
    if threads > 1 and len(snp_ids) > 1:
        # Shared inputs are sent once per worker, rSNPs in chunks
        chunksize = max(1, len(snp_ids) // (threads * 4))
        with ProcessPoolExecutor(
            max_workers=threads,
            initializer=_init_worker,
            initargs=(fsnp_inputs, counts),
        ) as executor:
            built = executor.map(_build_in_worker, snp_ids, [haps[s] for s in snp_ids],
                                 chunksize=chunksize)
            results = dict(zip(snp_ids, built))
    else:
        for snp_id in snp_ids:
            results[snp_id] = build_rsnp_input(snp_id, haps[snp_id], fsnp_inputs, counts)

    # Merge in rSNP order once every worker has returned
    ok, degraded, empty = {}, [], []
    for snp_id in snp_ids:
        result = results[snp_id]
        if result is None:
            empty.append(snp_id)
        elif isinstance(result, Degraded):
            degraded.append((snp_id, result.reason))
        elif isinstance(result, Success):
            ok[snp_id] = result.payload
        else:
            raise unexpected(result)

    for snp_id, reason in degraded:
        ledger.add(snp_id, reason)
    if len(degraded) == len(snp_ids):
        return Degraded("Genotypes of fSNPs are not compatible with reference panel")

    ledger.extend(empty, NO_INPUT)
    if not ok:
        return Degraded("No inputs made for rSNPs")

    info = pd.Series({snp_id: info_score(inp, haps[snp_id]) for snp_id, inp in ok.items()},
                     dtype=float)
    if info_cutoff is not None:
        low = info.index[info < info_cutoff].tolist()
        ledger.extend(low, BELOW_INFO)
        info = info.drop(low)
        ok = {snp_id: ok[snp_id] for snp_id in info.index}

    if not ok:
        return Degraded("None of the snps met the conditions to be run by model")

    logger.info(f"Built inputs for {len(ok)} of {len(snp_ids)} rSNPs")
    return Success(StanInputs(inputs=ok, info=info))
