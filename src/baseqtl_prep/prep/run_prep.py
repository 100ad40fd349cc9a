"""
Per-gene preparation of sampler inputs.

Runs the stages in order for one gene: option checks, count and covariate
extraction, fSNP selection, reference panel window, optional Fisher filter,
LD tagging, the allele-specific filters and the per-rSNP builder. When the
allele-specific side cannot be used the gene falls back to the total-count
(NB) model unless NB-ASE was requested explicitly.
"""

import logging
import numbers
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from ..config import PrepConfig, save_config
from ..errors import NoFeatureSnpsError
from ..io.gene_coords import gene_coordinates
from ..io.panel import population_haplotype_columns
from ..io.tables import read_ai_estimates
from ..io.variant_source import GenotypeASE
from ..io.vcf_source import resolve_variants
from ..ledger import ExclusionLedger
from ..result import Degraded, Outcome, Success, unexpected
from .ase import ase_columns, filter_ase_depth, total_ase_counts
from .extract import GeneInputs, extract_gene_inputs
from .fsnps import (
    exclude_fsnp_ids,
    fisher_filter,
    fisher_heterozygosity_test,
    restrict_to_ai_estimates,
    restrict_to_unique_fsnps,
    select_gene_fsnps,
)
from .stan_input import FsnpInputs, RSnpInput, build_stan_inputs, prepare_fsnp_inputs
from .tagging import ZERO_SD, tag_snps
from .validate import validate_config
from .window import extract_panel_window

logger = logging.getLogger(__name__)

NOT_IN_PANEL_MAF = "exonic snp is not in reference panel with maf filtering"

MODEL_NB_ASE = "NB-ASE"
MODEL_NB = "NB"


@dataclass
class GenePrep:
    """Everything the sampler and the result writers need for one gene.

    Attributes:
        gene: Gene id
        model: "NB-ASE" or "NB"
        stan_data: Sampler data per rSNP
        inputs: Structured input per rSNP, before flattening
        probs: Posterior quantiles to report
        tagged: Whether rSNPs were LD tagged
        nfsnps: Number of fSNPs used for phasing
        info: Info score per rSNP
        ledger: Excluded SNPs (Gene_id, id, reason)
        tags: Tag lookup (Gene_id, tag, SNP) when tagged
        c_ase: ASE count table used on the allele-specific side
        min_ai: Smallest bias estimate used, when estimates were given
        fisher_all: Fisher test for every fSNP, when requested
        fisher_kept: Fisher test rows above the cut-off
        ase_fallback: Why the allele-specific side was not used
    """

    gene: str
    model: str
    stan_data: Dict[str, dict]
    inputs: Dict[str, RSnpInput]
    probs: List[float]
    tagged: bool
    nfsnps: int
    info: pd.Series
    ledger: pd.DataFrame
    tags: Optional[pd.DataFrame] = None
    c_ase: Optional[pd.DataFrame] = None
    min_ai: Optional[float] = None
    fisher_all: Optional[pd.DataFrame] = None
    fisher_kept: Optional[pd.DataFrame] = None
    ase_fallback: Optional[str] = None


@dataclass
class _AseSide:
    c_ase: pd.DataFrame
    genotypes: GenotypeASE
    ai: Optional[pd.DataFrame] = None


@dataclass
class _FisherStep:
    genotypes: GenotypeASE
    fisher_all: Optional[pd.DataFrame] = None
    kept: Optional[pd.DataFrame] = None


def diagnostic_path(config: PrepConfig, suffix: str) -> Path:
    return Path(config.out) / f"{config.label}.noGT.{suffix}"


def write_table(df: pd.DataFrame, path: Path) -> Path:
    df.to_csv(path, sep="\t", index=False)
    logger.debug(f"Wrote {path}")
    return path


def write_diagnostics(
    config: PrepConfig,
    ledger: ExclusionLedger,
    prep: Optional[GenePrep] = None,
) -> List[Path]:
    """Persist the exclusion ledger and, with ``save_input``, the inputs
    together with the options that produced them.

    Returns:
        Paths written
    """
    written = []
    if len(ledger):
        written.append(write_table(ledger.to_frame(), diagnostic_path(config, "excluded.snps.txt")))

    if prep is not None and config.save_input:
        path = diagnostic_path(config, "stan.input.pkl")
        pd.to_pickle(prep.inputs, path)
        written.append(path)
        written.append(save_config(config, diagnostic_path(config, "config.yaml")))
        if prep.c_ase is not None:
            written.append(write_table(
                prep.c_ase.reset_index(), diagnostic_path(config, "fsnps.counts.tsv")
            ))
    return written


def _fisher_step(
    config: PrepConfig,
    genotypes: GenotypeASE,
    panel_fsnps: pd.DataFrame,
) -> Outcome[_FisherStep]:
    """Drop fSNPs whose heterozygosity differs from the panel.

    Returns Degraded when no fSNP passes the cut-off.
    """
    if not isinstance(config.ex_fsnp, numbers.Real):
        return Success(_FisherStep(genotypes))

    panel = panel_fsnps
    if config.sample_file is not None and config.population != "ALL":
        cols = population_haplotype_columns(config.sample_file, config.population)
        panel = panel_fsnps.iloc[:, cols]

    fisher_all = fisher_heterozygosity_test(genotypes, panel, config.gene)
    outcome = fisher_filter(fisher_all, config.ex_fsnp)

    if isinstance(outcome, Degraded):
        return outcome
    if isinstance(outcome, Success):
        kept = outcome.payload
        return Success(_FisherStep(genotypes.subset(kept["fsnp"]), fisher_all, kept))
    raise unexpected(outcome)


def _ase_cascade(config: PrepConfig, genotypes: GenotypeASE) -> Outcome[_AseSide]:
    """Allele-specific counts usable for the gene, or why there are none."""
    c_ase = total_ase_counts(genotypes)

    # Any ASE at all
    outcome = filter_ase_depth(c_ase, 1, 0, config.min_ase_n)
    if isinstance(outcome, Degraded):
        return outcome

    ai = None
    if config.ai_estimate is not None:
        ai = read_ai_estimates(config.ai_estimate, config.chrom, config.pretotal_reads)
        with_ai = restrict_to_ai_estimates(genotypes.ids, ai)
        if isinstance(with_ai, Degraded):
            return with_ai
        ai = ai.loc[ai["id"].isin(with_ai.payload)]

    if config.u_esnps is not None:
        ai_ids = None if ai is None else ai["id"].tolist()
        outcome = restrict_to_unique_fsnps(c_ase, config.u_esnps, config.gene, ai_ids)
        if isinstance(outcome, Degraded):
            return outcome
        c_ase = outcome.payload

    outcome = filter_ase_depth(c_ase, config.min_ase, config.min_ase_snp, config.min_ase_n)
    if isinstance(outcome, Degraded):
        return outcome
    c_ase = outcome.payload

    if ai is not None:
        # Every input uses the same fSNPs as the bias estimates
        genotypes = genotypes.subset(ai["id"])
        cols = [c for snp_id in ai["id"] for c in ase_columns(snp_id) if c in c_ase.columns]
        c_ase = c_ase[cols]

    return Success(_AseSide(c_ase=c_ase, genotypes=genotypes, ai=ai))


def _build(
    config: PrepConfig,
    genotypes: GenotypeASE,
    panel_fsnps: pd.DataFrame,
    rsnps: pd.DataFrame,
    gene_inputs: GeneInputs,
    ledger: ExclusionLedger,
    ase: Optional[_AseSide] = None,
) -> Outcome[tuple]:
    fsnp_outcome = prepare_fsnp_inputs(
        genotypes,
        panel_fsnps,
        gene_inputs.samples,
        c_ase=None if ase is None else ase.c_ase,
        ai=None if ase is None else ase.ai,
    )
    if isinstance(fsnp_outcome, Degraded):
        return fsnp_outcome
    fsnp_inputs: FsnpInputs = fsnp_outcome.payload
    logger.info(f"{config.gene}: effective number of exonic SNPs: {len(fsnp_inputs.fsnps)}")

    stan = build_stan_inputs(
        rsnps, fsnp_inputs, gene_inputs.counts, ledger,
        info_cutoff=config.info, threads=config.threads,
    )
    if isinstance(stan, Degraded):
        return stan
    if isinstance(stan, Success):
        return Success((fsnp_inputs, stan.payload))
    raise unexpected(stan)


def prepare_gene(config: PrepConfig) -> Outcome[GenePrep]:
    """Prepare sampler inputs for ``config.gene``.

    Returns:
        Success with GenePrep, or Degraded when no rSNP can be run

    Raises:
        PrepError: On invalid options or inputs that make the gene unusable
    """
    validate_config(config)
    gene = config.gene
    gene_inputs = extract_gene_inputs(config)
    ledger = ExclusionLedger(gene)

    # fSNPs typed in the samples
    fsnps = select_gene_fsnps(config.e_snps, gene)
    if isinstance(config.ex_fsnp, (list, tuple)):
        fsnps = exclude_fsnp_ids(fsnps, config.ex_fsnp)
    fsnp_ids = fsnps["id"].to_list()

    variants = resolve_variants(
        config.vcf, config.chrom, int(fsnps["pos"].min()), int(fsnps["pos"].max()), exclude=True,
    )
    ledger.extend_table(variants.excluded.loc[variants.excluded["id"].isin(fsnp_ids)])
    typed = variants.keep.subset(fsnp_ids)
    if not len(typed):
        raise NoFeatureSnpsError("No exonic snps in vcf")

    # Reference panel
    bounds = gene_coordinates(config.gene_coord, config.chrom, gene)
    window = extract_panel_window(
        config.le_file, config.h_file, bounds, config.snps, ledger,
        population=config.population, maf=config.maf,
    )

    absent = [f for f in fsnp_ids if f not in window.panel.index]
    if len(absent) == len(fsnp_ids):
        raise NoFeatureSnpsError("None of the fsnps are in the reference panel")
    ledger.extend(absent, NOT_IN_PANEL_MAF)

    genotypes = typed.subset([f for f in typed.ids if f in window.panel.index])
    if not len(genotypes):
        raise NoFeatureSnpsError("None of the fsnps are in the reference panel")
    panel_fsnps = window.panel.loc[[f for f in window.panel.index if f in set(genotypes.ids)]]

    fisher_outcome = _fisher_step(config, genotypes, panel_fsnps)
    if isinstance(fisher_outcome, Degraded):
        logger.warning(f"{gene}: {fisher_outcome.reason}")
        write_diagnostics(config, ledger)
        return fisher_outcome
    if not isinstance(fisher_outcome, Success):
        raise unexpected(fisher_outcome)
    fisher = fisher_outcome.payload
    genotypes = fisher.genotypes
    panel_fsnps = panel_fsnps.loc[[f for f in panel_fsnps.index if f in set(genotypes.ids)]]

    # Candidate rSNPs
    rsnps = window.rsnps
    tags = None
    if config.tagging:
        tagged = tag_snps(rsnps.T, config.tag_threshold, gene)
        ledger.extend(tagged.zero_variance, ZERO_SD)
        tags = tagged.lookup
        write_table(tags, diagnostic_path(config, "eqtl.tags.lookup.txt"))
        rsnps = rsnps.loc[tagged.tags]

    model = MODEL_NB if config.model == MODEL_NB else MODEL_NB_ASE
    fallback = None
    ase = None
    if model == MODEL_NB_ASE:
        cascade = _ase_cascade(config, genotypes)
        if isinstance(cascade, Degraded):
            fallback = cascade.reason
        elif isinstance(cascade, Success):
            ase = cascade.payload
        else:
            raise unexpected(cascade)

    if ase is not None:
        ase_panel = panel_fsnps.loc[[f for f in panel_fsnps.index if f in set(ase.genotypes.ids)]]
        built = _build(config, ase.genotypes, ase_panel, rsnps, gene_inputs, ledger, ase)
    elif config.model == MODEL_NB_ASE:
        logger.warning(f"{gene}: {fallback}")
        write_diagnostics(config, ledger)
        return Degraded(fallback)
    else:
        if fallback is not None:
            logger.info(f"{gene}: {fallback}; using total counts only")
        model = MODEL_NB
        built = _build(config, genotypes, panel_fsnps, rsnps, gene_inputs, ledger)

    if isinstance(built, Degraded):
        logger.warning(f"{gene}: {built.reason}")
        write_diagnostics(config, ledger)
        return built
    if not isinstance(built, Success):
        raise unexpected(built)

    fsnp_inputs, stan = built.payload
    prep = GenePrep(
        gene=gene,
        model=model,
        stan_data={snp_id: inp.to_stan_data(gene_inputs.covariates)
                   for snp_id, inp in stan.inputs.items()},
        inputs=stan.inputs,
        probs=gene_inputs.probs,
        tagged=config.tagging,
        nfsnps=len(fsnp_inputs.fsnps),
        info=stan.info,
        ledger=ledger.to_frame(),
        tags=tags,
        c_ase=None if ase is None else ase.c_ase,
        min_ai=fsnp_inputs.min_ai,
        fisher_all=fisher.fisher_all,
        fisher_kept=fisher.kept,
        ase_fallback=fallback,
    )
    write_diagnostics(config, ledger, prep)

    logger.info(f"{gene}: {len(prep.stan_data)} rSNPs ready for the {model} model")
    return Success(prep)
