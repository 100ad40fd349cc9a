"""
Run configuration for baseqtl-prep.

Holds the per-gene option set and loads it from a YAML file. Values given on
the command line are merged over file values, with the command line taking
precedence.
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import List, Optional, Union
import logging

import yaml

from .errors import InvalidConfigError


POPULATIONS = ("EUR", "AFR", "AMR", "EAS", "SAS", "ALL")
MODELS = ("both", "NB-ASE", "NB")
REQUIRED_FIELDS = ("gene", "chrom", "counts_file", "e_snps", "gene_coord", "vcf", "le_file", "h_file")

# Disables LD tagging
NO_TAGGING = "no"


@dataclass
class PrepConfig:
    """Options for preparing the inputs of one gene.

    Attributes:
        gene: Gene id as written in the counts file
        chrom: Chromosome of the gene
        snps: Cis-window flank in bp, or explicit rSNP ids (pos:ref:alt)
        counts_file: Total counts per gene (first column gene_id)
        e_snps: Exonic SNPs (fSNPs) per gene
        gene_coord: Gene coordinates, either schema
        vcf: VCF with phased GT and AS for the fSNPs
        le_file: Reference panel legend (legend.gz)
        h_file: Reference panel haplotypes (hap.gz)
        covariates: Covariates matrix, gene specific or per sample
        additional_cov: Gene independent covariates keyed by sample
        u_esnps: Unique fSNPs per gene, restricts ASE counts
        sample_file: Reference panel sample description
        population: Panel population used for allele frequencies
        maf: Minor allele frequency cut-off for panel SNPs
        min_ase: Minimum ASE reads for an individual to be informative
        min_ase_snp: Minimum ASE reads for a single fSNP in one individual
        min_ase_n: Minimum number of informative individuals
        tag_threshold: r2 threshold for LD tagging, or "no"
        info: Cut-off for the var(E(G))/var(G) info score
        out: Output directory for diagnostics
        model: "both", "NB-ASE" or "NB"
        prefix: File prefix for diagnostics, defaults to the gene id
        ex_fsnp: fSNP ids to exclude, or a Fisher p-value cut-off
        prob: Posterior mass for reported intervals
        ai_estimate: Reference panel bias estimates per fSNP
        pretotal_reads: Minimum pre-remapping reads for a bias estimate
        save_input: Persist the sampler inputs and ASE counts
        threads: Worker processes for the per-rSNP stage
    """
    gene: str
    chrom: str
    counts_file: str
    e_snps: str
    gene_coord: str
    vcf: str
    le_file: str
    h_file: str
    snps: Union[int, float, List[str]] = 5 * 10**5
    covariates: Optional[str] = None
    additional_cov: Optional[str] = None
    u_esnps: Optional[str] = None
    sample_file: Optional[str] = None
    population: str = "EUR"
    maf: Optional[float] = 0.05
    min_ase: Union[int, float] = 5
    min_ase_snp: Optional[Union[int, float]] = 5
    min_ase_n: Optional[Union[int, float]] = 5
    tag_threshold: Union[float, str] = 0.9
    info: Optional[float] = 0.3
    out: str = "."
    model: Optional[str] = None
    prefix: Optional[str] = None
    ex_fsnp: Optional[Union[float, List[str]]] = None
    prob: Optional[float] = None
    ai_estimate: Optional[str] = None
    pretotal_reads: Union[int, float] = 100
    save_input: bool = False
    threads: int = 1
    extra: dict = field(default_factory=dict, repr=False)

    @property
    def tagging(self) -> bool:
        return self.tag_threshold != NO_TAGGING

    @property
    def label(self) -> str:
        """Prefix for diagnostic file names."""
        return self.prefix if self.prefix is not None else self.gene

    def to_dict(self) -> dict:
        """Convert config to dictionary, excluding None values."""
        return {k: v for k, v in asdict(self).items()
                if v is not None and k != "extra"}


def load_config(path: Union[str, Path], **overrides) -> PrepConfig:
    """Load a run configuration from YAML.

    Unknown keys are kept aside in ``extra`` and reported at debug level.
    Keyword overrides that are not None replace file values.

    Raises:
        InvalidConfigError: If a required option is missing
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    data.update({k: v for k, v in overrides.items() if v is not None})
    return config_from_dict(data)


def config_from_dict(data: dict) -> PrepConfig:
    """Build a run configuration, keeping unknown keys aside in ``extra``.

    Raises:
        InvalidConfigError: If a required option is missing
    """
    valid_fields = {f.name for f in fields(PrepConfig)} - {"extra"}
    unknown = {k: v for k, v in data.items() if k not in valid_fields}
    if unknown:
        logging.debug(f"Ignoring unknown config keys: {', '.join(unknown)}")

    filtered = {k: v for k, v in data.items() if k in valid_fields}
    missing = [name for name in REQUIRED_FIELDS if filtered.get(name) is None]
    if missing:
        raise InvalidConfigError(f"Missing required options: {', '.join(missing)}")
    return PrepConfig(**filtered, extra=unknown)


def save_config(config: PrepConfig, path: Union[str, Path]) -> Path:
    """Save configuration to a YAML file."""
    path = Path(path)
    with open(path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    return path


# Verbosity level mapping for CLI
VERBOSITY_LEVELS = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}


def setup_logging(verbosity: int = 0, log_file: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG
        log_file: Optional file to write logs to
    """
    level = VERBOSITY_LEVELS.get(verbosity, logging.DEBUG)

    if verbosity >= 2:
        fmt = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s"
    elif verbosity >= 1:
        fmt = "%(levelname)s: %(message)s"
    else:
        fmt = "%(message)s"

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=handlers,
        force=True,
    )
