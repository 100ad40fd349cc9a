"""
Argument and file checks run before any gene data is read.
"""

import math
import numbers
from pathlib import Path
from typing import List, Tuple

from ..config import MODELS, NO_TAGGING, POPULATIONS, PrepConfig
from ..errors import InvalidConfigError, MissingInputFilesError
from ..io.variant_source import snp_position


def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def describe_inputs(config: PrepConfig) -> List[Tuple[str, str]]:
    """(label, path) for every input file the run will read."""
    rows = [
        ("Counts", config.counts_file),
        ("fSNPs", config.e_snps),
        ("Gene coordinates", config.gene_coord),
        ("VCF", config.vcf),
        ("Panel legend", config.le_file),
        ("Panel haplotypes", config.h_file),
    ]
    optional = [
        ("Unique fSNPs", config.u_esnps),
        ("Panel samples", config.sample_file),
        ("Covariates", config.covariates),
        ("Additional covariates", config.additional_cov),
        ("AI estimates", config.ai_estimate),
    ]
    rows.extend((label, path) for label, path in optional if path is not None)
    return [(label, str(path)) for label, path in rows]


def validate_config(config: PrepConfig) -> None:
    """Check the option set of a gene run.

    Raises:
        InvalidConfigError: On an unknown model, population or malformed value
        MissingInputFilesError: If the output directory or any input file
            does not exist; all missing paths are listed
    """
    if config.model is not None and config.model not in MODELS:
        raise InvalidConfigError(
            f"Not valid model selection, model should be one of {', '.join(MODELS)}"
        )

    if config.population not in POPULATIONS:
        raise InvalidConfigError(
            f"Invalid population {config.population!r}, choose from {', '.join(POPULATIONS)}"
        )

    if not Path(config.out).is_dir():
        raise MissingInputFilesError([config.out])

    missing = [path for _, path in describe_inputs(config) if not Path(path).exists()]
    if missing:
        raise MissingInputFilesError(missing)

    threshold = config.tag_threshold
    if threshold != NO_TAGGING and not (_is_number(threshold) and 0 <= threshold <= 1):
        raise InvalidConfigError(f"Invalid tag_threshold {threshold!r}")

    numeric = {
        "min_ase": config.min_ase,
        "maf": config.maf,
        "min_ase_snp": config.min_ase_snp,
        "min_ase_n": config.min_ase_n,
        "info": config.info,
    }
    if config.ai_estimate is not None:
        numeric["pretotal_reads"] = config.pretotal_reads
    if config.ex_fsnp is not None and not isinstance(config.ex_fsnp, (list, tuple)):
        numeric["ex_fsnp"] = config.ex_fsnp

    invalid = [name for name, value in numeric.items()
               if value is not None and not _is_number(value)]
    if invalid:
        raise InvalidConfigError(f"invalid arguments: {', '.join(invalid)}")

    if config.prob is not None and not (_is_number(config.prob) and 0 < config.prob < 1):
        raise InvalidConfigError(f"prob must be in (0, 1), got {config.prob!r}")

    if not isinstance(config.threads, int) or isinstance(config.threads, bool) or config.threads < 1:
        raise InvalidConfigError(f"threads must be a positive integer, got {config.threads!r}")

    if isinstance(config.snps, (list, tuple)):
        if not config.snps or all(math.isnan(snp_position(s)) for s in config.snps):
            raise InvalidConfigError(f"Invalid format for snps {', '.join(map(str, config.snps))}")
    elif not _is_number(config.snps):
        raise InvalidConfigError(f"snps must be a window size or a list of ids, got {config.snps!r}")
