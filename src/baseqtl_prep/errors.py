"""
Fatal errors raised while preparing a gene.

Each error carries a ``kind`` label so callers can classify the failure
without parsing the message. Insufficient ASE is never an error; see
``baseqtl_prep.result.Degraded``.
"""

from typing import Iterable


class PrepError(Exception):
    """Base class for failures that abort the run for a gene."""

    kind = "preparation error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidConfigError(PrepError):
    kind = "invalid configuration"


class MissingInputFilesError(PrepError):
    """One or more input paths do not exist. All of them are listed."""

    kind = "missing input files"

    def __init__(self, paths: Iterable[str]) -> None:
        self.paths = [str(p) for p in paths]
        super().__init__(f"invalid file names {', '.join(self.paths)}")


class GeneNotFoundError(PrepError):
    kind = "gene not found"


class NoFeatureSnpsError(PrepError):
    kind = "no fsnps"


class NoPanelSnpsError(PrepError):
    kind = "no snps extracted from reference panel"


class ZeroVarianceError(PrepError):
    kind = "zero variance"


class TaggingError(PrepError):
    kind = "single snp tagging"
