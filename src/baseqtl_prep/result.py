"""
Tagged result for stages that may fall back to a simpler model.

A stage returns ``Success(payload)`` when it produced usable data, or
``Degraded(reason)`` when there is not enough information to continue with
the allele-specific side of the model. Consumers check both cases and raise
``TypeError`` on anything else.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    payload: T


@dataclass(frozen=True)
class Degraded:
    reason: str

    def __str__(self) -> str:
        return self.reason


Outcome = Union[Success[T], Degraded]


def unexpected(value: object) -> TypeError:
    """Error for a value that is neither Success nor Degraded."""
    return TypeError(f"Expected Success or Degraded, got {type(value).__name__}")
