"""Shannon entropy and Pielou evenness over a clone-size distribution."""

from __future__ import annotations

import math
from dataclasses import dataclass
from numbers import Integral
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .errors import InvalidCountError, NoClonesError

CloneSizes = Union[pd.DataFrame, pd.Series, Mapping[str, int], Iterable[Tuple[str, int]]]


@dataclass(frozen=True)
class DiversityResult:
    """Diversity of one sample.

    ``evenness`` is ``None`` when the sample holds a single clone: Pielou
    evenness divides by ``ln(num_clones)`` and is undefined there, which is
    not the same as an evenness of zero.
    """

    shannon: float
    evenness: Optional[float]
    num_clones: int
    num_cells: int
    simpson: float

    @property
    def evenness_defined(self) -> bool:
        return self.evenness is not None

    def as_row(self) -> Dict[str, object]:
        return {
            "shannon": self.shannon,
            "evenness": self.evenness if self.evenness is not None else np.nan,
            "evenness_defined": self.evenness_defined,
            "simpson": self.simpson,
            "num_clones": self.num_clones,
            "num_cells": self.num_cells,
        }


def _clone_sizes(counts: CloneSizes, sample_id: Optional[str]) -> list:
    if isinstance(counts, pd.DataFrame):
        return counts["count"].tolist()
    if isinstance(counts, pd.Series):
        return counts.tolist()
    if isinstance(counts, Mapping):
        return list(counts.values())
    try:
        return [size for _, size in counts]
    except (TypeError, ValueError) as exc:
        raise InvalidCountError("Clone sizes must be (junction, count) pairs", sample_id=sample_id) from exc


def _check_sizes(sizes: list, sample_id: Optional[str]) -> np.ndarray:
    for size in sizes:
        integral = isinstance(size, Integral) and not isinstance(size, bool)
        if not integral and not (isinstance(size, float) and size.is_integer()):
            raise InvalidCountError(f"Clone size {size!r} is not an integer", sample_id=sample_id)
        if size <= 0:
            raise InvalidCountError(f"Clone size {size} is not strictly positive", sample_id=sample_id)
    return np.asarray(sizes, dtype="float64")


def diversity(counts: CloneSizes, *, sample_id: Optional[str] = None) -> DiversityResult:
    """Compute Shannon, Pielou evenness and Gini-Simpson from clone sizes."""
    sizes = _check_sizes(_clone_sizes(counts, sample_id), sample_id)
    num_clones = int(sizes.size)
    if num_clones == 0:
        raise NoClonesError("No clonotypes to measure", sample_id=sample_id)

    num_cells = int(sizes.sum())
    if num_clones == 1:
        return DiversityResult(shannon=0.0, evenness=None, num_clones=1, num_cells=num_cells, simpson=0.0)

    proportions = sizes / num_cells
    shannon = float(-(proportions * np.log(proportions)).sum())
    evenness = shannon / math.log(num_clones)
    simpson = float(1.0 - (proportions ** 2).sum())
    return DiversityResult(
        shannon=shannon,
        evenness=evenness,
        num_clones=num_clones,
        num_cells=num_cells,
        simpson=simpson,
    )
