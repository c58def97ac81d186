"""Clone sizes keyed by junction amino-acid sequence."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import pandas as pd

CLONOTYPE_COLUMNS = ["junction_aa", "count"]


@dataclass(frozen=True)
class ClonotypeTally:
    counts: pd.DataFrame
    n_excluded: int

    @property
    def num_clones(self) -> int:
        return int(len(self.counts))

    @property
    def num_cells(self) -> int:
        return int(self.counts["count"].sum()) if not self.counts.empty else 0


def count_clonotypes(resolved: pd.DataFrame, *, sample_id: Optional[str] = None) -> ClonotypeTally:
    """Group resolved sequences by exact ``junction_aa``; records without one are tallied apart."""
    junctions = resolved["junction_aa"]
    present = junctions.map(lambda value: isinstance(value, str) and value != "").astype(bool)
    n_excluded = int((~present).sum())
    if n_excluded:
        logging.warning("%s: %d records excluded for missing junction", sample_id or "sample", n_excluded)

    sizes = junctions[present].value_counts()
    counts = pd.DataFrame({"junction_aa": sizes.index.astype(str), "count": sizes.to_numpy(dtype="int64")})
    counts = counts.sort_values(["count", "junction_aa"], ascending=[False, True], kind="mergesort")
    return ClonotypeTally(counts=counts.reset_index(drop=True)[CLONOTYPE_COLUMNS], n_excluded=n_excluded)


def clonotype_counts(resolved: pd.DataFrame, *, sample_id: Optional[str] = None) -> pd.DataFrame:
    return count_clonotypes(resolved, sample_id=sample_id).counts
