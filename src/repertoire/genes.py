"""Gene-level labels derived from V/J segment calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pandas as pd

from .errors import MalformedInputError

ALLELE_SEPARATOR = "*"
FAMILY_SEPARATOR = "-"


@dataclass(frozen=True)
class GeneCall:
    gene: str
    allele: Optional[str] = None


def parse_gene_call(raw: str) -> GeneCall:
    """Split a raw segment call such as ``TRAV1*01`` into gene and allele.

    A call without an allele separator is returned whole as the gene with no
    allele. Empty calls, calls with an empty gene part (``*01``) and calls
    containing whitespace raise ``MalformedInputError``.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedInputError(f"Empty gene call: {raw!r}")
    if any(ch.isspace() for ch in raw):
        raise MalformedInputError(f"Unexpected whitespace in gene call: {raw!r}")
    gene, sep, allele = raw.partition(ALLELE_SEPARATOR)
    if not gene:
        raise MalformedInputError(f"Gene call has no gene name: {raw!r}")
    return GeneCall(gene=gene, allele=allele if sep else None)


def gene_label(raw: object) -> Optional[str]:
    """Allele-stripped gene label; ``None`` for missing or blank calls. Never raises."""
    if raw is None or raw is pd.NA:
        return None
    if isinstance(raw, float) and pd.isna(raw):
        return None
    text = str(raw).strip()
    gene = text.split(ALLELE_SEPARATOR, 1)[0]
    return gene or None


def gene_family(gene: Optional[str]) -> Optional[str]:
    """``TRAV12-2`` -> ``TRAV12``; genes without a sub-family keep their name."""
    if not gene:
        return None
    return gene.split(FAMILY_SEPARATOR, 1)[0]


def normalise_genes(records: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of ``records`` with ``v_gene``, ``j_gene`` and family columns added."""
    resolved = records.copy()
    for prefix in ("v", "j"):
        resolved[f"{prefix}_gene"] = resolved[f"{prefix}_call"].map(gene_label)
        resolved[f"{prefix}_family"] = resolved[f"{prefix}_gene"].map(gene_family)
    return resolved
