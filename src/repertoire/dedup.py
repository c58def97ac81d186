"""Collapse duplicate sequence identifiers to their best-supported record.

Tie-break policy: when several records of one ``sequence_id`` share the
maximum ``consensus_count``, the record encountered first in input order is
kept. Output rows follow the order in which each ``sequence_id`` first
appears, so running the collapse on its own output returns it unchanged.
"""

from __future__ import annotations

import logging
from typing import Dict, List

import pandas as pd

from .genes import normalise_genes


def group_by_sequence(records: pd.DataFrame) -> Dict[str, List[int]]:
    """Map each ``sequence_id`` to the positions of its records, in first-encounter order."""
    groups: Dict[str, List[int]] = {}
    for position, sequence_id in enumerate(records["sequence_id"]):
        groups.setdefault(sequence_id, []).append(position)
    return groups


def best_position(counts: List[int], positions: List[int]) -> int:
    """Position holding the maximum count; the earliest position wins ties."""
    best = positions[0]
    for position in positions[1:]:
        if counts[position] > counts[best]:
            best = position
    return best


def select_best(records: pd.DataFrame) -> pd.DataFrame:
    """Return one record per ``sequence_id`` carrying the maximum ``consensus_count``."""
    groups = group_by_sequence(records)
    counts = records["consensus_count"].tolist()
    keep = [best_position(counts, positions) for positions in groups.values()]
    resolved = records.iloc[keep].reset_index(drop=True)
    n_dropped = len(records) - len(resolved)
    if n_dropped:
        logging.info("Collapsed %d duplicate records across %d sequence ids", n_dropped, len(resolved))
    return resolved


def resolve(records: pd.DataFrame) -> pd.DataFrame:
    """Deduplicate then attach allele-stripped gene labels."""
    return normalise_genes(select_best(records))
