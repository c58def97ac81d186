"""Order gene axes by physical position on the receptor locus."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Union

import pandas as pd

from .schemas import validate_locus_table

PositionSource = Union[pd.DataFrame, Mapping[str, int]]


def position_lookup(source: PositionSource) -> Dict[str, int]:
    """Build ``gene label -> start coordinate`` from a ``gene_label, start_position`` table or a mapping."""
    if isinstance(source, pd.DataFrame):
        table = source.dropna(subset=["start_position"]) if "start_position" in source.columns else source
        table = validate_locus_table(table)
        lookup: Dict[str, int] = {}
        for gene, start in zip(table["gene_label"], table["start_position"]):
            # first occurrence wins for genes listed twice
            lookup.setdefault(str(gene), int(start))
        return lookup
    return {str(gene): int(start) for gene, start in source.items()}


def order_axis(frequency_table: pd.DataFrame, lookup: PositionSource) -> pd.DataFrame:
    """Attach a ``start`` column and sort rows by locus position.

    Genes missing from the lookup keep a null ``start`` and sort after every
    positioned gene. The ``gene`` column becomes an ordered categorical in
    that axis order.
    """
    positions = position_lookup(lookup)
    starts = pd.DataFrame(
        {"gene": list(positions.keys()), "start": pd.array(list(positions.values()), dtype="Int64")}
    )
    table = frequency_table.copy()
    table["gene"] = table["gene"].astype(str)
    joined = table.merge(starts, on="gene", how="left", validate="many_to_one")

    unplaced = sorted(set(joined.loc[joined["start"].isna(), "gene"]))
    if unplaced:
        logging.info("%d genes without a locus position sort last: %s", len(unplaced), ", ".join(unplaced[:10]))

    sort_keys = ["start", "gene"] + (["sample_id"] if "sample_id" in joined.columns else [])
    joined = joined.sort_values(sort_keys, na_position="last", kind="mergesort").reset_index(drop=True)
    categories = list(dict.fromkeys(joined["gene"]))
    joined["gene"] = pd.Categorical(joined["gene"], categories=categories, ordered=True)
    return joined


def axis_order(frequency_table: pd.DataFrame, lookup: PositionSource) -> List[str]:
    """Gene labels in locus order, unpositioned genes last."""
    return list(order_axis(frequency_table, lookup)["gene"].cat.categories)
