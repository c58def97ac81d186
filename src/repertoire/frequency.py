"""Per-sample gene usage frequencies."""

from __future__ import annotations

from typing import Optional

import pandas as pd

from .errors import EmptyRepertoireError

GENE_AXES = ("v_gene", "j_gene", "v_family", "j_family")
FREQUENCY_COLUMNS = ["gene", "count", "frequency"]


def _check_axis(axis: str) -> None:
    if axis not in GENE_AXES:
        raise ValueError(f"Unknown gene axis '{axis}'; expected one of {GENE_AXES}")


def gene_frequencies(resolved: pd.DataFrame, axis: str = "v_gene", *, sample_id: Optional[str] = None) -> pd.DataFrame:
    """Count resolved sequences per gene on ``axis`` and normalise to frequencies.

    Sequences without a label on the axis are left out of both the counts and
    the total. Rows are ordered by descending count, then gene label.
    """
    _check_axis(axis)
    labels = resolved[axis].dropna()
    labels = labels[labels != ""]
    total = len(labels)
    if total == 0:
        raise EmptyRepertoireError(f"No sequences with a {axis} label", sample_id=sample_id)

    counts = labels.value_counts()
    table = pd.DataFrame({"gene": counts.index.astype(str), "count": counts.to_numpy(dtype="int64")})
    table["frequency"] = table["count"] / total
    table = table.sort_values(["count", "gene"], ascending=[False, True], kind="mergesort")
    return table.reset_index(drop=True)[FREQUENCY_COLUMNS]


def complete_axis(cohort_table: pd.DataFrame) -> pd.DataFrame:
    """Zero-fill genes absent from a sample so every sample spans the cohort vocabulary.

    Expects a cohort frequency table with ``sample_id``, ``gene``, ``count`` and
    ``frequency``; any other per-sample columns (``axis``, ``group_label``) are
    carried onto the filled rows.
    """
    if cohort_table.empty:
        return cohort_table.copy()
    genes = sorted(cohort_table["gene"].unique())
    samples = list(dict.fromkeys(cohort_table["sample_id"]))
    full_index = pd.MultiIndex.from_product([samples, genes], names=["sample_id", "gene"])

    values = cohort_table.set_index(["sample_id", "gene"])[["count", "frequency"]]
    filled = values.reindex(full_index).fillna({"count": 0, "frequency": 0.0})
    filled["count"] = filled["count"].astype("int64")
    filled = filled.reset_index()

    extra = [col for col in cohort_table.columns if col not in {"gene", "count", "frequency"}]
    per_sample = cohort_table[extra].drop_duplicates("sample_id")
    return filled.merge(per_sample, on="sample_id", how="left")[cohort_table.columns.tolist()]
