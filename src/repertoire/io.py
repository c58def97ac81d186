"""Read cohort inputs and write cohort tables."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Union

import pandas as pd

from .cohort import CohortResult
from .errors import MalformedInputError
from .locus import position_lookup
from .utils import ensure_dir

FAILURES_FILENAME = "failures.json"
DIVERSITY_FILENAME = "diversity.tsv"


def _sep_for(path: Path) -> str:
    return "," if ".csv" in path.suffixes else "\t"


def metadata_frame(entries: Union[Mapping[str, object], Iterable[Mapping[str, object]]]) -> pd.DataFrame:
    """Build a ``sample_id, group_label`` table from ``{sample: group}`` or row dicts."""
    if isinstance(entries, Mapping):
        rows = [{"sample_id": str(sample), "group_label": group} for sample, group in entries.items()]
    else:
        rows = [dict(entry) for entry in entries]
    return pd.DataFrame(rows, columns=["sample_id", "group_label"])


def read_metadata(path: Union[str, Path]) -> pd.DataFrame:
    path = Path(path)
    df = pd.read_csv(path, sep=_sep_for(path), dtype=str)
    missing = [column for column in ("sample_id", "group_label") if column not in df.columns]
    if missing:
        raise MalformedInputError(f"Sample metadata {path} missing columns: {missing}")
    return df


def read_locus_table(path: Union[str, Path]) -> Dict[str, int]:
    """Read a ``gene_label, start_position`` table into a position lookup."""
    path = Path(path)
    df = pd.read_csv(path, sep=_sep_for(path))
    logging.info("Loaded %d gene positions from %s", len(df), path)
    return position_lookup(df)


def write_cohort(result: CohortResult, output_dir: Union[str, Path], *, frequency_tables: Optional[Dict[str, pd.DataFrame]] = None) -> Path:
    """Write one TSV per gene axis, the diversity TSV and ``failures.json``."""
    output_dir = Path(output_dir)
    ensure_dir(output_dir)
    tables = frequency_tables if frequency_tables is not None else result.frequencies
    for axis, table in tables.items():
        path = output_dir / f"{axis}_frequencies.tsv"
        table.to_csv(path, sep="\t", index=False)
        logging.info("Wrote %s frequencies to %s", axis, path)
    result.diversity.to_csv(output_dir / DIVERSITY_FILENAME, sep="\t", index=False)

    payload = {
        "succeeded": result.succeeded,
        "failures": [asdict(failure) for failure in result.failures],
        "cancelled": result.cancelled,
    }
    (output_dir / FAILURES_FILENAME).write_text(json.dumps(payload, indent=2))
    return output_dir
