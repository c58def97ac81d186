"""Load per-sample repertoire records and filter them to one receptor chain."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import pandas as pd

from .config import DEFAULT_CHAIN_FIELD, DEFAULT_CHAIN_MARKER, DEFAULT_SAMPLE_PATTERN
from .errors import MalformedInputError, SampleNotFoundError
from .schemas import missing_columns, validate_record_table

COMPRESSED_SUFFIXES = ("", ".gz", ".bz2", ".xz", ".zip")
STRING_COLUMNS = ["sequence_id", "v_call", "j_call", "junction_aa"]

RecordSource = Union[str, Path, object]
Resolver = Callable[[str], RecordSource]


def resolve_sample_path(sample_id: str, sample_dir: Path, pattern: str = DEFAULT_SAMPLE_PATTERN) -> Path:
    """Map a sample identifier to its record file, accepting compressed variants."""
    base = Path(sample_dir) / pattern.format(sample_id=sample_id)
    for suffix in COMPRESSED_SUFFIXES:
        candidate = base.with_name(base.name + suffix)
        if candidate.is_file():
            return candidate
    raise SampleNotFoundError(f"No record file matching {base}", sample_id=sample_id)


@dataclass(frozen=True)
class SampleResolver:
    """Naming-convention resolver: ``<sample_dir>/<pattern>`` with ``{sample_id}`` filled in."""

    sample_dir: Path
    pattern: str = DEFAULT_SAMPLE_PATTERN

    def __call__(self, sample_id: str) -> Path:
        return resolve_sample_path(sample_id, Path(self.sample_dir), self.pattern)


def _normalise_productive(series: pd.Series) -> pd.Series:
    mapping = {
        "true": True,
        "t": True,
        "yes": True,
        "y": True,
        "1": True,
        "productive": True,
        "false": False,
        "f": False,
        "no": False,
        "n": False,
        "0": False,
        "unproductive": False,
    }
    text = series.astype(str).str.strip().str.lower()
    return text.map(mapping).astype("boolean")


def _blank_to_na(series: pd.Series) -> pd.Series:
    def clean(value: object) -> Optional[str]:
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return None
        text = str(value).strip()
        return text or None

    return series.map(clean).astype(object)


def _coerce_counts(series: pd.Series, sample_id: Optional[str]) -> pd.Series:
    counts = pd.to_numeric(series, errors="coerce").astype("float64")
    unparseable = counts.isna() & series.notna() & (series.astype(str).str.strip() != "")
    if unparseable.any():
        raise MalformedInputError(
            f"Non-numeric consensus_count values: {series[unparseable].head(5).tolist()}",
            sample_id=sample_id,
        )
    n_missing = int(counts.isna().sum())
    if n_missing:
        logging.warning("%s: %d records with missing consensus_count read as 0", sample_id, n_missing)
        counts = counts.fillna(0)
    if (counts < 0).any() or (counts != counts.round()).any():
        raise MalformedInputError("consensus_count must be a non-negative integer", sample_id=sample_id)
    return counts.astype("int64")


def normalise_records(df: pd.DataFrame, *, sample_id: Optional[str] = None) -> pd.DataFrame:
    """Return a typed copy of a raw record table with canonical columns."""
    missing = missing_columns(df)
    if missing:
        raise MalformedInputError(f"Record source missing required columns: {missing}", sample_id=sample_id)

    records = df.copy()
    for column in STRING_COLUMNS:
        records[column] = _blank_to_na(records[column])
    if records["sequence_id"].isna().any():
        raise MalformedInputError("Records without sequence_id", sample_id=sample_id)
    records["consensus_count"] = _coerce_counts(records["consensus_count"], sample_id)
    if "productive" in records.columns:
        records["productive"] = _normalise_productive(records["productive"])
    if sample_id is not None:
        records["sample_id"] = sample_id
    return validate_record_table(records.reset_index(drop=True), sample_id=sample_id)


def read_records(source: RecordSource, *, sample_id: Optional[str] = None, delimiter: str = "\t") -> pd.DataFrame:
    """Read one sample's record table from a path or an open buffer."""
    logging.debug("Reading records for %s from %s", sample_id, source)
    if isinstance(source, (str, Path)) and not Path(source).exists():
        raise SampleNotFoundError(f"Record source not found: {source}", sample_id=sample_id)
    try:
        raw = pd.read_csv(source, sep=delimiter, dtype=str, keep_default_na=True)
    except pd.errors.EmptyDataError as exc:
        raise MalformedInputError(f"Record source is empty: {source}", sample_id=sample_id) from exc
    except pd.errors.ParserError as exc:
        raise MalformedInputError(f"Unparseable record source {source}: {exc}", sample_id=sample_id) from exc
    return normalise_records(raw, sample_id=sample_id)


def filter_chain(records: pd.DataFrame, marker: str = DEFAULT_CHAIN_MARKER, field: str = DEFAULT_CHAIN_FIELD) -> pd.DataFrame:
    """Keep records whose ``field`` contains ``marker`` as a literal substring."""
    if field not in records.columns:
        raise MalformedInputError(f"Chain filter field '{field}' not present in records")
    mask = records[field].map(lambda call: isinstance(call, str) and marker in call).astype(bool)
    return records[mask].reset_index(drop=True)


def filter_productive(records: pd.DataFrame) -> pd.DataFrame:
    if "productive" not in records.columns:
        return records
    mask = records["productive"].fillna(False).astype(bool)
    return records[mask].reset_index(drop=True)


def _read_with_retries(
    sample_id: str,
    resolver: Resolver,
    delimiter: str,
    retries: int,
    retry_delay: float,
) -> pd.DataFrame:
    attempt = 0
    while True:
        try:
            source = resolver(sample_id)
            if source is None:
                raise SampleNotFoundError("Resolver returned no record source", sample_id=sample_id)
            return read_records(source, sample_id=sample_id, delimiter=delimiter)
        except FileNotFoundError:
            raise
        except OSError as exc:
            if attempt >= retries:
                raise
            attempt += 1
            logging.warning("%s: record source access failed (%s); retry %d/%d", sample_id, exc, attempt, retries)
            time.sleep(retry_delay * attempt)


def load_sample(
    sample_id: str,
    resolver: Resolver,
    *,
    chain_marker: str = DEFAULT_CHAIN_MARKER,
    chain_field: str = DEFAULT_CHAIN_FIELD,
    productive_only: bool = False,
    delimiter: str = "\t",
    retries: int = 0,
    retry_delay: float = 0.5,
) -> pd.DataFrame:
    """Resolve, read and chain-filter the records of one sample."""
    records = _read_with_retries(sample_id, resolver, delimiter, retries, retry_delay)
    filtered = filter_chain(records, chain_marker, chain_field)
    if productive_only:
        filtered = filter_productive(filtered)
    logging.info(
        "Loaded %s: %d records, %d after %s filter on %s",
        sample_id,
        len(records),
        len(filtered),
        chain_marker,
        chain_field,
    )
    return filtered
