import os
import sys
from pathlib import Path

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import pandas as pd
import pytest

RECORD_COLUMNS = ["sequence_id", "v_call", "j_call", "consensus_count", "junction_aa", "productive"]


def _make_records(rows):
    """Record table in the loader's normalised shape from ``(id, v, j, count, junction)`` tuples."""
    from src.repertoire.loader import normalise_records

    frame = pd.DataFrame(
        [
            {
                "sequence_id": row[0],
                "v_call": row[1],
                "j_call": row[2],
                "consensus_count": row[3],
                "junction_aa": row[4],
                "productive": row[5] if len(row) > 5 else "T",
            }
            for row in rows
        ],
        columns=RECORD_COLUMNS,
    )
    return normalise_records(frame)


def _write_sample(directory: Path, sample_id: str, rows, *, suffix: str = ".tsv", compression=None) -> Path:
    path = directory / f"{sample_id}{suffix}"
    frame = pd.DataFrame(rows, columns=RECORD_COLUMNS[: len(rows[0])] if rows else RECORD_COLUMNS)
    frame.to_csv(path, sep="\t", index=False, compression=compression)
    return path


@pytest.fixture
def example_rows():
    """Three records where sequence 1 is called twice with different support."""
    return [
        ("1", "TRAV1*01", "TRAJ2*01", 3, "CAS"),
        ("1", "TRAV1*02", "TRAJ2*01", 7, "CAS"),
        ("2", "TRAV3*01", "TRAJ2*01", 1, "CAT"),
    ]


@pytest.fixture
def sample_dir(tmp_path: Path, example_rows) -> Path:
    """Directory holding two readable samples (A, B); sample C is deliberately absent."""
    directory = tmp_path / "samples"
    directory.mkdir()
    _write_sample(directory, "A", example_rows)
    _write_sample(
        directory,
        "B",
        [
            ("s1", "TRAV1*01", "TRAJ5*01", 4, "CAVR"),
            ("s2", "TRAV2*01", "TRAJ5*01", 2, "CAVK"),
            ("s3", "TRBV9*01", "TRBJ1-1*01", 9, "CASSL"),
            ("s4", "TRAV2*01", "TRAJ7*01", 5, "CAVK"),
        ],
    )
    return directory


@pytest.fixture
def make_records():
    return _make_records


@pytest.fixture
def write_sample():
    return _write_sample
