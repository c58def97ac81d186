"""Tests for loading and chain-filtering sample records."""

from __future__ import annotations

import io
from pathlib import Path

import pandas as pd
import pytest

from src.repertoire.errors import MalformedInputError, SampleNotFoundError
from src.repertoire.loader import (
    SampleResolver,
    filter_chain,
    filter_productive,
    load_sample,
    read_records,
    resolve_sample_path,
)


def test_resolve_sample_path_finds_compressed_file(tmp_path: Path, write_sample, example_rows):
    write_sample(tmp_path, "S1", example_rows, suffix=".tsv.gz", compression="gzip")

    path = resolve_sample_path("S1", tmp_path)

    assert path.name == "S1.tsv.gz"
    records = read_records(path, sample_id="S1")
    assert len(records) == 3
    assert records["sample_id"].unique().tolist() == ["S1"]


def test_resolve_sample_path_missing(tmp_path: Path):
    with pytest.raises(SampleNotFoundError) as excinfo:
        resolve_sample_path("nope", tmp_path)
    assert excinfo.value.sample_id == "nope"
    assert isinstance(excinfo.value, FileNotFoundError)


def test_read_records_types(sample_dir: Path):
    records = read_records(sample_dir / "A.tsv", sample_id="A")

    assert records["consensus_count"].dtype == "int64"
    assert records["consensus_count"].tolist() == [3, 7, 1]
    assert records["sequence_id"].tolist() == ["1", "1", "2"]


def test_read_records_missing_column_is_malformed():
    buffer = io.StringIO("sequence_id\tv_call\tj_call\tconsensus_count\n1\tTRAV1*01\tTRAJ2*01\t3\n")
    with pytest.raises(MalformedInputError, match="junction_aa"):
        read_records(buffer, sample_id="X")


def test_read_records_header_only_is_an_empty_table():
    buffer = io.StringIO("sequence_id\tv_call\tj_call\tconsensus_count\tjunction_aa\tproductive\n")

    records = read_records(buffer, sample_id="X")

    assert records.empty
    assert records["consensus_count"].dtype == "int64"


def test_read_records_blank_fields_become_missing():
    buffer = io.StringIO(
        "sequence_id\tv_call\tj_call\tconsensus_count\tjunction_aa\tproductive\n"
        "1\tTRAV1*01\tTRAJ2*01\t3\t\tF\n"
        "2\tTRAV1*01\t\t\tCAS\tT\n"
    )
    records = read_records(buffer)

    assert records["junction_aa"].iloc[0] is None
    assert records["j_call"].iloc[1] is None
    assert records["consensus_count"].tolist() == [3, 0]
    assert records["productive"].tolist() == [False, True]


@pytest.mark.parametrize("value", ["-1", "abc", "2.5"])
def test_read_records_rejects_bad_counts(value):
    buffer = io.StringIO(
        "sequence_id\tv_call\tj_call\tconsensus_count\tjunction_aa\n"
        f"1\tTRAV1*01\tTRAJ2*01\t{value}\tCAS\n"
    )
    with pytest.raises(MalformedInputError):
        read_records(buffer)


def test_filter_chain_is_substring_match(make_records):
    records = make_records(
        [
            ("1", "TRAV1*01", "TRAJ2*01", 3, "CAS"),
            ("2", "TRBV9*01", "TRBJ1-1*01", 3, "CASS"),
            ("3", "TRAV29/DV5*01", "TRAJ2*01", 3, "CAV"),
            ("4", None, "TRAJ2*01", 3, "CAT"),
        ]
    )

    alpha = filter_chain(records, "TRA")
    assert alpha["sequence_id"].tolist() == ["1", "3"]

    by_j = filter_chain(records, "TRBJ", field="j_call")
    assert by_j["sequence_id"].tolist() == ["2"]


def test_filter_chain_unknown_field(make_records):
    records = make_records([("1", "TRAV1*01", "TRAJ2*01", 3, "CAS")])
    with pytest.raises(MalformedInputError):
        filter_chain(records, "TRA", field="c_call")


def test_filter_productive(make_records):
    records = make_records(
        [
            ("1", "TRAV1*01", "TRAJ2*01", 3, "CAS", "T"),
            ("2", "TRAV1*01", "TRAJ2*01", 3, "CAS", "F"),
            ("3", "TRAV1*01", "TRAJ2*01", 3, "CAS", ""),
        ]
    )
    assert filter_productive(records)["sequence_id"].tolist() == ["1"]


def test_load_sample_applies_chain_filter(sample_dir: Path):
    records = load_sample("B", SampleResolver(sample_dir), chain_marker="TRA")

    assert len(records) == 3
    assert not records["v_call"].str.contains("TRB").any()


def test_load_sample_not_found(sample_dir: Path):
    with pytest.raises(SampleNotFoundError):
        load_sample("C", SampleResolver(sample_dir))


def test_load_sample_retries_transient_errors(sample_dir: Path, monkeypatch):
    monkeypatch.setattr("src.repertoire.loader.time.sleep", lambda seconds: None)
    attempts = []

    def flaky(sample_id):
        attempts.append(sample_id)
        if len(attempts) < 3:
            raise ConnectionError("connection reset")
        return sample_dir / f"{sample_id}.tsv"

    records = load_sample("A", flaky, retries=2)

    assert len(attempts) == 3
    assert len(records) == 3


def test_load_sample_gives_up_after_retries(monkeypatch):
    monkeypatch.setattr("src.repertoire.loader.time.sleep", lambda seconds: None)

    def broken(sample_id):
        raise TimeoutError("read timed out")

    with pytest.raises(TimeoutError):
        load_sample("A", broken, retries=1)
