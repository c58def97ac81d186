"""Tests for duplicate sequence resolution."""

import pandas as pd

from src.repertoire.dedup import best_position, group_by_sequence, resolve, select_best


def test_group_by_sequence_keeps_first_encounter_order(make_records):
    records = make_records(
        [
            ("b", "TRAV1", "TRAJ1", 1, "CA"),
            ("a", "TRAV1", "TRAJ1", 1, "CA"),
            ("b", "TRAV1", "TRAJ1", 1, "CA"),
        ]
    )
    assert group_by_sequence(records) == {"b": [0, 2], "a": [1]}


def test_best_position_tie_break_is_first_encountered():
    counts = [5, 9, 9, 2]
    assert best_position(counts, [0, 1, 2, 3]) == 1
    assert best_position(counts, [3, 2, 1]) == 2


def test_select_best_keeps_maximum_support(make_records, example_rows):
    resolved = select_best(make_records(example_rows))

    assert resolved["sequence_id"].tolist() == ["1", "2"]
    assert resolved["consensus_count"].tolist() == [7, 1]
    assert resolved["v_call"].tolist() == ["TRAV1*02", "TRAV3*01"]


def test_select_best_ties_keep_first_record(make_records):
    records = make_records(
        [
            ("x", "TRAV1*01", "TRAJ1*01", 4, "CAA"),
            ("x", "TRAV2*01", "TRAJ1*01", 4, "CBB"),
            ("x", "TRAV3*01", "TRAJ1*01", 1, "CCC"),
        ]
    )
    resolved = select_best(records)

    assert len(resolved) == 1
    assert resolved["v_call"].iloc[0] == "TRAV1*01"


def test_select_best_is_idempotent(make_records):
    records = make_records(
        [
            ("x", "TRAV1*01", "TRAJ1*01", 4, "CAA"),
            ("y", "TRAV2*01", "TRAJ1*01", 2, "CBB"),
            ("x", "TRAV2*01", "TRAJ1*01", 8, "CAB"),
            ("z", "TRAV3*01", "TRAJ1*01", 1, "CCC"),
            ("y", "TRAV3*01", "TRAJ1*01", 2, "CCB"),
        ]
    )
    once = select_best(records)
    twice = select_best(once)

    pd.testing.assert_frame_equal(once, twice)
    assert once["sequence_id"].is_unique
    assert len(once) <= len(records)


def test_select_best_empty(make_records):
    records = make_records([("x", "TRAV1*01", "TRAJ1*01", 4, "CAA")]).iloc[0:0]
    assert select_best(records).empty


def test_resolve_adds_gene_labels(make_records, example_rows):
    resolved = resolve(make_records(example_rows))

    assert resolved["v_gene"].tolist() == ["TRAV1", "TRAV3"]
    assert resolved["j_gene"].tolist() == ["TRAJ2", "TRAJ2"]
