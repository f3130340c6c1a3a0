import pandas as pd

from auditor.data import apply_volume_tiers, volume_group_label, volume_group_labels
from auditor.filters import parse_cutoffs


def _groups(values, cutoffs=(5000, 10000)):
    df = pd.DataFrame({"Name": [f"c{i}" for i in range(len(values))], "Sent": values})
    return apply_volume_tiers(df, cutoffs)["Volume Group"].tolist()


def test_boundaries_are_lower_inclusive():
    assert _groups([4999, 5000, 9999, 10000]) == ["0-5000", "5000-10000", "5000-10000", "10000+"]


def test_unsorted_cutoffs_are_sorted():
    assert _groups([4999, 5000, 10000], cutoffs=[10000, 5000]) == ["0-5000", "5000-10000", "10000+"]


def test_partition_has_len_cutoffs_plus_one_buckets():
    cutoffs = [100, 1000, 10000]
    labels = _groups([0, 99, 100, 999, 1000, 9999, 10000, 50000], cutoffs)
    assert len(set(labels)) == len(cutoffs) + 1
    assert set(labels) == set(volume_group_labels(cutoffs))


def test_missing_volume_counts_as_zero():
    assert _groups([None, float("nan")]) == ["0-5000", "0-5000"]


def test_no_volume_column_leaves_table_unchanged():
    df = pd.DataFrame({"Name": ["a"], "% Delivered": [0.9]})
    out = apply_volume_tiers(df)
    assert "Volume Group" not in out.columns
    pd.testing.assert_frame_equal(out, df)


def test_retiering_replaces_group_column():
    df = pd.DataFrame({"Sent": [1500, 7000], "Name": ["a", "b"]})
    once = apply_volume_tiers(df)
    again = apply_volume_tiers(once, [1000])
    assert list(again.columns) == ["Sent", "Name", "Volume Group"]
    assert again["Volume Group"].tolist() == ["1000+", "1000+"]
    assert "Volume Group" not in df.columns


def test_falls_back_to_delivered():
    df = pd.DataFrame({"Delivered": [12000]})
    assert apply_volume_tiers(df)["Volume Group"].tolist() == ["10000+"]


def test_labels():
    assert volume_group_label(0, []) == "0+"
    assert volume_group_label(10, [2500.5]) == "0-2500.5"
    assert volume_group_labels([5000, 10000]) == ["0-5000", "5000-10000", "10000+"]


def test_parse_cutoffs():
    assert parse_cutoffs("5000, 10000") == [5000.0, 10000.0]
    assert parse_cutoffs("10000;2500") == [2500.0, 10000.0]
    assert parse_cutoffs("abc, 2500") == [2500.0]
    assert parse_cutoffs("") == [5000.0, 10000.0]
    assert parse_cutoffs(None) == [5000.0, 10000.0]
    assert parse_cutoffs([300, "100"]) == [100.0, 300.0]
