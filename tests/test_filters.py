import pandas as pd
import pytest

from auditor.filters import (
    DashboardFilters,
    FilterClause,
    apply_filters,
    normalize_filters,
    stringify,
)


@pytest.fixture
def df():
    return pd.DataFrame({
        "Name": ["Spring Sale", "Summer", "spring promo"],
        "Sent": [1000, 6000, 12000],
        "% Opened": [0.2, 0.3, 0.4],
        "Volume Group": ["0-5000", "5000-10000", "10000+"],
    })


def test_empty_spec_is_noop(df):
    pd.testing.assert_frame_equal(apply_filters(df, {}), df)
    pd.testing.assert_frame_equal(apply_filters(df, None), df)
    pd.testing.assert_frame_equal(apply_filters(df, {"Sent": {"min": "", "contains": None}}), df)


def test_equals_compares_stringified(df):
    assert apply_filters(df, {"Sent": {"equals": "6000"}})["Name"].tolist() == ["Summer"]
    assert apply_filters(df, {"% Opened": {"equals": 0.3}})["Name"].tolist() == ["Summer"]
    assert apply_filters(df, {"Volume Group": {"equals": "10000+"}})["Name"].tolist() == ["spring promo"]


def test_min_max(df):
    out = apply_filters(df, {"Sent": {"min": "1000", "max": 6000}})
    assert out["Name"].tolist() == ["Spring Sale", "Summer"]
    assert out.index.tolist() == [0, 1]


def test_contains_is_case_insensitive(df):
    out = apply_filters(df, {"Name": {"contains": "SPRING"}})
    assert out["Name"].tolist() == ["Spring Sale", "spring promo"]


def test_clauses_and_columns_are_anded(df):
    out = apply_filters(df, {"Name": {"contains": "spring"}, "Sent": {"max": 5000}})
    assert out["Name"].tolist() == ["Spring Sale"]


def test_unparseable_bound_is_ignored(df):
    assert len(apply_filters(df, {"Sent": {"min": "abc"}})) == 3


def test_non_numeric_values_fail_active_bounds():
    df = pd.DataFrame({"Sent": ["x", "5", None]})
    assert apply_filters(df, {"Sent": {"min": 1}})["Sent"].tolist() == ["5"]


def test_missing_column_matches_nothing(df):
    assert apply_filters(df, {"Nope": {"contains": "a"}}).empty


def test_idempotent_and_order_independent(df):
    spec = {"Name": {"contains": "s"}, "Sent": {"min": 2000}}
    once = apply_filters(df, spec)
    pd.testing.assert_frame_equal(apply_filters(once, spec), once)
    reversed_spec = dict(reversed(list(spec.items())))
    pd.testing.assert_frame_equal(apply_filters(df, reversed_spec), once)


def test_input_not_mutated(df):
    before = df.copy()
    apply_filters(df, {"Sent": {"min": 5000}})
    pd.testing.assert_frame_equal(df, before)


def test_clause_from_raw():
    clause = FilterClause.from_raw({"equals": "", "min": "10", "max": "x", "contains": "ab"})
    assert clause == FilterClause(equals=None, min=10.0, max=None, contains="ab")
    assert FilterClause.from_raw({}).is_empty()


def test_stringify():
    assert stringify(1200.0) == "1200"
    assert stringify(0.45) == "0.45"
    assert stringify(None) == ""
    assert stringify(float("nan")) == ""
    assert stringify("x") == "x"


def test_normalize_filters_defaults():
    f = normalize_filters({})
    assert f == DashboardFilters()
    assert f.volume_cutoffs == [5000.0, 10000.0]
    assert f.comparison.column == "Volume Group"
    assert not f.audit.enabled


def test_normalize_filters_coerces_loose_state():
    f = normalize_filters({
        "columns": {"Sent": {"min": "100"}, "Name": {"contains": ""}},
        "audit": {
            "enabled": True,
            "mode": "and",
            "rules": {"% Opened": {"op": "<", "threshold": "0.1"}, "Sent": {"op": "!=", "threshold": 1}},
        },
        "comparison": {"enabled": True, "column": "Name", "segment_a": " spring ", "segment_b": "summer"},
        "volume_cutoffs": "100, 50",
        "row_limit": "9999",
    })
    assert list(f.columns) == ["Sent"]
    assert f.audit.mode == "AND"
    assert list(f.audit.rules) == ["% Opened"]
    assert f.audit.rules["% Opened"].threshold == pytest.approx(0.1)
    assert f.comparison.segment_a == "spring"
    assert f.volume_cutoffs == [50.0, 100.0]
    assert f.row_limit == 500


def test_unknown_audit_mode_falls_back_to_or():
    assert normalize_filters({"audit": {"mode": "XOR"}}).audit.mode == "OR"


def test_numeric_equals_matches_integral_cells(df):
    assert FilterClause.from_raw({"equals": 6000.0}).equals == "6000"
    assert apply_filters(df, {"Sent": {"equals": 6000.0}})["Name"].tolist() == ["Summer"]
