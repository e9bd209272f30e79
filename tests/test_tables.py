import pandas as pd
import pytest

from pharmadash.tables import ALL, apply_filters, count_by, to_long


@pytest.fixture
def df():
    return pd.DataFrame({
        "SITEID": ["S1", "S1", "S2", "S3"],
        "ARM": ["Placebo", "Drug A", "Drug A", "Drug B"],
        "AGE": [30, 40, 50, 60],
    })


class TestApplyFilters:
    def test_all_and_none_disable_filter(self, df):
        assert len(apply_filters(df, {"ARM": ALL, "SITEID": None})) == 4
        assert len(apply_filters(df)) == 4

    def test_scalar_and_list(self, df):
        assert apply_filters(df, {"ARM": "Drug A"})["SITEID"].tolist() == ["S1", "S2"]
        out = apply_filters(df, {"SITEID": ["S1", "S3"], "ARM": "Drug A"})
        assert out["AGE"].tolist() == [40]
        assert out.index.tolist() == [0]

    def test_unknown_column_raises(self, df):
        with pytest.raises(ValueError, match="COUNTRY"):
            apply_filters(df, {"COUNTRY": "US"})

    def test_unknown_column_raises_even_when_all(self, df):
        with pytest.raises(ValueError, match="COUNTRY"):
            apply_filters(df, {"COUNTRY": ALL})
        with pytest.raises(ValueError, match="COUNTRY"):
            apply_filters(df, {"COUNTRY": None})


class TestCountBy:
    def test_counts(self, df):
        out = count_by(df, "SITEID")
        assert out.to_dict("list") == {"SITEID": ["S1", "S2", "S3"], "n": [2, 1, 1]}

    def test_order_fills_zero(self, df):
        out = count_by(df, "ARM", order=["Placebo", "Drug A", "Drug B", "Drug C"])
        assert out["n"].tolist() == [1, 2, 1, 0]

    def test_missing_column(self, df):
        with pytest.raises(ValueError):
            count_by(df, "SEX")


def test_to_long(df):
    long = to_long(df, "SITEID", ["AGE"], var_name="Measure", value_name="Value")
    assert list(long.columns) == ["SITEID", "Measure", "Value"]
    assert len(long) == 4
    with pytest.raises(ValueError):
        to_long(df, "SITEID", ["WEIGHT"])
