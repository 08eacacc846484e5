import numpy as np
import pandas as pd
import pytest

from pathogen_eda.controllers.ConcordanceTesting import cross_tab, organism_concordance
from pathogen_eda.controllers.errors import SchemaError


def test_cross_tab_counts_and_row_percent():
    culture = pd.Series([1, 1, 1, 0, 0, 1], name="ec_detect")
    molecular = pd.Series([1, 1, 0, 0, 1, 1], name="E. coli")
    result = cross_tab(culture, molecular)

    assert result.counts.to_numpy().tolist() == [[1, 1], [1, 3]]
    assert result.row_percent.to_numpy().tolist() == [[50.0, 50.0], [25.0, 75.0]]
    assert result.counts.index.name == "ec_detect"
    assert result.counts.columns.name == "E. coli"
    assert result.n == 6


def test_cross_tab_excludes_nulls_from_every_cell():
    a = pd.Series([1.0, np.nan, 0.0, 1.0])
    b = pd.Series([1.0, 1.0, np.nan, 0.0])
    result = cross_tab(a, b)
    assert result.n == 2
    assert result.n_excluded == 2
    assert result.counts.to_numpy().tolist() == [[0, 0], [1, 1]]


def test_cross_tab_rows_sum_to_100():
    a = pd.Series([0, 0, 0, 1, 1, 1, 1])
    b = pd.Series([0, 1, 1, 0, 1, 1, 0])
    result = cross_tab(a, b)
    for i in range(2):
        assert result.row_percent.iloc[i].sum() == pytest.approx(100.0, abs=0.1)
    assert result.row_percent.iloc[0].tolist() == [33.3, 66.7]


def test_cross_tab_empty_row_is_nan():
    result = cross_tab(pd.Series([1, 1]), pd.Series([0, 1]))
    assert result.counts.iloc[0].sum() == 0
    assert result.row_percent.iloc[0].isna().all()
    assert result.formatted().iloc[0, 0] == "0 (-)"
    assert result.formatted().iloc[1, 1] == "1 (50.0%)"


def test_cross_tab_accepts_booleans_with_missing():
    a = pd.Series([True, False, None], dtype=object)
    b = pd.Series([True, True, True], dtype=object)
    result = cross_tab(a, b)
    assert result.n == 2


def test_cross_tab_length_mismatch():
    with pytest.raises(ValueError):
        cross_tab(pd.Series([1]), pd.Series([1, 0]))


def test_organism_concordance_missing_column():
    joined = pd.DataFrame({"ec_detect": [1.0]})
    with pytest.raises(SchemaError) as exc:
        organism_concordance(joined, "ec_detect", "E. coli")
    assert exc.value.column == "E. coli"
