import numpy as np
import pandas as pd
import pytest

from pathogen_eda.controllers.DataLoader import (
    DataLoader,
    coerce_detect_series,
    describe_missingness,
    load_culture_data,
    load_detection_data,
    read_any,
)
from pathogen_eda.controllers.errors import LoadError


def test_read_any_missing_file_raises_load_error(tmp_path):
    """A path that does not exist is a LoadError naming the path."""
    missing = tmp_path / "nope.csv"
    with pytest.raises(LoadError) as exc:
        read_any(missing)
    assert exc.value.path == str(missing)


def test_read_any_drops_unnamed_index_column(tmp_path):
    path = tmp_path / "t.csv"
    pd.DataFrame({"a": [1, 2]}).to_csv(path)  # writes an unnamed index column
    df = read_any(path)
    assert list(df.columns) == ["a"]


def test_load_detection_data(data_files):
    detection_path, _ = data_files
    df = load_detection_data(detection_path)
    assert len(df) == 15
    assert df["detect"].dtype == float
    assert df["detect"].isna().sum() == 1
    assert set(df["target_name"]) == {"E. coli", "Rotavirus", "CTX-M-ARG"}


def test_load_detection_accepts_target_alias_and_derives_household(tmp_path):
    path = tmp_path / "tac.csv"
    pd.DataFrame({
        "sample_id": ["HH07-S", "HH07-S", "X-1"],
        "sample_type": ["stool"] * 3,
        "target": ["Giardia_18S", "Rotavirus", "Rotavirus"],
        "detect": ["Detected", "not detected", "yes"],
    }).to_csv(path, index=False)

    df = load_detection_data(path)
    assert "target_name" in df.columns
    assert df["detect"].tolist() == [1.0, 0.0, 1.0]
    assert df["household_id"].iloc[0] == "HH07"
    assert pd.isna(df["household_id"].iloc[2])


def test_load_detection_missing_columns(tmp_path):
    """Detection table without a detect column fails the minimal schema."""
    path = tmp_path / "tac.csv"
    pd.DataFrame({"sample_id": ["HH01-S"], "target_name": ["Rotavirus"]}).to_csv(path, index=False)
    with pytest.raises(LoadError) as exc:
        load_detection_data(path)
    assert exc.value.missing == ["detect"]
    assert "tac.csv" in str(exc.value)


def test_load_culture_data(data_files):
    _, culture_path = data_files
    df = load_culture_data(culture_path)
    assert len(df) == 4
    assert df["ar_ec_detect"].isna().sum() == 1
    assert df["adjusted_esbl_cfu"].tolist() == [120.0, 0.0, 0.0, 35.5]


def test_load_culture_missing_flag_columns(tmp_path, culture_df):
    path = tmp_path / "micro.csv"
    culture_df.drop(columns=["tc_detect", "ar_tc_detect"]).to_csv(path, index=False)
    with pytest.raises(LoadError) as exc:
        load_culture_data(path)
    assert exc.value.missing == ["tc_detect", "ar_tc_detect"]


def test_load_culture_rejects_negative_cfu(tmp_path, culture_df):
    path = tmp_path / "micro.csv"
    culture_df.assign(adjusted_esbl_cfu=[1.0, -5.0, 0.0, 0.0]).to_csv(path, index=False)
    with pytest.raises(LoadError):
        load_culture_data(path)


def test_coerce_detect_series_unknown_tokens_become_nan():
    s = pd.Series(["TRUE", "false", "1", "0", "maybe", None, "NA"])
    out = coerce_detect_series(s)
    assert out.iloc[:4].tolist() == [1.0, 0.0, 1.0, 0.0]
    assert out.iloc[4:].isna().all()


def test_coerce_detect_series_bool_and_numeric():
    assert coerce_detect_series(pd.Series([True, False])).tolist() == [1.0, 0.0]
    out = coerce_detect_series(pd.Series([0, 1, np.nan]))
    assert out.iloc[:2].tolist() == [0.0, 1.0]
    assert np.isnan(out.iloc[2])


def test_describe_missingness():
    df = pd.DataFrame({"a": [1, None, None], "b": [1, 2, 3]})
    frac = describe_missingness(df, threshold=0.5)
    assert frac["a"] == pytest.approx(2 / 3)
    assert frac["b"] == 0.0


def test_data_loader_reads_both_tables(report_config):
    loader = DataLoader(report_config)
    detection, culture = loader.load()
    assert len(detection) == 15
    assert len(culture) == 4
    assert set(loader.diagnostics) == {"detection_missing", "culture_missing"}
