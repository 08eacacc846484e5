import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from pathogen_eda.controllers.config.settings import ReportConfig


@pytest.fixture
def detection_df() -> pd.DataFrame:
    """
    Long-format molecular results: 3 households, 2 sample types, 3 targets,
    complete panel (every sample tested for every target).
    """
    rows = []
    panel = {
        "HH01-S": [1, 0, 1],
        "HH01-W": [0, 0, 1],
        "HH02-S": [1, 1, np.nan],
        "HH02-W": [0, 0, 0],
        "HH03-S": [1, 0, 0],
    }
    targets = ["E. coli", "Rotavirus", "CTX-M-ARG"]
    for sample_id, values in panel.items():
        sample_type = "stool" if sample_id.endswith("S") else "water"
        for target, value in zip(targets, values):
            rows.append({
                "sample_id": sample_id,
                "household_id": sample_id[:4],
                "sample_type": sample_type,
                "target_name": target,
                "detect": float(value),
            })
    return pd.DataFrame(rows)


@pytest.fixture
def culture_df() -> pd.DataFrame:
    """One culture row per sample; HH05 has no molecular results."""
    return pd.DataFrame({
        "sample_id": ["HH01-S", "HH02-S", "HH03-S", "HH05-S"],
        "household_id": ["HH01", "HH02", "HH03", "HH05"],
        "sample_type": ["stool", "stool", "stool", "stool"],
        "ec_detect": [1.0, 1.0, 0.0, 1.0],
        "ar_ec_detect": [1.0, 0.0, 0.0, np.nan],
        "tc_detect": [1.0, 1.0, 1.0, 0.0],
        "ar_tc_detect": [0.0, 1.0, 0.0, 0.0],
        "adjusted_esbl_cfu": [120.0, 0.0, 0.0, 35.5],
    })


@pytest.fixture
def data_files(tmp_path, detection_df, culture_df):
    """Both fixtures written as CSV under tmp_path/clean_data."""
    d = tmp_path / "clean_data"
    d.mkdir()
    detection_path = d / "tac_data_cleaned.csv"
    culture_path = d / "microbial_data_cleaned.csv"
    detection_df.to_csv(detection_path, index=False)
    culture_df.to_csv(culture_path, index=False)
    return detection_path, culture_path


@pytest.fixture
def report_config(tmp_path, data_files) -> ReportConfig:
    detection_path, culture_path = data_files
    return ReportConfig(
        data={"detection_path": detection_path, "culture_path": culture_path},
        output_dir=tmp_path / "outputs",
        figures={"dpi": 60},
    )
