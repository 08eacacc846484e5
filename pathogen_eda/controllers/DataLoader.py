# DataLoader.py
"""
DataLoader for the household pathogen / AMR report
==================================================

Loading + light normalization layer for the two cleaned input tables:

- molecular panel results (long format, one row per sample x target)
- culture / AMR results (one row per sample)

What this module guarantees:
- Files are read once; missing/unreadable files raise LoadError naming the path
- Minimal schema is checked before anything else touches the table
- Detection flags are float 1.0 / 0.0 / NaN (unknown tokens become NaN, never 0)
- adjusted_esbl_cfu is numeric and non-negative

No aggregation happens here.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from pathogen_eda.controllers.config.settings import ReportConfig
from pathogen_eda.controllers.errors import LoadError
from pathogen_eda.controllers.HouseholdJoiner import derive_household_ids

LOGGER = logging.getLogger(__name__)

_UNNAMED_RE = re.compile(r"^Unnamed(?::\s*\d+)?$")

# Common "missing" tokens seen in lab exports
_MISSING_TOKENS = {
    "", " ", "NA", "N/A", "NULL", "NONE", "NAN", "-", "--", "?", "ND", "NOT DONE", "NOTDONE"
}

_BOOL_MAP = {
    "true": 1.0, "t": 1.0, "yes": 1.0, "y": 1.0, "1": 1.0, "1.0": 1.0,
    "positive": 1.0, "pos": 1.0, "detected": 1.0,
    "false": 0.0, "f": 0.0, "no": 0.0, "n": 0.0, "0": 0.0, "0.0": 0.0,
    "negative": 0.0, "neg": 0.0, "not detected": 0.0,
}

DETECTION_REQUIRED = ("target_name", "detect")
CULTURE_FLAGS = ("ec_detect", "ar_ec_detect", "tc_detect", "ar_tc_detect")
CULTURE_REQUIRED = CULTURE_FLAGS + ("adjusted_esbl_cfu",)

# Accepted alternative headers -> canonical names
COLUMN_ALIASES = {
    "target": "target_name",
    "hh_id": "household_id",
}


def _drop_unnamed(df: pd.DataFrame) -> pd.DataFrame:
    cols = [c for c in df.columns if _UNNAMED_RE.match(str(c))]
    return df.drop(columns=cols) if cols else df


def read_any(path: Union[str, Path]) -> pd.DataFrame:
    """
    Auto-detect reader:
      - Parquet directory  -> pd.read_parquet(dir, engine="pyarrow")
      - .parquet           -> pd.read_parquet(file, engine="pyarrow")
      - .feather/.ft       -> pd.read_feather(file)
      - otherwise          -> pd.read_csv(file)
    """
    p = Path(path)
    if not p.exists():
        raise LoadError(f"Input file not found: {p}", path=p)
    try:
        if p.is_dir() or p.suffix.lower() == ".parquet":
            df = pd.read_parquet(p, engine="pyarrow")
        elif p.suffix.lower() in (".feather", ".ft"):
            df = pd.read_feather(p)
        else:
            df = pd.read_csv(p, low_memory=False, encoding="utf-8")
    except LoadError:
        raise
    except Exception as e:
        raise LoadError(f"Could not read {p}: {e}", path=p) from e
    return _drop_unnamed(df)


def ensure_unique_columns(df: pd.DataFrame, path: Optional[Union[str, Path]] = None) -> None:
    if not df.columns.is_unique:
        dupes = df.columns[df.columns.duplicated()].tolist()
        raise LoadError(f"Duplicate columns detected in {path}: {dupes[:25]}", path=path)


def ensure_columns(df: pd.DataFrame, required: Sequence[str], path: Optional[Union[str, Path]] = None) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise LoadError(
            f"{path}: missing expected column(s) {missing}; found {list(df.columns)[:25]}",
            path=path,
            missing=missing,
        )


def coerce_detect_series(s: pd.Series) -> pd.Series:
    """
    Coerce detection flags to float 1.0 / 0.0 / NaN.
    Handles: bool, 0/1, 0.0/1.0, '0'/'1', 'true'/'false', 'yes'/'no', 'detected', ...
    Anything unrecognised becomes NaN so it is excluded from aggregates.
    """
    if pd.api.types.is_bool_dtype(s):
        return s.astype(float)

    if pd.api.types.is_numeric_dtype(s):
        out = s.astype(float)
        return out.where(out.isin([0.0, 1.0]) | out.isna(), (out > 0).astype(float))

    lowered = s.astype("string").str.strip().str.lower()
    lowered = lowered.where(~lowered.str.upper().isin(list(_MISSING_TOKENS)), pd.NA)
    return lowered.astype(object).map(_BOOL_MAP).astype(float)


def describe_missingness(df: pd.DataFrame, threshold: float = 0.5, name: str = "table") -> pd.Series:
    """Return per-column missing fraction; warn on columns above threshold."""
    missing_frac = df.isnull().mean() if len(df) else pd.Series(0.0, index=df.columns)
    high = missing_frac[missing_frac > threshold].index.tolist()
    if high:
        LOGGER.warning(f"{name}: columns with >{threshold*100:.0f}% missing: {high}")
    return missing_frac


def _canonical_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.rename(columns=lambda c: str(c).strip())
    renames = {a: c for a, c in COLUMN_ALIASES.items() if a in df.columns and c not in df.columns}
    return df.rename(columns=renames) if renames else df


def load_detection_data(path: Union[str, Path]) -> pd.DataFrame:
    """Load the molecular panel table (DetectionRecord rows)."""
    df = _canonical_columns(read_any(path))
    ensure_unique_columns(df, path)
    ensure_columns(df, DETECTION_REQUIRED, path)

    df = df.assign(
        target_name=df["target_name"].astype("string").str.strip(),
        detect=coerce_detect_series(df["detect"]),
    )
    if "household_id" not in df.columns and "sample_id" in df.columns:
        df = df.assign(household_id=derive_household_ids(df["sample_id"]))

    n_null = int(df["detect"].isna().sum())
    LOGGER.info(
        f"Loaded detection data {path}: {len(df):,} rows, "
        f"{df['target_name'].nunique()} targets, {n_null:,} null detect values"
    )
    return df.reset_index(drop=True)


def load_culture_data(path: Union[str, Path]) -> pd.DataFrame:
    """Load the culture / AMR table (CultureRecord rows)."""
    df = _canonical_columns(read_any(path))
    ensure_unique_columns(df, path)
    ensure_columns(df, CULTURE_REQUIRED, path)

    flags = {c: coerce_detect_series(df[c]) for c in CULTURE_FLAGS}
    cfu = pd.to_numeric(df["adjusted_esbl_cfu"], errors="coerce")
    if (cfu < 0).any():
        n_neg = int((cfu < 0).sum())
        raise LoadError(f"{path}: adjusted_esbl_cfu has {n_neg} negative values", path=path)
    df = df.assign(adjusted_esbl_cfu=cfu.astype(float), **flags)

    if "household_id" not in df.columns and "sample_id" in df.columns:
        df = df.assign(household_id=derive_household_ids(df["sample_id"]))

    LOGGER.info(f"Loaded culture data {path}: {len(df):,} rows")
    return df.reset_index(drop=True)


class DataLoader:
    """Reads both report inputs from the paths named in a ReportConfig."""

    def __init__(self, config: ReportConfig):
        self.config = config
        self.diagnostics: Dict[str, pd.Series] = {}

    def load_detection(self) -> pd.DataFrame:
        df = load_detection_data(self.config.data.detection_path)
        self.diagnostics["detection_missing"] = describe_missingness(
            df, self.config.missing_threshold, name="detection"
        )
        return df

    def load_culture(self) -> pd.DataFrame:
        df = load_culture_data(self.config.data.culture_path)
        self.diagnostics["culture_missing"] = describe_missingness(
            df, self.config.missing_threshold, name="culture"
        )
        return df

    def load(self) -> List[pd.DataFrame]:
        """Return [detection, culture]."""
        return [self.load_detection(), self.load_culture()]
