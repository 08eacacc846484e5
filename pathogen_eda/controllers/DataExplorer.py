"""
DataExplorer.py

Descriptive statistics for the household pathogen report.

Produces the summary tables the charts and exports are built from:
  - prevalence by molecular target (mean / sd of detect, nulls excluded)
  - pathogen burden per (household, sample type)
  - top-N selection over any summary table
  - AMR profile of the culture table by sample type

Every function returns a new DataFrame and leaves its input untouched.

Usage:
    explorer = DataExplorer(detection_df, culture_df, esbl_cfu_threshold=0)
    explorer.run_analysis()
    explorer.print_summary_report()
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import pandas as pd

from pathogen_eda.controllers.DataLoader import CULTURE_FLAGS
from pathogen_eda.controllers.errors import SchemaError

LOGGER = logging.getLogger(__name__)


def _require(df: pd.DataFrame, cols, table: str) -> None:
    for c in cols:
        if c not in df.columns:
            raise SchemaError(f"{table}: expected column '{c}' not found", table=table, column=c)


def prevalence_by_target(records: pd.DataFrame) -> pd.DataFrame:
    """
    Prevalence of every target: mean and sample sd (ddof=1) of detect.

    Null detect values are excluded from numerator and denominator. A target
    whose values are all null gets NaN prevalence and sd. Rows are sorted by
    prevalence, highest first; ties keep the order in which targets first
    appear, and NaN prevalences go last.
    """
    _require(records, ("target_name", "detect"), "detection")

    grouped = records.groupby("target_name", sort=False)["detect"]
    summary = pd.DataFrame({
        "prevalence": grouped.mean(),
        "sd": grouped.std(ddof=1),
        "n": grouped.count(),
        "n_detected": grouped.sum(min_count=0),
    }).reset_index()

    summary["n"] = summary["n"].astype(int)
    summary["n_detected"] = summary["n_detected"].astype(int)
    return summary.sort_values(
        "prevalence", ascending=False, kind="mergesort", na_position="last"
    ).reset_index(drop=True)


def burden_by_household(records: pd.DataFrame) -> pd.DataFrame:
    """
    Number of detections per (household_id, sample_type).

    Nulls contribute nothing to the sum; a group with only nulls has 0.
    """
    _require(records, ("household_id", "sample_type", "detect"), "detection")

    burden = (
        records.groupby(["household_id", "sample_type"], sort=False)["detect"]
        .sum(min_count=0)
        .astype(int)
        .rename("num_detected")
        .reset_index()
    )
    return burden


def top_n(summary: pd.DataFrame, n: int, key: str = "prevalence") -> pd.DataFrame:
    """
    The n rows with the largest key.

    Ties are broken by row order (stable sort); rows past n are dropped even
    when they tie with the last row kept.
    """
    if n < 0:
        raise ValueError(f"n must be >= 0, got {n}")
    _require(summary, (key,), "summary")
    return (
        summary.sort_values(key, ascending=False, kind="mergesort", na_position="last")
        .head(int(n))
        .reset_index(drop=True)
    )


def amr_profile(culture: pd.DataFrame, esbl_cfu_threshold: float = 0.0) -> pd.DataFrame:
    """
    Culture / AMR profile per sample type plus an 'All' row.

    Flag columns are prevalences over non-null values; esbl_positive is the
    share of samples with adjusted_esbl_cfu above the threshold.
    """
    _require(culture, CULTURE_FLAGS + ("adjusted_esbl_cfu",), "culture")

    cfu = culture["adjusted_esbl_cfu"]
    df = culture.assign(
        esbl_positive=(cfu > esbl_cfu_threshold).astype(float).where(cfu.notna()),
    )
    cols = list(CULTURE_FLAGS) + ["esbl_positive"]

    def _profile(g: pd.DataFrame) -> Dict[str, Any]:
        row: Dict[str, Any] = {"n": len(g)}
        for c in cols:
            row[c] = g[c].mean()
        row["median_esbl_cfu"] = g["adjusted_esbl_cfu"].median()
        return row

    rows = []
    if "sample_type" in df.columns:
        for sample_type, g in df.groupby("sample_type", sort=True):
            rows.append({"sample_type": sample_type, **_profile(g)})
    rows.append({"sample_type": "All", **_profile(df)})

    return pd.DataFrame(rows, columns=["sample_type", "n"] + cols + ["median_esbl_cfu"])


class DataExplorer:
    """
    Runs the descriptive statistics over both report tables and keeps the
    results in self.metrics.
    """

    def __init__(
        self,
        detection: pd.DataFrame,
        culture: Optional[pd.DataFrame] = None,
        esbl_cfu_threshold: float = 0.0,
        top_n: int = 20,
    ):
        self.detection = detection
        self.culture = culture
        self.esbl_cfu_threshold = esbl_cfu_threshold
        self.top_n = top_n
        self.metrics: Dict[str, pd.DataFrame] = {}

    def run_analysis(self) -> Dict[str, pd.DataFrame]:
        LOGGER.info("Computing prevalence and burden summaries")
        prevalence = prevalence_by_target(self.detection)
        self.metrics["prevalence"] = prevalence
        self.metrics["top_prevalence"] = top_n(prevalence, self.top_n)
        self.metrics["burden"] = burden_by_household(self.detection)

        if self.culture is not None:
            self.metrics["amr_profile"] = amr_profile(self.culture, self.esbl_cfu_threshold)

        n_all_null = int(prevalence["prevalence"].isna().sum())
        if n_all_null:
            LOGGER.warning(f"{n_all_null} targets have no non-null detect values")
        return self.metrics

    def print_summary_report(self) -> None:
        lines = ["", "=" * 80, "SUMMARY STATISTICS", "=" * 80]

        prevalence = self.metrics.get("prevalence")
        if prevalence is not None:
            lines.append(f"Targets: {len(prevalence)}")
            lines.append(f"Samples: {self.detection['sample_id'].nunique() if 'sample_id' in self.detection else 'n/a'}")

        for key, title in [
            ("top_prevalence", f"Top {self.top_n} targets by prevalence"),
            ("amr_profile", "AMR profile by sample type"),
        ]:
            table = self.metrics.get(key)
            if table is not None and not table.empty:
                lines.append(title + ":")
                lines.append(table.round(3).to_string(index=False))

        burden = self.metrics.get("burden")
        if burden is not None and not burden.empty:
            lines.append("Burden (detections per household / sample type):")
            lines.append(
                burden.groupby("sample_type")["num_detected"]
                .agg(["count", "mean", "median", "max"])
                .round(2)
                .to_string()
            )

        LOGGER.info("\n".join(lines))
