"""
HouseholdJoiner.py

Reshape the molecular panel to one row per sample and attach it to the
culture table by household.

Decisions on the two key hazards
--------------------------------
- Duplicate (sample_id, target_name) pairs make the pivot ambiguous. They are
  rejected with SchemaError; no last-write-wins.
- household_id is not unique on either side. A left row whose household has
  k molecular samples appears k times in the output (many-to-many fan-out).
  This is kept as-is and counted in JoinReport; JoinConfig.on_duplicate_keys
  = "raise" turns it into a SchemaError instead.
"""

from __future__ import annotations

import logging
import re
import warnings
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import pandas as pd

from pathogen_eda.controllers.errors import JoinWarning, SchemaError

LOGGER = logging.getLogger(__name__)

HOUSEHOLD_RE = re.compile(r"HH\d+")
ID_COLS = ("sample_id", "household_id", "sample_type")
MOLECULAR_SUFFIX = "_tac"
_ROW = "__row_order"


# -----------------------------------------------------------------------------
# Household id
# -----------------------------------------------------------------------------

def derive_household_id(sample_id: Any) -> Optional[str]:
    """'HH' followed by digits from a sample id, or None when there is no match."""
    if sample_id is None or pd.isna(sample_id):
        return None
    m = HOUSEHOLD_RE.search(str(sample_id))
    return m.group(0) if m else None


def derive_household_ids(sample_ids: pd.Series) -> pd.Series:
    """Vectorised derive_household_id; unmatched ids become NA."""
    return sample_ids.astype("string").str.extract(f"({HOUSEHOLD_RE.pattern})", expand=False)


# -----------------------------------------------------------------------------
# Long <-> wide
# -----------------------------------------------------------------------------

def _require(df: pd.DataFrame, cols, table: str) -> None:
    for c in cols:
        if c not in df.columns:
            raise SchemaError(f"{table}: expected column '{c}' not found", table=table, column=c)


def pivot_wide(records: pd.DataFrame) -> pd.DataFrame:
    """
    Long (sample x target) -> wide (one row per sample, one column per target).

    Identifier columns present in the input (household_id, sample_type) are
    carried from the first row of each sample. Targets a sample was never
    tested for are NaN.
    """
    _require(records, ("sample_id", "target_name", "detect"), "detection")

    valid = records.dropna(subset=["target_name"])
    dup_mask = valid.duplicated(subset=["sample_id", "target_name"], keep=False)
    if dup_mask.any():
        examples = (
            valid.loc[dup_mask, ["sample_id", "target_name"]]
            .drop_duplicates()
            .head(5)
            .to_dict("records")
        )
        raise SchemaError(
            f"detection: {int(dup_mask.sum())} rows share a (sample_id, target_name) pair; "
            f"pivot would be ambiguous. Examples: {examples}",
            table="detection",
            column="target_name",
        )

    targets = list(pd.unique(valid["target_name"]))
    samples = pd.Index(pd.unique(records["sample_id"]), name="sample_id")

    wide = (
        valid.pivot(index="sample_id", columns="target_name", values="detect")
        .reindex(index=samples, columns=targets)
    )
    wide.columns = [str(c) for c in wide.columns]

    id_extra = [c for c in ID_COLS if c != "sample_id" and c in records.columns]
    ids = records[["sample_id"] + id_extra].drop_duplicates(subset="sample_id").set_index("sample_id")
    out = ids.join(wide, how="right").reset_index()
    return out[["sample_id"] + id_extra + list(wide.columns)]


def melt_long(wide: pd.DataFrame) -> pd.DataFrame:
    """Inverse of pivot_wide: back to one row per (sample, target)."""
    _require(wide, ("sample_id",), "detection_wide")
    id_cols = [c for c in ID_COLS if c in wide.columns]
    long = wide.melt(id_vars=id_cols, var_name="target_name", value_name="detect")
    return long[id_cols + ["target_name", "detect"]]


# -----------------------------------------------------------------------------
# Join
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class JoinReport:
    n_culture_rows: int
    n_unparsed_ids: int
    n_unmatched: int
    n_duplicate_keys: int
    n_output_rows: int

    @property
    def n_fanout_rows(self) -> int:
        return self.n_output_rows - self.n_culture_rows

    def to_dict(self) -> Dict[str, int]:
        d = asdict(self)
        d["n_fanout_rows"] = self.n_fanout_rows
        return d


@dataclass
class HouseholdJoin:
    """Joined table plus the counts surfaced while building it."""
    table: pd.DataFrame
    report: JoinReport


def _with_household_key(df: pd.DataFrame, table: str) -> pd.DataFrame:
    if "sample_id" in df.columns:
        return df.assign(household_id=derive_household_ids(df["sample_id"]))
    _require(df, ("household_id",), table)
    return df.assign(household_id=df["household_id"].astype("string"))


def join_on_household(
    culture: pd.DataFrame,
    wide_detection: pd.DataFrame,
    *,
    on_duplicate_keys: str = "warn",
) -> HouseholdJoin:
    """
    Left outer join of culture rows onto wide molecular rows by household.

    Culture rows are never dropped: rows with no household match, or whose
    sample id carries no household id at all, keep null molecular columns.
    Null keys never match each other. Overlapping column names from the
    molecular side get the '_tac' suffix.
    """
    if on_duplicate_keys not in ("warn", "raise"):
        raise ValueError(f"on_duplicate_keys must be 'warn' or 'raise', got {on_duplicate_keys!r}")

    left = _with_household_key(culture, "culture").reset_index(drop=True)
    right = _with_household_key(wide_detection, "detection_wide")
    left[_ROW] = range(len(left))

    right_keyed = right[right["household_id"].notna()]
    dup_keys = right_keyed["household_id"][right_keyed["household_id"].duplicated()].unique()
    if len(dup_keys) and on_duplicate_keys == "raise":
        raise SchemaError(
            f"detection_wide: household_id not unique ({len(dup_keys)} keys, e.g. {list(dup_keys[:5])}); "
            "join would fan out",
            table="detection_wide",
            column="household_id",
        )

    keyed = left[left["household_id"].notna()]
    unkeyed = left[left["household_id"].isna()]

    merged = keyed.merge(
        right_keyed,
        on="household_id",
        how="left",
        suffixes=("", MOLECULAR_SUFFIX),
        indicator=True,
    )
    n_unmatched_keyed = int(merged.drop_duplicates(subset=_ROW)["_merge"].eq("left_only").sum())
    merged = merged.drop(columns="_merge")

    joined = merged
    if len(unkeyed):
        joined = pd.concat([merged, unkeyed], ignore_index=True, sort=False)[merged.columns]
    joined = (
        joined.sort_values(_ROW, kind="mergesort")
        .drop(columns=_ROW)
        .reset_index(drop=True)
    )

    report = JoinReport(
        n_culture_rows=len(left),
        n_unparsed_ids=len(unkeyed),
        n_unmatched=n_unmatched_keyed + len(unkeyed),
        n_duplicate_keys=len(dup_keys),
        n_output_rows=len(joined),
    )

    if report.n_unmatched:
        warnings.warn(
            f"{report.n_unmatched} of {report.n_culture_rows} culture rows found no molecular "
            f"household match ({report.n_unparsed_ids} without a parsable household id)",
            JoinWarning,
            stacklevel=2,
        )
    if report.n_duplicate_keys:
        LOGGER.warning(
            f"household_id repeats on the molecular side ({report.n_duplicate_keys} keys); "
            f"join fanned out by {report.n_fanout_rows} rows"
        )
    LOGGER.info(f"Household join: {report.to_dict()}")
    return HouseholdJoin(table=joined, report=report)


def molecular_columns(wide_detection: pd.DataFrame) -> List[str]:
    """Target columns of a pivot_wide table."""
    return [c for c in wide_detection.columns if c not in ID_COLS]
