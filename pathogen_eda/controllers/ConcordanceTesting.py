"""
ConcordanceTesting.py

Agreement between two detection methods for the same organism
=============================================================

Builds the 2x2 contingency table of culture vs molecular detection and
row-normalizes it. Purely descriptive: no kappa, no chi-square.

Design goals
------------
- Deterministic: rows and columns are always ordered [False, True].
- Rows where either method is null are left out of every cell and total.
- Clean outputs: CSV-ready tables.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

from pathogen_eda.controllers.DataLoader import coerce_detect_series
from pathogen_eda.controllers.errors import SchemaError

LOGGER = logging.getLogger(__name__)

LEVELS = [False, True]


@dataclass(frozen=True)
class Concordance:
    counts: pd.DataFrame
    row_percent: pd.DataFrame
    n_excluded: int

    @property
    def n(self) -> int:
        return int(self.counts.to_numpy().sum())

    def formatted(self) -> pd.DataFrame:
        """'count (pct%)' cells; rows without observations render as '0 (-)'."""
        cells = []
        for i in range(self.counts.shape[0]):
            row = []
            for j in range(self.counts.shape[1]):
                pct = self.row_percent.iat[i, j]
                label = "-" if pd.isna(pct) else f"{pct:.1f}%"
                row.append(f"{int(self.counts.iat[i, j])} ({label})")
            cells.append(row)
        return pd.DataFrame(cells, index=self.counts.index, columns=self.counts.columns)


def cross_tab(col_a: pd.Series, col_b: pd.Series) -> Concordance:
    """
    2x2 table of col_a (rows) vs col_b (columns) with row percentages.

    Both inputs are coerced to 1.0/0.0/NaN first; a row is counted only
    when both values are non-null. Percentages are rounded to one decimal;
    a row with no observations has NaN percentages.
    """
    if len(col_a) != len(col_b):
        raise ValueError(f"cross_tab inputs differ in length: {len(col_a)} != {len(col_b)}")

    a = coerce_detect_series(pd.Series(col_a).reset_index(drop=True))
    b = coerce_detect_series(pd.Series(col_b).reset_index(drop=True))
    keep = a.notna() & b.notna()

    name_a = getattr(col_a, "name", None) or "a"
    name_b = getattr(col_b, "name", None) or "b"

    aa = a[keep].astype(bool)
    bb = b[keep].astype(bool)
    counts = pd.DataFrame(
        [[int((aa.eq(r) & bb.eq(c)).sum()) for c in LEVELS] for r in LEVELS],
        index=pd.Index(LEVELS),
        columns=pd.Index(LEVELS),
    )
    counts.index.name = name_a
    counts.columns.name = name_b

    totals = counts.sum(axis=1)
    row_percent = (counts.div(totals.where(totals > 0), axis=0) * 100).round(1)

    return Concordance(counts=counts, row_percent=row_percent, n_excluded=int((~keep).sum()))


def organism_concordance(joined: pd.DataFrame, culture_col: str, molecular_col: str) -> Concordance:
    """Cross-tab of a culture flag against a molecular target column of the joined table."""
    for c in (culture_col, molecular_col):
        if c not in joined.columns:
            raise SchemaError(f"joined: expected column '{c}' not found", table="joined", column=c)

    result = cross_tab(joined[culture_col], joined[molecular_col])
    LOGGER.info(
        f"Concordance {culture_col} vs {molecular_col}: n={result.n}, "
        f"{result.n_excluded} rows excluded for missing values"
    )
    return result
