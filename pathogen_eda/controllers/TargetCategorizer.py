"""
TargetCategorizer.py

Maps every molecular panel target to a coarse organism category.

Rules are evaluated top to bottom and the first rule with a marker found
in the (lower-cased) target name wins, so order matters:
"E_coli_blaCTX-M" is claimed by the Bacteria markers before the ARG rule is
reached. Names matching nothing are "Other".

ARG markers are short gene prefixes (erm, tem, van, ...), so they only match
at the start of a token ("ermB", "blaTEM-1", "CTX-M-ARG"), never inside an
organism name ("Enterobius vermicularis").
"""

from __future__ import annotations

import logging
import re
from typing import List, Tuple

import pandas as pd

from pathogen_eda.controllers.errors import SchemaError

LOGGER = logging.getLogger(__name__)

OTHER = "Other"

CATEGORY_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (
        ("giardia", "cryptosporidium", "entamoeba", "histolytica", "cyclospora",
         "isospora", "blastocystis", "microsporidia", "enterocytozoon", "encephalitozoon"),
        "Parasite",
    ),
    (
        ("virus", "rota", "noro", "sapo", "astro", "adeno", "polio", "hepatitis"),
        "Virus",
    ),
    (
        ("coli", "eaec", "epec", "etec", "stec", "eiec", "stx", "ipah", "salmonella",
         "shigella", "campylobacter", "vibrio", "yersinia", "aeromonas", "plesiomonas",
         "clostridi", "c_diff", "difficile", "helicobacter", "klebsiella", "bartonella"),
        "Bacteria",
    ),
    (
        ("arg", "ctx", "bla", "kpc", "ndm", "oxa", "vim", "imp", "mcr", "tem", "shv",
         "cmy", "qnr", "mec", "van", "tet", "sul", "erm", "dfr", "aac"),
        "ARG",
    ),
    (
        ("ascaris", "trichuris", "necator", "ancylostoma", "hookworm", "strongyloides",
         "enterobius", "hymenolepis", "taenia", "schistosoma", "toxocara", "helminth"),
        "Helminth",
    ),
]

# Display order for charts (low -> high on the category axis)
CATEGORY_ORDER = [OTHER, "Helminth", "Parasite", "Virus", "Bacteria", "ARG"]

# Categories whose markers must start a token (preceded by a non-letter or the start of the name)
TOKEN_START_CATEGORIES = {"ARG"}


def _compile_rule(markers: Tuple[str, ...], category: str) -> re.Pattern:
    body = "|".join(re.escape(m) for m in markers)
    prefix = r"(?<![a-z])" if category in TOKEN_START_CATEGORIES else ""
    return re.compile(f"{prefix}(?:{body})")


_RULE_PATTERNS: List[Tuple[re.Pattern, str]] = [(_compile_rule(m, c), c) for m, c in CATEGORY_RULES]


def categorize(target_name) -> str:
    """Category of the first rule with a marker contained in target_name."""
    if target_name is None or pd.isna(target_name):
        return OTHER
    name = str(target_name).lower()
    for pattern, category in _RULE_PATTERNS:
        if pattern.search(name):
            return category
    return OTHER


def build_category_lookup(records: pd.DataFrame) -> pd.DataFrame:
    """One row per distinct target_name with its category."""
    if "target_name" not in records.columns:
        raise SchemaError("detection: expected column 'target_name' not found", table="detection", column="target_name")
    targets = pd.Series(pd.unique(records["target_name"].dropna()), dtype=object)
    return pd.DataFrame({
        "target_name": targets,
        "category": targets.map(categorize).astype(object),
    })


def attach_categories(records: pd.DataFrame, lookup: pd.DataFrame) -> pd.DataFrame:
    """Left join records with the category lookup; category is never null."""
    lk = lookup[["target_name", "category"]].assign(target_name=lookup["target_name"].astype(object))
    out = records.assign(target_name=records["target_name"].astype(object)).merge(
        lk, on="target_name", how="left"
    )
    out["category"] = out["category"].fillna(OTHER)
    return out


def category_prevalence(records: pd.DataFrame) -> pd.DataFrame:
    """
    Mean detect per (sample_type, category).

    category comes back as an ordered Categorical using CATEGORY_ORDER so the
    heatmap rows line up the same way in every run.
    """
    for c in ("sample_type", "category", "detect"):
        if c not in records.columns:
            raise SchemaError(f"detection: expected column '{c}' not found", table="detection", column=c)

    out = (
        records.groupby(["sample_type", "category"], sort=False)["detect"]
        .mean()
        .rename("prevalence")
        .reset_index()
    )
    out["category"] = pd.Categorical(out["category"], categories=CATEGORY_ORDER, ordered=True)
    return out.sort_values(["sample_type", "category"], kind="mergesort").reset_index(drop=True)
