"""
Input/Output utilities for exporting report tables with metadata.
"""

import json
import time
import platform
import sys
from pathlib import Path
from typing import Dict, Any

import pandas as pd


def export_tables(
    out_dir: str,
    tables: Dict[str, pd.DataFrame],
    config_dict: Dict[str, Any],
) -> Dict[str, str]:
    """
    Save each table as CSV plus a manifest with metadata.

    Args:
        out_dir: Output directory (will be created if it doesn't exist).
        tables: Mapping of file stem -> DataFrame, e.g. {"prevalence_summary": df}.
        config_dict: Configuration dictionary (ReportConfig.to_dict()).

    Returns:
        Dictionary with paths to saved files, keyed by stem plus "manifest".
    """
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    paths: Dict[str, str] = {}
    for name, df in tables.items():
        path = p / f"{name}.csv"
        df.to_csv(path, index=False, encoding="utf-8")
        paths[name] = str(path)

    manifest = {
        "created_at_unix": time.time(),
        "created_at_iso": time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime()),
        "python_version": sys.version,
        "platform": platform.platform(),
        "config": config_dict,
        "tables": {name: {"n_rows": len(df), "columns": [str(c) for c in df.columns]} for name, df in tables.items()},
    }

    manifest_path = p / "manifest.json"
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, default=str)
    paths["manifest"] = str(manifest_path)

    return paths
