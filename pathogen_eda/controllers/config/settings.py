"""
Configuration Models using Pydantic
====================================

Centralized, validated configuration for the household report.
Every stage receives its settings from a ReportConfig instance instead of
module-level path constants.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DataPaths(BaseModel):
    """Locations of the two cleaned input tables."""
    model_config = ConfigDict(extra="forbid")

    detection_path: Path = Field(Path("clean_data/tac_data_cleaned.csv"), description="Molecular panel results (long format).")
    culture_path: Path = Field(Path("clean_data/microbial_data_cleaned.csv"), description="Culture / AMR results (one row per sample).")


class FigureConfig(BaseModel):
    """Rendering options for the static charts."""
    model_config = ConfigDict(extra="forbid")

    save_figures: bool = True
    formats: List[Literal["png", "pdf", "svg"]] = Field(default_factory=lambda: ["png"])
    dpi: int = Field(300, ge=50, le=1200)
    top_n: int = Field(20, ge=1, description="Number of targets shown in the prevalence bar chart.")

    @field_validator("formats")
    @classmethod
    def formats_not_empty(cls, v):
        if not v:
            raise ValueError("formats cannot be empty")
        return v


class JoinConfig(BaseModel):
    """How the culture/molecular join treats duplicate household keys."""
    model_config = ConfigDict(extra="forbid")

    on_duplicate_keys: Literal["warn", "raise"] = Field(
        "warn",
        description="'warn' keeps the many-to-many fan-out and counts it; 'raise' aborts with SchemaError.",
    )


class ConcordanceConfig(BaseModel):
    """Columns compared in the culture vs molecular concordance table."""
    model_config = ConfigDict(extra="forbid")

    culture_col: str = Field("ec_detect", description="Culture detection flag.")
    molecular_target: str = Field("E. coli", description="Target column of the wide molecular table.")


class ReportConfig(BaseModel):
    """Top-level configuration for a full report run."""
    model_config = ConfigDict(extra="forbid")

    data: DataPaths = Field(default_factory=DataPaths)
    output_dir: Path = Path("outputs")
    export_tables: bool = Field(False, description="Write summary tables and a manifest to output_dir/tables.")
    esbl_cfu_threshold: float = Field(0.0, ge=0.0, description="ESBL positive when adjusted_esbl_cfu exceeds this.")
    missing_threshold: float = Field(0.5, ge=0.0, le=1.0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    figures: FigureConfig = Field(default_factory=FigureConfig)
    join: JoinConfig = Field(default_factory=JoinConfig)
    concordance: ConcordanceConfig = Field(default_factory=ConcordanceConfig)

    @property
    def figures_dir(self) -> Path:
        return self.output_dir / "figures"

    @property
    def tables_dir(self) -> Path:
        return self.output_dir / "tables"

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "ReportConfig":
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate(json.load(f))

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
