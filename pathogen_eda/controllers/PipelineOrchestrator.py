"""
PipelineOrchestrator.py

Unified, class-based orchestration for the household pathogen report.

Integrates:
  1. Loading (DataLoader)
  2. Descriptive statistics (DataExplorer)
  3. Target categorisation (TargetCategorizer)
  4. Long -> wide reshape and household join (HouseholdJoiner)
  5. Culture vs molecular concordance (ConcordanceTesting)
  6. Static charts (VisualizationEngine)
  7. Optional table export (utils.io)

Stages 1-5 only build tables; any LoadError / SchemaError they raise
surfaces before a single chart or file is written.

Usage:
------

    from pathogen_eda.controllers.config.settings import ReportConfig
    from pathogen_eda.controllers.PipelineOrchestrator import HouseholdReportPipeline

    results = HouseholdReportPipeline(ReportConfig()).run()
    print(results.prevalence.head())
    print(results.concordance.formatted())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import matplotlib.pyplot as plt
import pandas as pd

from pathogen_eda.controllers.config.settings import ReportConfig
from pathogen_eda.controllers.ConcordanceTesting import Concordance, organism_concordance
from pathogen_eda.controllers.DataExplorer import DataExplorer
from pathogen_eda.controllers.DataLoader import DataLoader
from pathogen_eda.controllers.HouseholdJoiner import (
    JoinReport,
    join_on_household,
    molecular_columns,
    pivot_wide,
)
from pathogen_eda.controllers.TargetCategorizer import (
    attach_categories,
    build_category_lookup,
    category_prevalence,
)
from pathogen_eda.controllers.utils.io import export_tables
from pathogen_eda.controllers.VisualizationEngine import (
    BurdenHistogramVisualizer,
    CategoryHeatmapVisualizer,
    DetectionHeatmapVisualizer,
    PrevalenceBarVisualizer,
)

LOGGER = logging.getLogger(__name__)


@dataclass
class ReportResults:
    """Everything one run produced, held in memory."""
    detection: pd.DataFrame
    culture: pd.DataFrame
    prevalence: pd.DataFrame
    top_prevalence: pd.DataFrame
    burden: pd.DataFrame
    amr_profile: pd.DataFrame
    category_lookup: pd.DataFrame
    category_prevalence: pd.DataFrame
    detection_wide: pd.DataFrame
    joined: pd.DataFrame
    join_report: JoinReport
    concordance: Concordance
    figures: Dict[str, plt.Figure] = field(default_factory=dict)
    exported: Dict[str, str] = field(default_factory=dict)


class HouseholdReportPipeline:
    """
    Stages:
      1. Load detection + culture tables
      2. Prevalence, burden, top-N, AMR profile
      3. Category lookup + category prevalence
      4. Pivot molecular results wide, join to culture by household
      5. Concordance of one organism between methods
      6. Render (and optionally save) the four charts
      7. Export summary tables (disabled by default)
    """

    def __init__(self, config: Optional[ReportConfig] = None):
        self.config = config if config is not None else ReportConfig()
        self.loader = DataLoader(self.config)

    @staticmethod
    def _stage(title: str) -> None:
        LOGGER.info("=" * 70)
        LOGGER.info(title)
        LOGGER.info("=" * 70)

    def run(self) -> ReportResults:
        cfg = self.config

        self._stage("STAGE 1: LOADING")
        detection, culture = self.loader.load()

        self._stage("STAGE 2: DESCRIPTIVE STATISTICS")
        explorer = DataExplorer(
            detection,
            culture,
            esbl_cfu_threshold=cfg.esbl_cfu_threshold,
            top_n=cfg.figures.top_n,
        )
        metrics = explorer.run_analysis()
        explorer.print_summary_report()

        self._stage("STAGE 3: TARGET CATEGORIES")
        lookup = build_category_lookup(detection)
        categorized = attach_categories(detection, lookup)
        cat_prev = category_prevalence(categorized)
        LOGGER.info(f"Category counts: {lookup['category'].value_counts().to_dict()}")

        self._stage("STAGE 4: HOUSEHOLD JOIN")
        wide = pivot_wide(detection)
        LOGGER.info(f"Wide molecular table: {len(wide):,} samples x {len(molecular_columns(wide))} targets")
        joined = join_on_household(culture, wide, on_duplicate_keys=cfg.join.on_duplicate_keys)

        self._stage("STAGE 5: CONCORDANCE")
        concordance = organism_concordance(
            joined.table,
            cfg.concordance.culture_col,
            cfg.concordance.molecular_target,
        )
        LOGGER.info("\n" + concordance.formatted().to_string())

        results = ReportResults(
            detection=detection,
            culture=culture,
            prevalence=metrics["prevalence"],
            top_prevalence=metrics["top_prevalence"],
            burden=metrics["burden"],
            amr_profile=metrics["amr_profile"],
            category_lookup=lookup,
            category_prevalence=cat_prev,
            detection_wide=wide,
            joined=joined.table,
            join_report=joined.report,
            concordance=concordance,
        )

        self._stage("STAGE 6: FIGURES")
        results.figures = self.render_figures(results, categorized)

        if cfg.export_tables:
            self._stage("STAGE 7: EXPORT")
            results.exported = export_tables(
                str(cfg.tables_dir),
                {
                    "prevalence_summary": results.prevalence,
                    "burden_summary": results.burden,
                    "amr_profile": results.amr_profile,
                },
                cfg.to_dict(),
            )
            LOGGER.info(f"Exported tables to {cfg.tables_dir}")

        LOGGER.info("Report complete.")
        return results

    def render_figures(self, results: ReportResults, categorized: pd.DataFrame) -> Dict[str, plt.Figure]:
        fig_cfg = self.config.figures
        kwargs = dict(output_dir=self.config.figures_dir, dpi=fig_cfg.dpi, formats=fig_cfg.formats)

        def _name(stem: str) -> Optional[str]:
            return stem if fig_cfg.save_figures else None

        figures = {
            "top_prevalence": PrevalenceBarVisualizer(**kwargs).plot(
                results.prevalence, top_n=fig_cfg.top_n, filename=_name("top_prevalence")
            ),
            "burden_histogram": BurdenHistogramVisualizer(**kwargs).plot(
                results.burden, filename=_name("burden_histogram")
            ),
            "category_heatmap": CategoryHeatmapVisualizer(**kwargs).plot(
                results.category_prevalence, filename=_name("category_heatmap")
            ),
            "detection_heatmap": DetectionHeatmapVisualizer(**kwargs).plot(
                categorized, filename=_name("detection_heatmap")
            ),
        }
        # Released from pyplot's registry; the Figure objects stay usable (fig.savefig)
        for fig in figures.values():
            plt.close(fig)
        return figures
