#!/usr/bin/env python3
"""
Household pathogen & AMR exploratory report.

  - Loads the cleaned molecular panel and culture tables.
  - Computes prevalence, burden and AMR profile summaries.
  - Joins both tables by household and tabulates E. coli concordance.
  - Renders the report charts; exports tables when enabled in the config.

Usage:
  python run_report.py                 # defaults (clean_data/*.csv -> outputs/)
  python run_report.py report.json     # settings from a ReportConfig JSON file
"""

import sys
import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

from pydantic import ValidationError

from pathogen_eda.controllers.config.settings import ReportConfig
from pathogen_eda.controllers.errors import LoadError, SchemaError
from pathogen_eda.controllers.PipelineOrchestrator import HouseholdReportPipeline

logger = logging.getLogger(__name__)


def load_config(argv) -> ReportConfig:
    if len(argv) > 1:
        return ReportConfig.from_json(Path(argv[1]))
    return ReportConfig()


def main(argv=None) -> int:
    argv = sys.argv if argv is None else argv
    try:
        config = load_config(argv)
    except (OSError, ValueError, ValidationError) as e:
        logging.basicConfig(level=logging.ERROR, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        logger.error(f"Invalid configuration: {e}")
        return 2

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # JoinWarning and other data-quality warnings go through the same handlers
    logging.captureWarnings(True)

    try:
        HouseholdReportPipeline(config).run()
    except LoadError as e:
        logger.error(f"Load failed ({e.path}): {e}")
        return 1
    except SchemaError as e:
        logger.error(f"Schema error in table '{e.table}', column '{e.column}': {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
