import json
import logging
import warnings

import matplotlib.pyplot as plt
import pandas as pd
import pytest

import run_report
from pathogen_eda.controllers.errors import JoinWarning, LoadError, SchemaError
from pathogen_eda.controllers.PipelineOrchestrator import HouseholdReportPipeline

FIGURES = ["top_prevalence", "burden_histogram", "category_heatmap", "detection_heatmap"]


def test_full_run(report_config):
    with pytest.warns(JoinWarning):
        results = HouseholdReportPipeline(report_config).run()

    assert results.prevalence["target_name"].tolist() == ["E. coli", "CTX-M-ARG", "Rotavirus"]
    assert results.join_report.n_unmatched == 1
    assert results.concordance.counts.to_numpy().tolist() == [[0, 1], [2, 2]]
    assert results.concordance.n_excluded == 1

    assert set(results.figures) == set(FIGURES)
    assert all(isinstance(f, plt.Figure) for f in results.figures.values())
    for stem in FIGURES:
        assert (report_config.figures_dir / f"{stem}.png").exists()


def test_tables_not_exported_by_default(report_config):
    with pytest.warns(JoinWarning):
        results = HouseholdReportPipeline(report_config).run()
    assert results.exported == {}
    assert not report_config.tables_dir.exists()


def test_export_tables_writes_csv_and_manifest(report_config):
    config = report_config.model_copy(update={"export_tables": True})
    with pytest.warns(JoinWarning):
        results = HouseholdReportPipeline(config).run()

    assert set(results.exported) == {"prevalence_summary", "burden_summary", "amr_profile", "manifest"}
    manifest = json.loads((config.tables_dir / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["tables"]["prevalence_summary"]["n_rows"] == 3
    amr = pd.read_csv(config.tables_dir / "amr_profile.csv")
    assert amr["sample_type"].tolist()[-1] == "All"


def test_figures_not_saved_when_disabled(report_config):
    config = report_config.model_copy(
        update={"figures": report_config.figures.model_copy(update={"save_figures": False})}
    )
    plt.close("all")
    with pytest.warns(JoinWarning):
        results = HouseholdReportPipeline(config).run()
    assert len(results.figures) == 4
    assert not config.figures_dir.exists()
    # returned figures are detached from pyplot but can still be saved
    assert plt.get_fignums() == []
    out = config.output_dir / "later.png"
    results.figures["top_prevalence"].savefig(out)
    assert out.exists()


def test_wide_table_logged_with_target_count(report_config, caplog):
    caplog.set_level(logging.INFO, logger="pathogen_eda.controllers.PipelineOrchestrator")
    with pytest.warns(JoinWarning):
        HouseholdReportPipeline(report_config).run()
    assert "5 samples x 3 targets" in caplog.text


def test_missing_input_fails_before_any_output(report_config):
    report_config.data.culture_path.unlink()
    with pytest.raises(LoadError):
        HouseholdReportPipeline(report_config).run()
    assert not report_config.output_dir.exists()


def test_missing_concordance_column_fails_before_figures(report_config):
    config = report_config.model_copy(
        update={"concordance": report_config.concordance.model_copy(update={"molecular_target": "Vibrio"})}
    )
    with pytest.warns(JoinWarning), pytest.raises(SchemaError):
        HouseholdReportPipeline(config).run()
    assert not config.figures_dir.exists()


def _write_config(tmp_path, report_config, **extra):
    payload = {
        "data": {
            "detection_path": str(report_config.data.detection_path),
            "culture_path": str(report_config.data.culture_path),
        },
        "output_dir": str(report_config.output_dir),
        "figures": {"dpi": 60},
    }
    payload.update(extra)
    path = tmp_path / "report.json"
    path.write_text(json.dumps(payload))
    return path


@pytest.fixture
def run_main():
    """Call run_report.main, then undo its logging.captureWarnings(True)."""
    yield lambda *args: run_report.main(["run_report.py", *args])
    logging.captureWarnings(False)


def test_main_success(tmp_path, report_config, run_main):
    path = _write_config(tmp_path, report_config)
    assert run_main(str(path)) == 0
    assert (report_config.figures_dir / "top_prevalence.png").exists()


def test_main_load_failure(tmp_path, report_config, run_main):
    path = _write_config(tmp_path, report_config)
    report_config.data.detection_path.unlink()
    assert run_main(str(path)) == 1


def test_main_invalid_config(tmp_path, report_config, run_main):
    path = _write_config(tmp_path, report_config, colour="blue")
    assert run_main(str(path)) == 2
    assert run_main(str(tmp_path / "missing.json")) == 2


def test_main_routes_join_warning_through_logging(tmp_path, report_config, run_main, caplog):
    """The unmatched-household JoinWarning reaches the log handlers, not just stderr."""
    path = _write_config(tmp_path, report_config)
    caplog.set_level(logging.WARNING, logger="py.warnings")
    with warnings.catch_warnings():
        warnings.simplefilter("always")
        assert run_main(str(path)) == 0
        logging.captureWarnings(False)
    records = [r for r in caplog.records if r.name == "py.warnings"]
    assert any("found no molecular household match" in r.getMessage() for r in records)
