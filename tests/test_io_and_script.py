import pandas as pd
import pytest

from core.logger import get_logger
from core.utils import DataLoader, load_yaml, write_excel_report
from modules.metric_analysis import RESULT_COLUMNS
from scripts.run_metric_analysis import run_metric_analysis


def test_data_loader_reads_csv_and_parses_dates(tmp_path, daily_metrics):
    path = tmp_path / "daily.csv"
    daily_metrics.rename(columns={"steps": " steps "}).to_csv(path, index=False)
    df = DataLoader().read_data(path)
    assert "steps" in df.columns
    assert pd.api.types.is_datetime64_any_dtype(df["date"])
    assert len(df) == len(daily_metrics)


def test_data_loader_falls_back_to_gbk(tmp_path):
    path = tmp_path / "gbk.csv"
    pd.DataFrame({"分组": ["对照", "教练"], "sleep_hours": [7.1, 7.6]}).to_csv(path, index=False, encoding="gbk")
    df = DataLoader().read_data(path)
    assert list(df["分组"]) == ["对照", "教练"]


def test_data_loader_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        DataLoader().read_data(tmp_path / "missing.csv")
    bad = tmp_path / "daily.parquet"
    bad.write_bytes(b"")
    with pytest.raises(ValueError):
        DataLoader().read_data(bad)


def test_load_yaml_edge_cases(tmp_path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert load_yaml(empty) == {}

    listed = tmp_path / "list.yaml"
    listed.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_yaml(listed)

    with pytest.raises(FileNotFoundError):
        load_yaml(tmp_path / "nope.yaml")


def test_logger_namespace():
    logger = get_logger("core.stats.survival")
    assert logger.name == "health_stats.core.stats.survival"


def test_run_metric_analysis_end_to_end(tmp_path, daily_metrics):
    data_path = tmp_path / "daily.csv"
    daily_metrics.to_csv(data_path, index=False)
    output_path = tmp_path / "out" / "analysis.csv"

    preview = run_metric_analysis(str(data_path), str(output_path))

    assert output_path.exists()
    written = pd.read_csv(output_path, encoding="utf-8-sig")
    assert preview["n_rows"] == len(written)
    assert len(preview["analyses"]) == 11
    assert preview["analyses"][0] == "sleep_vs_8h"
    assert 0 < preview["n_significant"] <= preview["n_rows"]


def test_run_metric_analysis_custom_config(tmp_path, daily_metrics):
    data_path = tmp_path / "daily.csv"
    daily_metrics.to_csv(data_path, index=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "data:\n  group_col: cohort\n  time_col: date\nanalyses:\n"
        "  - name: mood_trend\n    kind: trend\n    metric: mood_score\n",
        encoding="utf-8",
    )
    preview = run_metric_analysis(str(data_path), str(tmp_path / "trend.csv"), str(config_path))
    assert preview["analyses"] == ["mood_trend"]
    assert preview["n_rows"] == 1


def test_excel_report_round_trip(tmp_path, daily_metrics):
    data_path = tmp_path / "daily.csv"
    daily_metrics.to_csv(data_path, index=False)
    output_path = tmp_path / "analysis.xlsx"

    preview = run_metric_analysis(str(data_path), str(output_path))

    written = DataLoader(date_columns=[]).read_data(output_path)
    assert list(written.columns) == RESULT_COLUMNS
    assert len(written) == preview["n_rows"]


def test_excel_report_rejects_other_suffix(tmp_path):
    with pytest.raises(ValueError):
        write_excel_report(pd.DataFrame({"a": [1]}), tmp_path / "out.csv")
