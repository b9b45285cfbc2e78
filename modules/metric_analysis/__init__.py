"""
modules.metric_analysis: 日级健康指标的批量统计分析模块。

对外提供：
- load_metric_analysis_config: 从 YAML 字典构建 MetricAnalysisConfig；
- run_metric_analyses: 按配置执行全部分析，返回结果 DataFrame。
"""

from .analysis_engine import RESULT_COLUMNS, run_metric_analyses
from .config_schema import AnalysisConfig, MetricAnalysisConfig, load_metric_analysis_config

__all__ = [
    "AnalysisConfig",
    "MetricAnalysisConfig",
    "RESULT_COLUMNS",
    "load_metric_analysis_config",
    "run_metric_analyses",
]
