"""
scripts.run_metric_analysis

指标分析入口：读取日级健康指标明细与分析配置，运行全部分析，结果写出为 CSV（后缀为 .xlsx 时写出 Excel）。
对外提供调用函数 run_metric_analysis(data_path, output_path, config_path?) -> dict。
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, Optional

# 将项目根目录加入 sys.path，保证从命令行直接运行脚本时可以 import modules/core
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from core.logger import get_logger  # noqa: E402
from core.utils import DataLoader, load_yaml, write_excel_report  # noqa: E402
from modules.metric_analysis import load_metric_analysis_config, run_metric_analyses  # noqa: E402

logger = get_logger(__name__)


def run_metric_analysis(
    data_path: str,
    output_path: str,
    config_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    运行指标分析并把结果表保存到指定位置，返回预览信息。

    输入：
    - data_path: 指标明细数据文件路径（csv / txt / xlsx，由 core.utils.DataLoader 读取）；
    - output_path: 结果文件路径，.xlsx 写 Excel，其余写 CSV（utf-8-sig），父目录不存在时自动创建；
    - config_path: 可选，分析配置 YAML 路径；未传则使用 configs/metric_analysis_demo.yaml。

    输出：
    - 字典，包含：
      - "output_path": 结果文件路径；
      - "n_rows": 结果行数；
      - "n_significant": reject 为 True 的行数；
      - "analyses": 实际执行的分析名称列表。
    """
    if config_path is None:
        cfg_path = _PROJECT_ROOT / "configs" / "metric_analysis_demo.yaml"
    else:
        cfg_path = Path(config_path)
    config = load_metric_analysis_config(load_yaml(cfg_path))
    logger.info("已加载配置 %s，共 %d 个分析。", cfg_path, len(config.analyses))

    df = DataLoader().read_data(Path(data_path))
    logger.info("已读取数据 %s，共 %d 行 %d 列。", data_path, len(df), len(df.columns))

    result = run_metric_analyses(df, config)

    out_file = Path(output_path)
    if out_file.suffix.lower() == ".xlsx":
        write_excel_report(result, out_file)
    else:
        out_file.parent.mkdir(parents=True, exist_ok=True)
        result.to_csv(out_file, index=False, encoding="utf-8-sig")
        logger.info("结果已写出：%s", out_file)

    return {
        "output_path": str(out_file),
        "n_rows": len(result),
        "n_significant": int((result["reject"] == True).sum()),  # noqa: E712
        "analyses": list(dict.fromkeys(result["analysis"])),
    }


def main() -> None:
    """命令行入口：接收数据路径、结果输出路径，可选配置路径，调用 run_metric_analysis 并打印预览。"""
    if len(sys.argv) < 3:
        print("用法: python scripts/run_metric_analysis.py <数据路径> <结果输出路径> [配置路径]")
        print("示例: python scripts/run_metric_analysis.py data/daily_metrics.csv outputs/analysis.csv")
        print(
            "示例: python scripts/run_metric_analysis.py data/daily_metrics.csv outputs/analysis.csv "
            "configs/metric_analysis_demo.yaml"
        )
        sys.exit(1)
    data_path = sys.argv[1]
    output_path = sys.argv[2]
    config_path = sys.argv[3] if len(sys.argv) > 3 and sys.argv[3].strip() else None

    preview = run_metric_analysis(
        data_path=data_path,
        output_path=output_path,
        config_path=config_path,
    )
    print("指标分析已完成，预览：")
    print(f"  output_path: {preview['output_path']}")
    print(f"  n_rows: {preview['n_rows']}")
    print(f"  n_significant: {preview['n_significant']}")
    print(f"  analyses: {preview['analyses']}")


if __name__ == "__main__":
    main()
