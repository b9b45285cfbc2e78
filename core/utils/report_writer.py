# core/utils/report_writer.py
# 把分析结果表写出为带基本样式的 Excel（表头加粗、默认字体、冻结首行）

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font

from core.logger import get_logger

_logger = get_logger(__name__)


def _cell_value(value: Any) -> Any:
    """
    openpyxl 只接受标量：dict / list 等转成字符串，NaN 与 None 留空，
    ±inf 写成文本（如未跌破 0.5 的中位生存时间）。
    """
    if hasattr(value, "item") and not isinstance(value, (dict, list, tuple)):
        # numpy 标量
        value = value.item()
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
    if isinstance(value, (dict, list, tuple)):
        return str(value)
    return value


def write_excel_report(
    df: pd.DataFrame,
    output_path: str | Path,
    sheet_name: str = "analysis",
    excel_style: Optional[dict] = None,
) -> Path:
    """
    将结果 DataFrame 写为单工作表的 .xlsx。

    Input:
        df: 结果表（通常是 run_metric_analyses 的输出）。
        output_path: 目标路径，父目录不存在时自动创建。
        sheet_name: 工作表名称。
        excel_style: 样式配置，支持字段：
            - font_name: 字体名称（默认 微软雅黑）
            - font_size: 字号（默认 10）
            - show_gridlines: 是否显示网格线（默认 False）
    Output:
        Path: 实际写出的文件路径。
    """
    path = Path(output_path)
    if path.suffix.lower() != ".xlsx":
        raise ValueError(f"Excel 报告仅支持 .xlsx 后缀，当前为：{path.suffix}")
    path.parent.mkdir(parents=True, exist_ok=True)

    style = excel_style or {}
    font_name = style.get("font_name", "微软雅黑")
    font_size = style.get("font_size", 10)
    body_font = Font(name=font_name, size=font_size)
    header_font = Font(name=font_name, size=font_size, bold=True)

    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name
    ws.sheet_view.showGridLines = bool(style.get("show_gridlines", False))

    ws.append([str(c) for c in df.columns])
    for cell in ws[1]:
        cell.font = header_font
    for row in df.itertuples(index=False):
        ws.append([_cell_value(v) for v in row])
    for row_cells in ws.iter_rows(min_row=2):
        for cell in row_cells:
            cell.font = body_font
    ws.freeze_panes = "A2"

    wb.save(path)
    _logger.info("Excel 报告已写出：%s（%d 行）", path, len(df))
    return path
