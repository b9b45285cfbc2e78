# core.utils: 通用工具（文件读取、配置加载、Excel 报告写出）
# 禁止引用 modules 下的任何内容

from core.utils.config_loader import load_yaml
from core.utils.file_io import DataLoader
from core.utils.report_writer import write_excel_report

__all__ = ["DataLoader", "load_yaml", "write_excel_report"]
