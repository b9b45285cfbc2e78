"""
core.utils.config_loader: 分析配置文件读取（YAML）。

禁止引用 modules 下的任何内容。
"""

from pathlib import Path
from typing import Any, Dict, Union

import yaml

from core.logger import get_logger

_logger = get_logger(__name__)


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """
    读取 YAML 配置文件并返回顶层字典。

    输入：
    - path: 文件路径，可为 str 或 Path。

    输出：
    - 解析得到的字典；文件为空或仅包含空文档时返回空字典。

    异常：
    - FileNotFoundError: 路径不存在；
    - ValueError: 顶层不是映射（如写成了列表），分析配置无法使用；
    - yaml.YAMLError: 解析失败时由 PyYAML 抛出。
    """
    path = Path(path)
    if not path.exists():
        _logger.error("YAML 文件不存在：%s", path)
        raise FileNotFoundError(f"YAML 文件不存在：{path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML 文件 {path} 的顶层必须是映射（key: value），当前为: {type(data).__name__}")
    return data
