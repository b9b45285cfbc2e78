# core/logger.py
# 统一日志入口：所有模块通过 get_logger(__name__) 获取 logger
# 日志级别由环境变量 HEALTH_STATS_LOG_LEVEL 控制（默认 INFO）

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL_ENV = "HEALTH_STATS_LOG_LEVEL"

_ROOT_NAME = "health_stats"
_configured = False


def _configure_root() -> logging.Logger:
    global _configured
    root = logging.getLogger(_ROOT_NAME)
    if _configured:
        return root

    level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    # 避免与调用方的 root logger 重复输出
    root.propagate = False
    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """
    获取挂在统一根 logger 下的子 logger。

    参数：
    - name: 一般传 __name__，如 "core.stats.survival"。

    返回：
    - logging.Logger，名称为 "health_stats.<name>"，首次调用时完成 handler 配置。
    """
    root = _configure_root()
    return root.getChild(name)
