"""forkdep 日志配置

日志只写 stderr，stdout 留给命令结果（locate 打印的仓库地址等）。
级别与格式默认取自环境变量 FORKDEP_LOG_LEVEL / FORKDEP_LOG_JSON。
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

LOG_LEVEL_ENV = "FORKDEP_LOG_LEVEL"
LOG_JSON_ENV = "FORKDEP_LOG_JSON"

_TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"
_TEXT_DATEFMT = "%H:%M:%S"

# 标记由 setup_logging 安装的 handler，reset 时只移除这些
_OWNED = "_forkdep_handler"


class JSONFormatter(logging.Formatter):
    """每条记录一行 JSON，便于 CI 收集"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.levelno >= logging.WARNING:
            entry["where"] = f"{record.module}:{record.lineno}"
        if record.exc_info and record.exc_info[1]:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """安装 forkdep 的 stderr handler

    参数:
        level: 日志级别名；None 时读取 FORKDEP_LOG_LEVEL，默认 INFO
        json_output: 是否输出 JSON 行；None 时看 FORKDEP_LOG_JSON 是否为 "1"
    """
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV, "INFO")
    if json_output is None:
        json_output = os.getenv(LOG_JSON_ENV, "") == "1"

    reset_logging()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        JSONFormatter() if json_output else logging.Formatter(_TEXT_FORMAT, _TEXT_DATEFMT)
    )
    setattr(handler, _OWNED, True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.addHandler(handler)


def reset_logging() -> None:
    """移除 setup_logging 安装的 handler"""
    root = logging.getLogger()
    for handler in [h for h in root.handlers if getattr(h, _OWNED, False)]:
        root.removeHandler(handler)
        handler.close()
