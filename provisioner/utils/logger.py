"""provisioner 日志配置

编排流程通过 stage_logger() 为每条日志附加阶段名和服务名:
  - 文本格式: "... provisioner.services.setup.service_setup: [service_setup] data.db: 已就绪"
  - JSON 格式: 额外输出 "stage" / "service" 字段，便于按服务检索
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import datetime, timezone
from typing import Any

# 编排上下文字段，由 StageAdapter 写入 LogRecord
CONTEXT_FIELDS = ("stage", "service")


class StageAdapter(logging.LoggerAdapter):
    """为日志记录附加编排阶段和服务名"""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any],
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs


def stage_logger(logger: logging.Logger, stage: str, service: str = "") -> StageAdapter:
    """绑定阶段 / 服务名的 logger"""
    return StageAdapter(logger, {"stage": stage, "service": service})


def _context(record: logging.LogRecord) -> dict[str, str]:
    return {f: getattr(record, f) for f in CONTEXT_FIELDS if getattr(record, f, "")}


class TextFormatter(logging.Formatter):
    """人类可读格式，有编排上下文时在消息前加 "[stage] service: " """

    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(levelname)-7s] %(name)s: %(context)s%(message)s")

    def format(self, record: logging.LogRecord) -> str:
        ctx = _context(record)
        prefix = ""
        if "stage" in ctx:
            prefix += f"[{ctx['stage']}] "
        if "service" in ctx:
            prefix += f"{ctx['service']}: "
        record.context = prefix
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志，一行一条；编排上下文作为顶层字段输出"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器：单个 stderr handler，stdout 留给命令输出"""
    root = logging.getLogger()
    reset_logging()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else TextFormatter())
    root.addHandler(handler)


def reset_logging() -> None:
    """清理根日志器的所有 handlers"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
