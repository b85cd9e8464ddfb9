"""ThinkLy 的结构化日志。

每条记录写成一行 JSON，固定包含 provider / model / trace_id 三个上下文字段
（没有时为 null），方便按厂商或一次交换过滤。结构化字段通过
``extra={"extra": {...}}`` 传入。

log_redact_content 打开时，消息正文与 content / error 字段只保留前 64 个字符。
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from thinkly_core.config.settings import settings

LOGGER_NAME = "thinkly_core"
LOG_FILE = "thinkly.log"
CONTEXT_FIELDS = ("provider", "model", "trace_id")
REDACTED_FIELDS = ("content", "error")
REDACT_LIMIT = 64


def _redact(value: Any) -> Any:
    if isinstance(value, str) and len(value) > REDACT_LIMIT:
        return value[:REDACT_LIMIT] + "..."
    return value


class ThinkLyJsonFormatter(logging.Formatter):
    def __init__(self, redact_content: bool = False):
        super().__init__()
        self.redact_content = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": _redact(msg) if self.redact_content else msg,
        }
        payload.update({key: None for key in CONTEXT_FIELDS})

        fields = getattr(record, "extra", None)
        if isinstance(fields, dict):
            for key, value in fields.items():
                if self.redact_content and key in REDACTED_FIELDS:
                    value = _redact(value)
                payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(log_dir: Optional[str] = None, redact_content: Optional[bool] = None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    # 重复导入或重复调用时不叠加 handler
    if any(getattr(h, "_thinkly", False) for h in logger.handlers):
        return logger

    path = Path(log_dir or settings.log_dir)
    path.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(path / LOG_FILE, encoding="utf-8")
    fh.setLevel(logging.INFO)
    if redact_content is None:
        redact_content = settings.log_redact_content
    fh.setFormatter(ThinkLyJsonFormatter(redact_content=redact_content))
    fh._thinkly = True
    logger.addHandler(fh)
    return logger


logger = setup_logger()
