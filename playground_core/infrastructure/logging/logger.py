import json
import logging
from pathlib import Path
from datetime import datetime, timezone
from playground_core.config.settings import settings


class JsonFormatter(logging.Formatter):
    """每条日志输出一行 JSON，extra={"extra": {...}} 中的字段会被展开。"""

    def __init__(self, redact_content: bool = False):
        super().__init__()
        self._redact_content = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact_content:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            if self._redact_content and "content" in extra:
                extra = {**extra, "content": str(extra["content"])[:64]}
            payload.update(extra)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("playground_core")
    logger.setLevel(logging.INFO)
    # 重复 import 时避免挂多个 handler
    if any(getattr(h, "_playground_json", False) for h in logger.handlers):
        return logger
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "agent.log", encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh.setFormatter(JsonFormatter(settings.log_redact_content))
    fh._playground_json = True
    logger.addHandler(fh)
    return logger


logger = setup_logger()
