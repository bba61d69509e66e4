"""
Структурированное логирование (JSON) для парсинга в ELK/Loki.
"""
import json
import logging
from datetime import datetime, timezone

# Поля, которые пробрасываются из extra={...} в JSON-запись
EXTRA_FIELDS = ("request_id", "user_id", "file_id", "storage_backend", "task_id")


class JSONFormatter(logging.Formatter):
    """Форматтер логов в JSON для сбора в агрегаторах."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(use_json: bool = True, level: str = "INFO") -> None:
    """
    Настройка логирования. Если use_json=True, вывод в JSON.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter() if use_json else logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        ))
        root.addHandler(handler)
