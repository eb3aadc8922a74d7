"""Loguru sink для записи WARNING+ логов в Supabase (таблица scrape_logs)."""
from typing import Any

from supabase import Client

from src.database import sanitize_error

LOGS_TABLE = "scrape_logs"


def build_log_row(record: dict[str, Any]) -> dict[str, Any]:
    """Запись loguru → строка scrape_logs. Креды из сообщения маскируются."""
    extra = {k: str(v) for k, v in (record.get("extra") or {}).items()}
    return {
        "level": record["level"].name,
        "module": record["name"],
        "function": record["function"],
        "message": sanitize_error(str(record["message"])),
        "context": extra or None,
    }


def create_supabase_sink(db: Client):
    """Фабрика: вернуть sink-функцию, привязанную к db-клиенту."""

    def sink(message) -> None:
        try:
            db.table(LOGS_TABLE).insert(build_log_row(message.record)).execute()
        except Exception:
            pass  # sink никогда не бросает

    return sink
