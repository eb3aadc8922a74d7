"""Точка входа скрапера — инициализация и запуск API + планировщика."""
import asyncio
import signal
import sys

import httpx
import uvicorn
from loguru import logger
from supabase import create_client

from src.api.app import create_app
from src.config import load_settings
from src.database import JobStore
from src.log_sink import create_supabase_sink
from src.platforms.loom.scraper import LoomScraper
from src.queue import QueuePublisher
from src.worker.scheduler import create_scheduler


async def main() -> None:
    """Инициализация и запуск API."""
    settings = load_settings()

    # Логирование
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    if settings.log_level == "DEBUG":
        logger.add("logs/scraper.log", rotation="100 MB", retention="7 days")

    logger.info("Starting Loom scraper")

    # Supabase
    db = create_client(settings.supabase_url, settings.supabase_service_key.get_secret_value())
    store = JobStore(db)

    # Персистить WARNING+ логи в Supabase
    logger.add(
        create_supabase_sink(db),
        level="WARNING",
        enqueue=True,
        serialize=False,
    )

    publisher = QueuePublisher(settings)
    if not publisher.is_configured:
        logger.warning("QSTASH_TOKEN not set — enqueue and chaining will fail")
    if not settings.signing_keys_configured:
        logger.warning("QStash signing keys not set — worker signatures are not verified")

    # Один HTTP-клиент на процесс; таймауты задаются на каждый запрос
    http_client = httpx.AsyncClient(follow_redirects=True)
    scraper = LoomScraper(http_client, settings)

    # FastAPI
    app = create_app(store, publisher, settings, scraper)
    config = uvicorn.Config(app, host="0.0.0.0", port=settings.port, log_level="warning")
    server = uvicorn.Server(config)

    # Graceful shutdown
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: setattr(server, "should_exit", True))

    # APScheduler: recovery задач и зависших заявок
    scheduler = create_scheduler(store, publisher, settings)
    scheduler.start()
    logger.info("Scheduler started")

    logger.info(f"API server starting on port {settings.port}")

    try:
        await server.serve()
    finally:
        scheduler.shutdown(wait=False)
        await http_client.aclose()
        await logger.complete()
        logger.info("Scraper stopped gracefully")


if __name__ == "__main__":
    asyncio.run(main())
