"""
Служебные команды для задач скрапинга.

Использование:
    uv run python -m src.cli.jobs stats
    uv run python -m src.cli.jobs retry-failed --limit 50
    uv run python -m src.cli.jobs retry-failed --dry-run
    uv run python -m src.cli.jobs test-job VIDEO_ID --cookies "a=1; b=2"
    uv run python -m src.cli.jobs test-job VIDEO_ID --local   # скрап в этом процессе, без QStash
"""
import argparse
import asyncio
import sys

import httpx
from loguru import logger
from supabase import create_client

from src.config import Settings, load_settings
from src.database import JobStore
from src.models.credentials import normalize_credentials
from src.models.job import VideoJobPayload
from src.platforms.loom.scraper import LoomScraper
from src.queue import QueuePublisher
from src.worker.handlers import WorkerContext, handle_video_job
from src.worker.scheduler import recover_video_jobs


def _create_store(settings: Settings) -> JobStore:
    db = create_client(settings.supabase_url, settings.supabase_service_key.get_secret_value())
    return JobStore(db)


async def stats(store: JobStore) -> None:
    pending = await store.count_retryable_video_jobs()
    logger.info(f"Задач к переотправке (pending/failed, попытки не исчерпаны): {pending}")


async def retry_failed(
    store: JobStore,
    publisher: QueuePublisher,
    limit: int,
    dry_run: bool = False,
) -> None:
    """Переотправить pending/failed задачи в очередь."""
    if dry_run:
        jobs = await store.get_retryable_video_jobs(limit)
        for job in jobs:
            logger.info(
                f"  [dry-run] {job.video_id} status={job.status} "
                f"attempts={job.attempt_count}/{job.max_attempts}"
            )
        logger.info(f"[dry-run] Было бы переотправлено {len(jobs)} задач. Выход.")
        return

    result = await recover_video_jobs(store, publisher, limit)
    logger.info(f"Готово: найдено {result.found}, переотправлено {result.republished}")
    for error in result.errors:
        logger.error(error)


async def test_job(
    store: JobStore,
    publisher: QueuePublisher,
    settings: Settings,
    video_id: str,
    cookies: str | None,
    local: bool = False,
) -> None:
    """Опубликовать задачу одного видео или выполнить её прямо здесь."""
    payload = VideoJobPayload(video_id=video_id, cookies=cookies)

    if not local:
        message_id = await publisher.publish_video_job(payload)
        logger.info(f"Published test job for {video_id}: {message_id}")
        return

    async with httpx.AsyncClient(follow_redirects=True) as client:
        ctx = WorkerContext(
            store=store,
            scraper=LoomScraper(client, settings),
            publisher=publisher,
            settings=settings,
        )
        outcome = await handle_video_job(ctx, payload)
    logger.info(f"{video_id}: {outcome.status}" + (f" ({outcome.error})" if outcome.error else ""))


def main() -> None:
    parser = argparse.ArgumentParser(description="Служебные команды задач скрапинга Loom")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("stats", help="Количество задач к переотправке")

    retry = commands.add_parser("retry-failed", help="Переотправить pending/failed задачи")
    retry.add_argument("--limit", type=int, default=100, help="Максимум задач")
    retry.add_argument("--dry-run", action="store_true", help="Только показать, не публиковать")

    test = commands.add_parser("test-job", help="Тестовая задача одного видео")
    test.add_argument("video_id")
    test.add_argument("--cookies", default=None, help="Строка cookie или JSON-массив cookies")
    test.add_argument("--local", action="store_true", help="Выполнить в этом процессе без очереди")

    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="INFO")

    settings = load_settings()
    store = _create_store(settings)
    publisher = QueuePublisher(settings)

    if args.command == "stats":
        asyncio.run(stats(store))
    elif args.command == "retry-failed":
        asyncio.run(retry_failed(store, publisher, limit=args.limit, dry_run=args.dry_run))
    else:
        asyncio.run(test_job(
            store, publisher, settings,
            video_id=args.video_id,
            cookies=normalize_credentials(args.cookies),
            local=args.local,
        ))


if __name__ == "__main__":
    main()
