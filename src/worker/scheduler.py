"""APScheduler cron-задачи: recovery задач видео и зависших заявок."""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from src.config import Settings
from src.database import JobStore
from src.models.job import RecoveryResult, VideoJobPayload
from src.queue import QueuePublisher

STALE_SUBMISSION_MESSAGE = "Folder processing stalled: no progress for {hours}h"


async def recover_video_jobs(
    store: JobStore,
    publisher: QueuePublisher,
    limit: int = 100,
) -> RecoveryResult:
    """
    Переотправить pending/failed задачи с неисчерпанными попытками.

    Единственный механизм восстановления задач, чьё сообщение потерялось
    или обработчик упал до финального статуса. Ошибка публикации одной задачи
    попадает в errors и не останавливает проход.
    """
    jobs = await store.get_retryable_video_jobs(limit)
    result = RecoveryResult(found=len(jobs))

    if not jobs:
        logger.info("[recover] No pending jobs to re-queue")
        return result

    logger.info(f"[recover] Found {len(jobs)} pending jobs to re-queue")
    for job in jobs:
        try:
            await publisher.publish_video_job(VideoJobPayload(
                video_id=job.video_id,
                submission_id=job.submission_id,
                cookies=job.cookies,
            ))
            result.republished += 1
        except Exception as e:
            message = f"Failed to publish {job.video_id}: {e}"
            logger.error(f"[recover] {message}")
            result.errors.append(message)

    logger.info(f"[recover] Published {result.republished}/{result.found} jobs")
    return result


async def fail_stale_submissions(store: JobStore, stale_hours: int) -> int:
    """Перевести в failed заявки-папки, цепочка которых перестала продвигаться."""
    stale = await store.find_stale_submissions(stale_hours)
    failed = 0
    for submission in stale:
        changed = await store.update_submission_status(
            submission.id, "failed", STALE_SUBMISSION_MESSAGE.format(hours=stale_hours),
        )
        if changed:
            failed += 1

    if failed:
        logger.warning(f"[recover] Marked {failed} stalled folder submissions as failed")
    return failed


def create_scheduler(
    store: JobStore,
    publisher: QueuePublisher,
    settings: Settings,
) -> AsyncIOScheduler:
    """Создать и настроить APScheduler."""
    scheduler = AsyncIOScheduler(
        job_defaults={
            # None = без ограничения: опоздавший job всё равно выполнится
            "misfire_grace_time": None,
            "coalesce": True,
        }
    )

    # Ежедневно: переотправка зависших задач видео
    scheduler.add_job(
        recover_video_jobs,
        "cron",
        hour=settings.recovery_cron_hour,
        kwargs={"store": store, "publisher": publisher, "limit": settings.recovery_batch_limit},
        id="recover_video_jobs",
    )

    # Каждый час: заявки с оборванной цепочкой
    scheduler.add_job(
        fail_stale_submissions,
        "interval",
        hours=1,
        kwargs={"store": store, "stale_hours": settings.submission_stale_hours},
        id="fail_stale_submissions",
    )

    return scheduler
