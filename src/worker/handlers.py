"""Обработчики доставок очереди — видео, цепочка папки, приём заявок."""
import asyncio
import time
from dataclasses import dataclass

from loguru import logger

from src.config import Settings
from src.database import JobStore, sanitize_error
from src.models.job import (
    FolderJobOutcome,
    FolderJobPayload,
    Submission,
    SubmissionKind,
    VideoJobOutcome,
    VideoJobPayload,
)
from src.platforms.base import BaseScraper
from src.platforms.loom.identity import extract_folder_id, extract_video_id
from src.queue import QueuePublisher

SCRAPE_FAILED_MESSAGE = "Failed to scrape - may be private or unavailable"


class InvalidLocatorError(ValueError):
    """Из URL не удалось извлечь ID видео или папки."""


@dataclass
class WorkerContext:
    """Зависимости обработчиков; создаются один раз при старте процесса."""

    store: JobStore
    scraper: BaseScraper
    publisher: QueuePublisher
    settings: Settings


@dataclass
class BatchResult:
    """Счётчики одного выполнения цепочки."""

    processed: int = 0
    skipped: int = 0
    failed: int = 0


# --- Видео ---

async def handle_video_job(ctx: WorkerContext, payload: VideoJobPayload) -> VideoJobOutcome:
    """
    Обработать одно видео.

    Свежий результат → skipped без побочных эффектов (повторная доставка безопасна).
    Иначе: upsert задачи, processing (+1 попытка), скрап, сохранение.
    Новых сообщений в очередь не публикуется.
    """
    video_id = payload.video_id

    if await ctx.store.is_video_fresh(video_id, ctx.settings.freshness_hours):
        logger.info(f"[video_job] Skipping {video_id} - scraped within {ctx.settings.freshness_hours}h")
        return VideoJobOutcome(status="skipped", video_id=video_id)

    job = await ctx.store.upsert_video_job(
        video_id, submission_id=payload.submission_id, cookies=payload.cookies,
    )
    cookies = payload.cookies or job.cookies

    try:
        attempt = await ctx.store.mark_job_processing(job.id)
        logger.debug(f"[video_job] Processing {video_id} (attempt {attempt})")

        video = await ctx.scraper.scrape_video(video_id, cookies)
        if video is None:
            await ctx.store.mark_job_failed(job.id, SCRAPE_FAILED_MESSAGE)
            return VideoJobOutcome(status="failed", video_id=video_id, error="Scrape failed")

        await ctx.store.save_video(video)
        await ctx.store.mark_job_completed(job.id)
    except Exception as e:
        logger.exception(f"[video_job] Error processing {video_id}: {e}")
        try:
            await ctx.store.mark_job_failed(job.id, str(e))
        except Exception as mark_error:
            logger.error(f"[video_job] Could not mark job {job.id} failed: {mark_error}")
        raise

    logger.info(f"[video_job] Done: {video_id} - \"{video.title}\"")
    return VideoJobOutcome(status="completed", video_id=video_id)


# --- Цепочка папки ---

def split_batch(video_ids: list[str], size: int) -> tuple[list[str], list[str]]:
    """Первые size ID — текущий батч, остальное уходит в продолжение."""
    size = max(1, size)
    return video_ids[:size], video_ids[size:]


def dedupe_ids(video_ids: list[str]) -> list[str]:
    """Убрать повторы, сохранив порядок листинга."""
    return list(dict.fromkeys(video_ids))


async def process_batch(
    ctx: WorkerContext,
    batch: list[str],
    submission_id: str | None,
    cookies: str | None,
    group_size: int,
) -> BatchResult:
    """
    Обработать батч группами по group_size, дожидаясь каждой группы.
    Ошибка одного видео считается в failed и не прерывает батч.
    """
    result = BatchResult()
    group_size = max(1, group_size)

    for start in range(0, len(batch), group_size):
        group = batch[start:start + group_size]
        outcomes = await asyncio.gather(
            *(
                handle_video_job(
                    ctx,
                    VideoJobPayload(video_id=video_id, submission_id=submission_id, cookies=cookies),
                )
                for video_id in group
            ),
            return_exceptions=True,
        )

        for video_id, outcome in zip(group, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"[folder_job] Error processing {video_id}: {outcome}")
                result.failed += 1
            elif outcome.status == "completed":
                result.processed += 1
            elif outcome.status == "skipped":
                result.skipped += 1
            else:
                result.failed += 1

    return result


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


async def handle_folder_job(ctx: WorkerContext, payload: FolderJobPayload) -> FolderJobOutcome:
    """
    Одно выполнение цепочки папки.

    payload — всё состояние цикла: video_ids=None означает первое выполнение
    (нужен листинг), иначе — оставшиеся видео. Выполнение обрабатывает не больше
    videos_per_execution видео и либо публикует продолжение с остатком,
    либо завершает заявку.
    """
    started = time.monotonic()
    folder_id = payload.folder_id
    submission_id = payload.submission_id
    cookies = payload.cookies

    submission = await ctx.store.get_submission(submission_id)
    if submission is None:
        logger.warning(f"[folder_job] Submission {submission_id} not found, dropping {folder_id}")
        return FolderJobOutcome(
            success=False, status="skipped",
            error="Submission not found", duration_ms=_elapsed_ms(started),
        )
    if submission.is_terminal:
        logger.info(f"[folder_job] Submission {submission_id} already {submission.status}, skipping")
        return FolderJobOutcome(success=True, status="skipped", duration_ms=_elapsed_ms(started))

    # Также обновляет updated_at: признак живой цепочки для stale-sweep
    await ctx.store.update_submission_status(submission_id, "processing")

    videos_found: int | None = None
    if payload.video_ids is None:
        logger.info(f"[folder_job] Initial call for folder: {folder_id}")
        listing = await ctx.scraper.list_folder(folder_id, cookies)

        if not listing.success:
            error = listing.error or "Failed to fetch folder videos"
            await ctx.store.update_submission_status(submission_id, "failed", error)
            return FolderJobOutcome(
                success=False, status="failed",
                error=sanitize_error(error), duration_ms=_elapsed_ms(started),
            )

        if listing.partial and listing.error:
            await ctx.store.update_submission_status(submission_id, "processing", listing.error)

        video_ids = dedupe_ids([v.id for v in listing.videos])
        videos_found = len(video_ids)

        if not video_ids:
            await ctx.store.update_submission_status(submission_id, "completed")
            return FolderJobOutcome(
                success=True, status="completed",
                videos_found=0, duration_ms=_elapsed_ms(started),
            )
        logger.info(f"[folder_job] Found {videos_found} videos to process")
    else:
        video_ids = payload.video_ids
        logger.info(f"[folder_job] Continuing {folder_id} with {len(video_ids)} remaining videos")

    batch, remaining = split_batch(video_ids, ctx.settings.videos_per_execution)
    counts = await process_batch(
        ctx, batch, submission_id, cookies, ctx.settings.effective_concurrency,
    )
    duration_ms = _elapsed_ms(started)
    logger.info(
        f"[folder_job] Batch done: processed={counts.processed}, skipped={counts.skipped}, "
        f"failed={counts.failed} ({duration_ms / 1000:.2f}s)"
    )

    if remaining:
        logger.info(f"[folder_job] Chaining to process {len(remaining)} more videos")
        await ctx.publisher.publish_folder_job(FolderJobPayload(
            folder_id=folder_id,
            submission_id=submission_id,
            cookies=cookies,
            video_ids=remaining,
        ))
        return FolderJobOutcome(
            success=True, status="chained",
            processed=counts.processed, skipped=counts.skipped, failed=counts.failed,
            remaining=len(remaining), videos_found=videos_found, duration_ms=duration_ms,
        )

    await ctx.store.update_submission_status(submission_id, "completed")
    logger.info(f"[folder_job] Folder {folder_id} completed")
    return FolderJobOutcome(
        success=True, status="completed",
        processed=counts.processed, skipped=counts.skipped, failed=counts.failed,
        remaining=0, videos_found=videos_found, duration_ms=duration_ms,
    )


# --- Приём заявок ---

async def submit(
    ctx: WorkerContext,
    url: str,
    kind: SubmissionKind,
    cookies: str | None = None,
) -> Submission:
    """
    Создать заявку и опубликовать первое сообщение.

    Заявка на видео завершается сразу после публикации — дальше её судьба
    отслеживается задачей видео. Ошибка публикации переводит заявку в failed.
    """
    if kind == "video":
        video_id = extract_video_id(url)
        if not video_id:
            raise InvalidLocatorError("Invalid Loom video URL")
        folder_id = None
    else:
        folder_id = extract_folder_id(url)
        if not folder_id:
            raise InvalidLocatorError("Invalid Loom folder URL")
        video_id = None

    submission = await ctx.store.create_submission(url, kind, cookies)

    try:
        if video_id:
            await ctx.publisher.publish_video_job(VideoJobPayload(
                video_id=video_id, submission_id=submission.id, cookies=cookies,
            ))
        elif folder_id:
            await ctx.publisher.publish_folder_job(FolderJobPayload(
                folder_id=folder_id, submission_id=submission.id, cookies=cookies,
            ))
    except Exception as e:
        await ctx.store.update_submission_status(submission.id, "failed", f"Publish failed: {e}")
        raise

    if kind == "video":
        await ctx.store.update_submission_status(submission.id, "completed")
        submission = submission.model_copy(update={"status": "completed"})

    logger.info(f"[enqueue] Submission {submission.id}: {kind} {video_id or folder_id}")
    return submission
