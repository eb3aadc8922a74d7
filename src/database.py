"""Хранилище заявок, задач и результатов скрапинга (Supabase)."""
import asyncio
import re
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
from loguru import logger
from postgrest.exceptions import APIError as PostgrestAPIError
from postgrest.types import CountMethod
from supabase import Client

from src.models.job import JobStatus, Submission, SubmissionKind, VideoJob
from src.models.video import PersistedVideo, ScrapedVideo

SUBMISSIONS_TABLE = "scrape_submissions"
JOBS_TABLE = "video_jobs"
VIDEOS_TABLE = "videos"

STORE_RETRY_ATTEMPTS = 3
STORE_RETRY_BASE_DELAY = 0.5

# Коды PostgREST, означающие проблемы соединения с Postgres
_TRANSIENT_PGRST_CODES = {"PGRST000", "PGRST001", "PGRST002", "PGRST003"}
_TRANSIENT_MARKERS = ("connection", "timeout", "timed out", "fetch failed", "temporarily unavailable")


def sanitize_error(error: str) -> str:
    """Убрать потенциальные креденшалы из сообщения об ошибке."""
    error = re.sub(r"://[^@\s]+@", "://***:***@", error)
    return re.sub(r"(?i)(cookie[\"']?\s*[:=]\s*)[^\n,}]+", r"\1***", error)


def is_transient_error(exc: BaseException) -> bool:
    """Ошибка соединения/таймаута, которую имеет смысл повторить."""
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    if isinstance(exc, PostgrestAPIError):
        if exc.code in _TRANSIENT_PGRST_CODES:
            return True
        message = (exc.message or "").lower()
        return any(marker in message for marker in _TRANSIENT_MARKERS)
    return False


def is_unsent_error(exc: BaseException) -> bool:
    """Запрос не дошёл до Postgres: повтор не может выполнить запись дважды."""
    if isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout, ConnectionRefusedError)):
        return True
    return isinstance(exc, PostgrestAPIError) and exc.code in _TRANSIENT_PGRST_CODES


async def run_in_thread(
    func: Callable[..., Any],
    *args: Any,
    retry_transient: bool = False,
    retry_if: Callable[[BaseException], bool] = is_transient_error,
    attempts: int = STORE_RETRY_ATTEMPTS,
    base_delay: float = STORE_RETRY_BASE_DELAY,
    **kwargs: Any,
) -> Any:
    """Выполнить синхронный вызов Supabase в отдельном потоке.

    retry_transient=True — повторять ошибки соединения с экспоненциальным
    backoff (base_delay, 2*base_delay, ...), не более attempts попыток.
    retry_if решает, какие ошибки повторяемы.
    """
    if not retry_transient:
        return await asyncio.to_thread(func, *args, **kwargs)

    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except Exception as e:
            if not retry_if(e) or attempt == attempts:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(f"[DB] Retry {attempt}/{attempts} in {delay}s after error: {e}")
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")


def _extract_rpc_scalar(data: Any) -> Any:
    """Extract scalar value from Supabase RPC response."""
    if isinstance(data, list):
        if not data:
            return None
        first_item = data[0]
        if isinstance(first_item, dict):
            if not first_item:
                return None
            if len(first_item) == 1:
                return next(iter(first_item.values()))
            return first_item
        return first_item

    if isinstance(data, dict):
        if not data:
            return None
        if len(data) == 1:
            return next(iter(data.values()))
        return data

    return data


def _now() -> str:
    return datetime.now(UTC).isoformat()


class JobStore:
    """Единственное разделяемое изменяемое состояние системы.

    Все изменения — однострочные upsert или переходы статуса по уникальному
    ключу (id заявки, id задачи, video_id), атомарность обеспечивает Postgres.
    Клиент передаётся явно: хранилище создаётся при старте процесса.
    """

    def __init__(
        self,
        db: Client,
        retry_attempts: int = STORE_RETRY_ATTEMPTS,
        retry_base_delay: float = STORE_RETRY_BASE_DELAY,
    ) -> None:
        self.db = db
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay

    async def _run(
        self,
        func: Callable[..., Any],
        retry: bool = True,
        idempotent: bool = True,
    ) -> Any:
        """Неидемпотентные вызовы повторяются, только если запрос не был отправлен."""
        return await run_in_thread(
            func,
            retry_transient=retry,
            retry_if=is_transient_error if idempotent else is_unsent_error,
            attempts=self.retry_attempts,
            base_delay=self.retry_base_delay,
        )

    # --- Заявки ---

    async def create_submission(
        self, url: str, kind: SubmissionKind, cookies: str | None = None
    ) -> Submission:
        """Создать заявку в статусе pending."""
        result = await self._run(
            self.db.table(SUBMISSIONS_TABLE).insert({
                "url": url,
                "kind": kind,
                "cookies": cookies,
                "status": "pending",
            }).execute,
            idempotent=False,
        )
        return Submission.model_validate(result.data[0])

    async def get_submission(self, submission_id: str) -> Submission | None:
        result = await self._run(
            self.db.table(SUBMISSIONS_TABLE).select("*").eq("id", submission_id).limit(1).execute
        )
        if not result.data:
            return None
        return Submission.model_validate(result.data[0])

    async def update_submission_status(
        self,
        submission_id: str,
        status: JobStatus,
        error_message: str | None = None,
    ) -> bool:
        """
        Перевести заявку в новый статус.
        Меняются только строки в pending/processing — completed/failed финальны,
        поэтому терминальный переход случается ровно один раз.
        Возвращает True, если строка изменилась.
        """
        update: dict[str, Any] = {"status": status, "updated_at": _now()}
        if status == "failed":
            update["error_message"] = sanitize_error(error_message or "Unknown error")
        elif error_message is not None:
            update["error_message"] = sanitize_error(error_message)

        result = await self._run(
            self.db.table(SUBMISSIONS_TABLE)
            .update(update)
            .eq("id", submission_id)
            .in_("status", ["pending", "processing"])
            .execute
        )
        changed = bool(result.data)
        if not changed:
            logger.debug(f"Submission {submission_id} already final, status={status} ignored")
        return changed

    async def find_stale_submissions(self, older_than_hours: int) -> list[Submission]:
        """Заявки-папки, цепочка которых не продвигалась дольше older_than_hours."""
        threshold = (datetime.now(UTC) - timedelta(hours=older_than_hours)).isoformat()
        result = await self._run(
            self.db.table(SUBMISSIONS_TABLE)
            .select("*")
            .eq("kind", "folder")
            .in_("status", ["pending", "processing"])
            .lt("updated_at", threshold)
            .order("updated_at", desc=False)
            .execute
        )
        return [Submission.model_validate(row) for row in result.data or []]

    # --- Задачи видео ---

    async def upsert_video_job(
        self,
        video_id: str,
        submission_id: str | None = None,
        cookies: str | None = None,
    ) -> VideoJob:
        """
        Создать задачу или обновить существующую (ON CONFLICT video_id).
        None-поля в upsert не передаются — существующие submission_id/cookies
        не затираются.
        """
        row: dict[str, Any] = {"video_id": video_id, "updated_at": _now()}
        if submission_id:
            row["submission_id"] = submission_id
        if cookies:
            row["cookies"] = cookies

        result = await self._run(
            self.db.table(JOBS_TABLE).upsert(row, on_conflict="video_id").execute
        )
        return VideoJob.model_validate(result.data[0])

    async def get_video_job(self, video_id: str) -> VideoJob | None:
        result = await self._run(
            self.db.table(JOBS_TABLE).select("*").eq("video_id", video_id).limit(1).execute
        )
        if not result.data:
            return None
        return VideoJob.model_validate(result.data[0])

    async def mark_job_processing(self, job_id: str) -> int | None:
        """Перевести задачу в processing; RPC атомарно инкрементирует attempt_count."""
        result = await self._run(
            self.db.rpc("mark_video_job_processing", {"p_job_id": job_id}).execute,
            idempotent=False,
        )
        return _extract_rpc_scalar(result.data)

    async def mark_job_completed(self, job_id: str) -> None:
        now = _now()
        await self._run(
            self.db.table(JOBS_TABLE).update({
                "status": "completed",
                "error_message": None,
                "processed_at": now,
                "updated_at": now,
            }).eq("id", job_id).execute
        )

    async def mark_job_failed(self, job_id: str, error: str) -> None:
        safe_error = sanitize_error(error)
        await self._run(
            self.db.table(JOBS_TABLE).update({
                "status": "failed",
                "error_message": safe_error,
                "updated_at": _now(),
            }).eq("id", job_id).execute
        )
        logger.warning(f"Video job {job_id} failed: {safe_error}")

    async def get_retryable_video_jobs(self, limit: int = 10) -> list[VideoJob]:
        """pending/failed задачи с attempt_count < max_attempts, старые первыми."""
        result = await self._run(
            self.db.rpc("get_retryable_video_jobs", {"p_limit": limit}).execute
        )
        return [VideoJob.model_validate(row) for row in result.data or []]

    async def count_retryable_video_jobs(self) -> int:
        result = await self._run(
            self.db.rpc("count_retryable_video_jobs", {}).execute
        )
        return int(_extract_rpc_scalar(result.data) or 0)

    # --- Результаты ---

    async def is_video_fresh(self, video_id: str, hours: int) -> bool:
        """Проверить, сохранялось ли видео менее hours часов назад."""
        threshold = (datetime.now(UTC) - timedelta(hours=hours)).isoformat()
        result = await self._run(
            self.db.table(VIDEOS_TABLE)
            .select("updated_at")
            .eq("video_id", video_id)
            .gt("updated_at", threshold)
            .limit(1)
            .execute
        )
        return bool(result.data)

    async def get_video(self, video_id: str) -> PersistedVideo | None:
        result = await self._run(
            self.db.table(VIDEOS_TABLE).select("*").eq("video_id", video_id).limit(1).execute
        )
        if not result.data:
            return None
        return PersistedVideo.model_validate(result.data[0])

    async def save_video(self, video: ScrapedVideo) -> None:
        """Upsert результата по video_id — полная перезапись, без истории."""
        raw = video.model_dump(mode="json")
        now = _now()
        row = {
            "video_id": video.id,
            "title": video.title,
            "duration": round(video.duration),
            "thumbnail": video.thumbnail,
            "description": video.description,
            "owner_name": video.owner_name,
            "owner_avatar_url": video.owner_avatar_url,
            "loom_created_at": video.created_at,
            "reactions": raw["reactions"],
            "comments": raw["comments"],
            "transcript": raw["transcript"],
            "chapters": raw["chapters"],
            "tags": raw["tags"],
            "raw_data": raw,
            "scraped_at": now,
            "updated_at": now,
        }
        await self._run(
            self.db.table(VIDEOS_TABLE).upsert(row, on_conflict="video_id").execute
        )
        logger.debug(f"[DB] Saved video: {video.id} - \"{video.title}\"")

    async def list_videos(self, limit: int = 50, offset: int = 0) -> tuple[list[PersistedVideo], int]:
        """Страница сохранённых видео (новые первыми) и общее количество."""
        result = await self._run(
            self.db.table(VIDEOS_TABLE)
            .select("*", count=CountMethod.exact)
            .order("scraped_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute
        )
        videos = [PersistedVideo.model_validate(row) for row in result.data or []]
        return videos, result.count or 0

    async def list_videos_by_submission(self, submission_id: str) -> list[PersistedVideo]:
        """Все сохранённые видео, задачи которых порождены заявкой."""
        jobs = await self._run(
            self.db.table(JOBS_TABLE).select("video_id").eq("submission_id", submission_id).execute
        )
        video_ids = [row["video_id"] for row in jobs.data or []]
        if not video_ids:
            return []

        result = await self._run(
            self.db.table(VIDEOS_TABLE)
            .select("*")
            .in_("video_id", video_ids)
            .order("scraped_at", desc=True)
            .execute
        )
        return [PersistedVideo.model_validate(row) for row in result.data or []]

    # --- Служебное ---

    async def initialize_schema(self) -> None:
        """Создать таблицы и индексы (идемпотентно, RPC из sql/schema.sql)."""
        await self._run(self.db.rpc("initialize_schema", {}).execute)
        logger.info("[DB] Schema initialized successfully")

    async def check_connection(self) -> bool:
        """Лёгкий запрос для healthcheck; исключения пробрасываются."""
        await self._run(
            self.db.table(JOBS_TABLE).select("id").limit(1).execute, retry=False
        )
        return True
