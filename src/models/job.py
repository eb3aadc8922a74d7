"""Pydantic-модели заявок, задач и сообщений очереди."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

JobStatus = Literal["pending", "processing", "completed", "failed"]
SubmissionKind = Literal["video", "folder"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


class Submission(BaseModel):
    """Заявка пользователя из таблицы scrape_submissions."""

    id: str
    url: str
    kind: SubmissionKind
    cookies: str | None = None
    status: JobStatus = "pending"
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class VideoJob(BaseModel):
    """Задача скрапинга одного видео из таблицы video_jobs (одна на video_id)."""

    id: str
    submission_id: str | None = None  # None: задача без заявки (ручной ретрай)
    video_id: str
    status: JobStatus = "pending"
    attempt_count: int = 0
    max_attempts: int = 3
    error_message: str | None = None
    cookies: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    processed_at: datetime | None = None

    @property
    def is_retryable(self) -> bool:
        """Recovery переотправляет только pending/failed с неисчерпанными попытками."""
        return (
            self.status in ("pending", "failed")
            and self.attempt_count < self.max_attempts
        )


class VideoJobPayload(BaseModel):
    """Тело сообщения QStash для /api/worker/video."""

    video_id: str
    submission_id: str | None = None
    cookies: str | None = None


class FolderJobPayload(BaseModel):
    """Тело сообщения QStash для /api/worker/folder.

    Всё состояние цепочки: video_ids=None — первое выполнение, нужен листинг;
    иначе — оставшиеся видео.
    """

    folder_id: str
    submission_id: str
    cookies: str | None = None
    video_ids: list[str] | None = None


class VideoJobOutcome(BaseModel):
    """Результат обработки одного видео."""

    status: Literal["completed", "skipped", "failed"]
    video_id: str
    error: str | None = None


class FolderJobOutcome(BaseModel):
    """Результат одного выполнения цепочки папки."""

    success: bool
    status: Literal["completed", "chained", "failed", "skipped"]
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    remaining: int = 0
    videos_found: int | None = None
    duration_ms: int = 0
    error: str | None = None


class RecoveryResult(BaseModel):
    """Итог recovery-прохода."""

    found: int = 0
    republished: int = 0
    errors: list[str] = []
