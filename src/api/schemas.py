"""Pydantic-схемы для API скрапера."""
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from src.models.job import JobStatus, SubmissionKind
from src.models.video import ScrapedVideo


class EnqueueRequest(BaseModel):
    """Запрос на скрапинг видео или папки."""

    url: str = Field(min_length=1)
    type: SubmissionKind
    # Строка "a=1; b=2", JSON-массив cookies браузера или сам массив
    cookies: str | list[dict[str, Any]] | None = None

    @field_validator("url")
    @classmethod
    def clean_url(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("URL is required")
        return cleaned


class EnqueueResponse(BaseModel):
    """Ответ на POST /api/enqueue."""

    success: bool = True
    submission_id: str
    status: JobStatus


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class VideoResponse(BaseModel):
    """Одно видео."""

    success: bool = True
    data: ScrapedVideo


class VideoListResponse(BaseModel):
    """Список видео (по заявке или с пагинацией)."""

    success: bool = True
    data: list[ScrapedVideo]
    total: int


class SubmissionView(BaseModel):
    """Заявка в ответе API — без cookies."""

    id: str
    url: str
    kind: SubmissionKind
    status: JobStatus
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SubmissionResponse(BaseModel):
    success: bool = True
    data: SubmissionView


class WorkerVideoResponse(BaseModel):
    """Ответ воркера видео для QStash."""

    success: bool
    status: Literal["completed", "skipped", "failed"]
    video_id: str
    error: str | None = None


class CronResponse(BaseModel):
    """Ответ GET /api/cron/recover."""

    success: bool
    jobs_processed: int
    stale_submissions: int = 0
    errors: list[str] | None = None


class InitResponse(BaseModel):
    success: bool = True
    message: str


class DatabaseHealth(BaseModel):
    connected: bool


class QueueHealth(BaseModel):
    configured: bool


class HealthResponse(BaseModel):
    """Ответ healthcheck."""

    status: Literal["healthy", "degraded", "unhealthy"]
    timestamp: datetime
    pending_jobs: int | None = None
    database: DatabaseHealth
    qstash: QueueHealth
    errors: list[str] | None = None


class DebugRequest(BaseModel):
    """Служебные действия: статистика, переотправка, тестовая задача."""

    action: Literal["stats", "retry_failed", "test_job"]
    video_id: str | None = None
    cookies: str | list[dict[str, Any]] | None = None


class DebugResponse(BaseModel):
    success: bool = True
    message: str | None = None
    pending_jobs: int | None = None
