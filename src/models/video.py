"""Pydantic-модели результатов скрапинга Loom."""
from typing import Any

from pydantic import BaseModel


class TranscriptSegment(BaseModel):
    """Фраза транскрипта с таймкодом (секунды)."""

    ts: float = 0
    value: str


class Chapter(BaseModel):
    """Глава видео."""

    timestamp: str  # "01:20" или "1:05:30"
    title: str
    start_seconds: int


class Reaction(BaseModel):
    """Реакция зрителя на момент видео."""

    id: str
    video_timestamp: float = 0
    user_name: str
    reaction: str  # эмодзи или его short-code


class CommentReply(BaseModel):
    """Ответ на комментарий."""

    id: str
    author: str
    content: str
    video_timestamp: float | None = None
    avatar_url: str | None = None
    created_at: str | None = None
    edited: bool = False


class Comment(CommentReply):
    """Комментарий верхнего уровня с ответами."""

    replies: list[CommentReply] = []


class VideoMetadata(BaseModel):
    """Метаданные владельца и создания из GraphQL GetVideo."""

    created_at: str | None = None
    owner_first_name: str | None = None
    owner_last_name: str | None = None
    name: str | None = None

    @property
    def owner_full_name(self) -> str | None:
        parts = [p for p in (self.owner_first_name, self.owner_last_name) if p]
        return " ".join(parts) or None


class ScrapedVideo(BaseModel):
    """Полный результат скрапинга одного видео."""

    id: str
    title: str
    duration: float = 0
    thumbnail: str | None = None
    description: str | None = None
    reactions: list[Reaction] = []
    comments: list[Comment] = []
    transcript: list[TranscriptSegment] | None = None
    chapters: list[Chapter] | None = None
    tags: list[str] = []
    created_at: str | None = None
    owner_name: str | None = None
    owner_avatar_url: str | None = None


class FolderVideo(BaseModel):
    """Видео из листинга папки."""

    id: str
    name: str = ""
    visibility: str = ""


class FolderListing(BaseModel):
    """Результат листинга папки.

    partial=True — листинг оборвался на не-первой странице,
    videos содержит всё, что успели получить.
    """

    success: bool
    folder_id: str | None = None
    videos: list[FolderVideo] = []
    total_count: int = 0
    error: str | None = None
    partial: bool = False


class PersistedVideo(BaseModel):
    """Строка таблицы videos."""

    video_id: str
    title: str
    duration: int = 0
    thumbnail: str | None = None
    description: str | None = None
    owner_name: str | None = None
    owner_avatar_url: str | None = None
    loom_created_at: str | None = None
    reactions: list[Reaction] | None = None
    comments: list[Comment] | None = None
    transcript: list[TranscriptSegment] | None = None
    chapters: list[Chapter] | None = None
    tags: list[str] | None = None
    raw_data: dict[str, Any] | None = None
    scraped_at: str | None = None
    updated_at: str | None = None

    def to_video(self) -> ScrapedVideo:
        """Преобразовать строку БД в формат ответа API."""
        return ScrapedVideo(
            id=self.video_id,
            title=self.title,
            duration=self.duration,
            thumbnail=self.thumbnail,
            description=self.description,
            owner_name=self.owner_name,
            owner_avatar_url=self.owner_avatar_url,
            created_at=self.loom_created_at,
            reactions=self.reactions or [],
            comments=self.comments or [],
            transcript=self.transcript,
            chapters=self.chapters,
            tags=self.tags or [],
        )
