"""Базовый интерфейс скрапера видео-платформы."""
from typing import Protocol

from src.models.video import FolderListing, ScrapedVideo


class BaseScraper(Protocol):
    """Общий интерфейс скрапера."""

    async def scrape_video(self, video_id: str, cookies: str | None = None) -> ScrapedVideo | None:
        """Полный скрап видео. None — только при неустранимой ошибке."""
        ...

    async def list_folder(self, folder_id: str, cookies: str | None) -> FolderListing:
        """Перечислить видео папки."""
        ...
