"""Скрапинг одного видео Loom: oEmbed → страница → параллельные аннотации → merge."""
import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import httpx
from loguru import logger

from src.config import Settings
from src.models.video import (
    Chapter,
    Comment,
    FolderListing,
    Reaction,
    ScrapedVideo,
    TranscriptSegment,
    VideoMetadata,
)
from src.platforms.loom.annotations import (
    fetch_chapters,
    fetch_comments,
    fetch_reactions,
    fetch_tags,
    fetch_video_metadata,
)
from src.platforms.loom.folder import list_folder_videos
from src.platforms.loom.page import OEmbedInfo, SharePage, fetch_oembed, fetch_share_page, parse_share_page
from src.platforms.loom.transcript import fetch_transcript, find_transcript_url, find_transcript_url_in_html

DEFAULT_TITLE = "Untitled Video"

T = TypeVar("T")


async def _guarded(label: str, video_id: str, aw: Awaitable[T], timeout: float, default: T) -> T:
    """Выполнить под-запрос с собственным таймаутом; ошибка/таймаут → default."""
    try:
        return await asyncio.wait_for(aw, timeout=timeout)
    except TimeoutError:
        logger.warning(f"[scraper] {label} timed out for {video_id} after {timeout}s")
    except Exception as e:
        logger.warning(f"[scraper] {label} failed for {video_id}: {e}")
    return default


def merge_video(
    video_id: str,
    oembed: OEmbedInfo | None,
    page: SharePage | None,
    metadata: VideoMetadata | None,
    chapters: list[Chapter] | None = None,
    comments: list[Comment] | None = None,
    reactions: list[Reaction] | None = None,
    tags: list[str] | None = None,
    transcript: list[TranscriptSegment] | None = None,
) -> ScrapedVideo:
    """
    Собрать итоговую запись.

    Приоритет: данные страницы перекрывают oEmbed (title, thumbnail, duration)
    только если присутствуют; meta og:* — fallback для пустых полей;
    имя владельца из first/last name предпочтительнее author_name oEmbed.
    """
    title = DEFAULT_TITLE
    thumbnail: str | None = None
    owner_name: str | None = None
    duration: float = 0
    description: str | None = None

    if oembed is not None:
        title = oembed.title or title
        thumbnail = oembed.thumbnail
        owner_name = oembed.author_name
        duration = oembed.duration or 0

    if page is not None:
        title = page.video_title or title
        description = page.video_description
        duration = page.video_duration or duration
        thumbnail = page.video_thumbnail or thumbnail

        if title == DEFAULT_TITLE and page.og_title:
            title = page.og_title
        description = description or page.og_description
        thumbnail = thumbnail or page.og_image

    created_at: str | None = None
    if metadata is not None:
        created_at = metadata.created_at
        owner_name = metadata.owner_full_name or owner_name
        if title == DEFAULT_TITLE and metadata.name:
            title = metadata.name

    return ScrapedVideo(
        id=video_id,
        title=title,
        duration=duration,
        thumbnail=thumbnail,
        description=description,
        reactions=reactions or [],
        comments=comments or [],
        transcript=transcript,
        chapters=chapters,
        tags=tags or [],
        created_at=created_at,
        owner_name=owner_name,
        owner_avatar_url=None,
    )


class LoomScraper:
    """Реализация BaseScraper для Loom поверх общего httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    async def scrape_video(self, video_id: str, cookies: str | None = None) -> ScrapedVideo | None:
        """Полный скрап видео. None — только если вылетело неожиданное исключение."""
        logger.debug(f"[scraper] Starting scrape for video: {video_id}")
        try:
            video = await self._scrape(video_id, cookies)
        except Exception as e:
            logger.exception(f"[scraper] Error scraping video {video_id}: {e}")
            return None
        logger.info(f"[scraper] Scraped video: {video_id} - \"{video.title}\"")
        return video

    async def _scrape(self, video_id: str, cookies: str | None) -> ScrapedVideo:
        timeout = self.settings.http_timeout
        sub_timeout = self.settings.subfetch_timeout

        # 1. oEmbed: best effort
        oembed = await fetch_oembed(self.client, video_id, cookies, timeout=timeout)

        # 2. Страница видео
        page: SharePage | None = None
        html = await fetch_share_page(self.client, video_id, cookies, timeout=timeout)
        if html:
            page = parse_share_page(html)

        transcript_url = None
        if page is not None:
            transcript_url = find_transcript_url(page.next_data) or find_transcript_url_in_html(page.html)

        # 3. Независимые под-запросы параллельно, у каждого свой таймаут
        metadata, chapters, comments, reactions, tags, transcript = await asyncio.gather(
            _guarded("metadata", video_id,
                     fetch_video_metadata(self.client, video_id, timeout=timeout), sub_timeout, None),
            _guarded("chapters", video_id,
                     fetch_chapters(self.client, video_id, timeout=timeout), sub_timeout, None),
            _guarded("comments", video_id,
                     fetch_comments(self.client, video_id, timeout=timeout), sub_timeout, None),
            _guarded("reactions", video_id,
                     fetch_reactions(self.client, video_id, timeout=timeout), sub_timeout, None),
            _guarded("tags", video_id,
                     fetch_tags(self.client, video_id, cookies, timeout=timeout), sub_timeout, []),
            _guarded("transcript", video_id,
                     fetch_transcript(self.client, transcript_url, timeout=timeout), sub_timeout, None),
        )

        # 4. Merge
        return merge_video(
            video_id, oembed, page, metadata,
            chapters=chapters, comments=comments, reactions=reactions,
            tags=tags, transcript=transcript,
        )

    async def list_folder(self, folder_id: str, cookies: str | None) -> FolderListing:
        return await list_folder_videos(
            self.client,
            folder_id,
            cookies,
            page_size=self.settings.folder_page_size,
            max_videos=self.settings.folder_max_videos,
            timeout=self.settings.auth_http_timeout,
        )
