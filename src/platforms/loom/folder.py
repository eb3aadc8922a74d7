"""Листинг видео папки Loom (авторизованный GraphQL с курсорной пагинацией).

Функция только перечисляет ID видео. Каждое видео скрапится отдельно.
"""
from dataclasses import dataclass, field

import httpx
from loguru import logger

from src.models.video import FolderListing, FolderVideo
from src.platforms.loom import queries
from src.platforms.loom.client import graphql_request_with_auth
from src.platforms.loom.exceptions import LoomError

DEFAULT_PAGE_SIZE = 50
MAX_VIDEOS = 500


@dataclass
class FolderPage:
    """Одна страница листинга."""

    videos: list[FolderVideo] = field(default_factory=list)
    end_cursor: str | None = None
    has_next_page: bool = False


async def fetch_folder_page(
    client: httpx.AsyncClient,
    folder_id: str,
    cookies: str,
    cursor: str | None,
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout: float = 8.0,
) -> FolderPage:
    """Загрузить страницу. Ошибки — LoomError (AuthRequiredError/GraphQLError)."""
    variables = {
        "source": "MINE",
        "sourceValue": folder_id,
        "folderId": folder_id,
        "sortType": "RECENT",
        "sortOrder": "DESC",
        "filters": [],
        "limit": page_size,
        "cursor": cursor,
        "timeRange": None,
    }
    data = await graphql_request_with_auth(
        client, "GetLoomsForLibrary", queries.GET_LOOMS_FOR_LIBRARY,
        variables, cookies, timeout=timeout,
    )

    get_looms = data.get("getLooms")
    if not isinstance(get_looms, dict):
        raise LoomError("No getLooms data in response")

    videos = get_looms.get("videos")
    if not isinstance(videos, dict):
        raise LoomError("No videos in response - folder may be empty or inaccessible")

    edges = videos.get("edges") or []
    if not isinstance(edges, list):
        raise LoomError("Unexpected edges shape")

    page_info = videos.get("pageInfo") or {}
    if not isinstance(page_info, dict):
        raise LoomError("Unexpected pageInfo shape")

    page = FolderPage()
    for edge in edges:
        node = edge.get("node") if isinstance(edge, dict) else None
        if isinstance(node, dict) and node.get("id"):
            page.videos.append(FolderVideo(
                id=str(node["id"]),
                name=node.get("name") or "",
                visibility=node.get("visibility") or "",
            ))

    end_cursor = page_info.get("endCursor")
    page.end_cursor = end_cursor if isinstance(end_cursor, str) else None
    page.has_next_page = bool(page_info.get("hasNextPage"))
    return page


async def list_folder_videos(
    client: httpx.AsyncClient,
    folder_id: str,
    cookies: str | None,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_videos: int = MAX_VIDEOS,
    timeout: float = 8.0,
) -> FolderListing:
    """
    Перечислить все видео папки.

    Без cookies — ошибка сразу (анонимный листинг не поддерживается).
    Пагинация останавливается при hasNextPage=false, достижении max_videos
    (лишнее отбрасывается, это не ошибка) или ошибке страницы.
    Ошибка первой страницы → success=False; последующей → частичный результат.
    """
    if not cookies:
        return FolderListing(
            success=False,
            folder_id=folder_id,
            error="Cookies are required to access folder contents. "
                  "Please provide valid session cookies.",
        )

    logger.info(f"[listing] Fetching videos for folder: {folder_id}")

    all_videos: list[FolderVideo] = []
    cursor: str | None = None
    has_next_page = True
    page_count = 0
    partial_error: str | None = None

    while has_next_page and len(all_videos) < max_videos:
        page_count += 1
        logger.debug(f"[listing] Page {page_count}, cursor: {cursor or 'initial'}")
        try:
            page = await fetch_folder_page(
                client, folder_id, cookies, cursor, page_size=page_size, timeout=timeout,
            )
        except LoomError as e:
            if page_count == 1:
                return FolderListing(
                    success=False,
                    folder_id=folder_id,
                    error=f"Failed to fetch folder videos: {e}",
                )
            partial_error = f"Listing incomplete: page {page_count} failed: {e}"
            logger.warning(f"[listing] {folder_id}: {partial_error}, returning partial results")
            break

        all_videos.extend(page.videos)
        cursor = page.end_cursor
        has_next_page = page.has_next_page and cursor is not None

    if len(all_videos) >= max_videos and has_next_page:
        logger.warning(f"[listing] {folder_id}: cap {max_videos} reached, remaining pages skipped")
    all_videos = all_videos[:max_videos]

    logger.info(f"[listing] Total videos found in {folder_id}: {len(all_videos)}")
    return FolderListing(
        success=True,
        folder_id=folder_id,
        videos=all_videos,
        total_count=len(all_videos),
        error=partial_error,
        partial=partial_error is not None,
    )
