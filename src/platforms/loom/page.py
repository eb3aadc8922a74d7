"""Базовые данные видео: oEmbed и HTML-страница /share/."""
import json
from dataclasses import dataclass
from typing import Any

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from src.platforms.loom.client import LOOM_BASE_URL, build_headers, build_page_headers

OEMBED_URL = f"{LOOM_BASE_URL}/v1/oembed"


@dataclass
class OEmbedInfo:
    """Публичные данные oEmbed (без авторизации)."""

    title: str | None = None
    thumbnail: str | None = None
    author_name: str | None = None
    duration: float | None = None


@dataclass
class SharePage:
    """Разобранная страница видео.

    Поля video_* — из структурированного блока __NEXT_DATA__,
    og_* — из meta-тегов (fallback, если блока нет или он битый).
    """

    html: str
    next_data: dict[str, Any] | None = None
    video_title: str | None = None
    video_description: str | None = None
    video_duration: float | None = None
    video_thumbnail: str | None = None
    og_title: str | None = None
    og_description: str | None = None
    og_image: str | None = None


def share_url(video_id: str) -> str:
    return f"{LOOM_BASE_URL}/share/{video_id}"


def _str_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _number_or_none(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and value > 0:
        return float(value)
    return None


async def fetch_oembed(
    client: httpx.AsyncClient,
    video_id: str,
    cookies: str | None = None,
    timeout: float = 30.0,
) -> OEmbedInfo | None:
    """oEmbed-данные видео. Любая ошибка → None."""
    try:
        response = await client.get(
            OEMBED_URL,
            params={"url": share_url(video_id)},
            headers=build_headers(cookies),
            timeout=timeout,
        )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"[oembed] {video_id}: {e}")
        return None

    if not isinstance(data, dict):
        return None

    return OEmbedInfo(
        title=_str_or_none(data.get("title")),
        thumbnail=_str_or_none(data.get("thumbnail_url")),
        author_name=_str_or_none(data.get("author_name")),
        duration=_number_or_none(data.get("duration")),
    )


async def fetch_share_page(
    client: httpx.AsyncClient,
    video_id: str,
    cookies: str | None = None,
    timeout: float = 30.0,
) -> str | None:
    """HTML страницы видео. Любая ошибка → None."""
    try:
        response = await client.get(
            share_url(video_id), headers=build_page_headers(cookies), timeout=timeout,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.debug(f"[page] {video_id}: {e}")
        return None
    return response.text


def _meta_content(soup: BeautifulSoup, prop: str) -> str | None:
    tag = soup.find("meta", attrs={"property": prop})
    if tag is None:
        return None
    return _str_or_none(tag.get("content"))


def _extract_next_data(soup: BeautifulSoup) -> dict[str, Any] | None:
    script = soup.find("script", attrs={"id": "__NEXT_DATA__"})
    if script is None or not script.string:
        return None
    try:
        data = json.loads(script.string)
    except ValueError:
        logger.debug("[page] Could not parse __NEXT_DATA__ JSON")
        return None
    return data if isinstance(data, dict) else None


def parse_share_page(html: str) -> SharePage:
    """Разобрать HTML: __NEXT_DATA__ → meta og:*."""
    soup = BeautifulSoup(html, "html.parser")
    page = SharePage(html=html)

    page.next_data = _extract_next_data(soup)
    if page.next_data is not None:
        props = page.next_data.get("props")
        page_props = props.get("pageProps") if isinstance(props, dict) else None
        video = None
        if isinstance(page_props, dict):
            video = page_props.get("video") or page_props.get("sharedVideo")
        if isinstance(video, dict):
            page.video_title = _str_or_none(video.get("name")) or _str_or_none(video.get("title"))
            page.video_description = _str_or_none(video.get("description"))
            page.video_duration = _number_or_none(video.get("duration"))
            page.video_thumbnail = (
                _str_or_none(video.get("thumbnailUrl"))
                or _str_or_none(video.get("thumbnail_url"))
            )

    page.og_title = _meta_content(soup, "og:title")
    page.og_description = _meta_content(soup, "og:description")
    page.og_image = _meta_content(soup, "og:image")
    return page
