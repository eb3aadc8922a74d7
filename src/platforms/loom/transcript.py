"""Транскрипт видео с CDN Loom."""
import re
from typing import Any

import httpx
from loguru import logger

from src.models.video import TranscriptSegment
from src.platforms.loom.client import USER_AGENT

TRANSCRIPT_MARKER = "cdn.loom.com/mediametadata/transcription"
MAX_SEARCH_DEPTH = 10

_URL_KEYS = ("transcription_url", "transcriptUrl", "transcript_url", "transcriptionUrl", "url")
_HTML_URL_RE = re.compile(r"https://cdn\.loom\.com/mediametadata/transcription/[^\"'\s]+")


def find_transcript_url(node: Any, depth: int = 0) -> str | None:
    """
    Найти подписанный URL транскрипта в JSON-дереве страницы.
    Глубина обхода ограничена MAX_SEARCH_DEPTH — битый/циклический ввод не зациклит.
    """
    if depth > MAX_SEARCH_DEPTH or node is None:
        return None

    if isinstance(node, str):
        return node if TRANSCRIPT_MARKER in node else None

    if isinstance(node, dict):
        for key in _URL_KEYS:
            value = node.get(key)
            if isinstance(value, str) and TRANSCRIPT_MARKER in value:
                return value
        children = node.values()
    elif isinstance(node, list):
        children = node
    else:
        return None

    for child in children:
        found = find_transcript_url(child, depth + 1)
        if found:
            return found
    return None


def find_transcript_url_in_html(html: str) -> str | None:
    """Fallback: URL транскрипта прямо в HTML."""
    match = _HTML_URL_RE.search(html)
    return match.group(0) if match else None


def _segments_from(items: list[Any], text_keys: tuple[str, ...]) -> list[TranscriptSegment]:
    segments: list[TranscriptSegment] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        text = next(
            (item[k] for k in text_keys if isinstance(item.get(k), str) and item[k]),
            None,
        )
        if text is None:
            continue
        ts = next(
            (item[k] for k in ("ts", "start", "timestamp")
             if isinstance(item.get(k), (int, float)) and not isinstance(item.get(k), bool)),
            0,
        )
        segments.append(TranscriptSegment(ts=ts, value=text))
    return segments


def parse_transcript_data(data: Any) -> list[TranscriptSegment] | None:
    """
    Разобрать JSON транскрипта. Loom отдаёт несколько форматов:
    {"phrases": [...]}, голый список, {"segments": [...]}, {"transcripts": [...]},
    {"transcript": str | [...]}, {"text": str}. Неизвестный формат → None.
    """
    if isinstance(data, list):
        return _segments_from(data, ("text", "value", "transcript")) or None

    if not isinstance(data, dict):
        return None

    for key, text_keys in (
        ("phrases", ("value",)),
        ("segments", ("text", "value")),
        ("transcripts", ("text", "value")),
    ):
        items = data.get(key)
        if isinstance(items, list):
            segments = _segments_from(items, text_keys)
            if segments:
                return segments

    transcript = data.get("transcript")
    if isinstance(transcript, str) and transcript:
        return [TranscriptSegment(ts=0, value=transcript)]
    if isinstance(transcript, list):
        segments = _segments_from(transcript, ("text", "value"))
        if segments:
            return segments

    text = data.get("text")
    if isinstance(text, str) and text:
        return [TranscriptSegment(ts=0, value=text)]

    logger.debug("[transcript] Unknown data format")
    return None


async def fetch_transcript(
    client: httpx.AsyncClient,
    transcript_url: str | None,
    timeout: float = 30.0,
) -> list[TranscriptSegment] | None:
    """Скачать и разобрать транскрипт. Нет URL или ошибка → None."""
    if not transcript_url:
        return None

    try:
        response = await client.get(
            transcript_url,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            timeout=timeout,
        )
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"[transcript] CDN fetch failed: {e}")
        return None

    segments = parse_transcript_data(data)
    if segments:
        logger.debug(f"[transcript] Parsed {len(segments)} segments")
    return segments
