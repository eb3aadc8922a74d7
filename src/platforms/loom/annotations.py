"""Аннотации видео из GraphQL: владелец, главы, комментарии, реакции, теги.

Каждая функция — независимый сетевой вызов. Ошибки деградируют до None/[]
и не валят скрапинг видео целиком.
"""
import re
from typing import Any

import emoji
import httpx
from loguru import logger

from src.models.video import Chapter, Comment, CommentReply, Reaction, VideoMetadata
from src.platforms.loom import queries
from src.platforms.loom.client import graphql_request
from src.platforms.loom.identity import timestamp_to_seconds

LOOM_AVATAR_BASE_URL = "https://cdn.loom.com/"

# Числовые коды реакций без extended_reaction
REACTION_CODE_MAP: dict[int, str] = {
    1: "joy",
    2: "heart_eyes",
    3: "open_mouth",
    4: "raised_hands",
    5: "+1",
    6: "-1",
}

_CHAPTER_LINE_RE = re.compile(r"^(\d{1,2}:\d{2}(?::\d{2})?)\s+(.+)$")


# --- Владелец и дата создания ---

async def fetch_video_metadata(
    client: httpx.AsyncClient, video_id: str, timeout: float = 30.0,
) -> VideoMetadata | None:
    data = await graphql_request(
        client, "GetVideo", queries.GET_VIDEO,
        {"id": video_id, "password": None}, timeout=timeout,
    )
    video = (data or {}).get("getVideo")
    if not isinstance(video, dict):
        logger.debug(f"[metadata] No metadata found for: {video_id}")
        return None

    owner = video.get("owner") if isinstance(video.get("owner"), dict) else {}
    return VideoMetadata(
        created_at=video.get("createdAt") or None,
        owner_first_name=owner.get("first_name") or None,
        owner_last_name=owner.get("last_name") or None,
        name=video.get("name") or None,
    )


# --- Главы ---

def parse_chapters_content(content: str) -> list[Chapter]:
    """'00:00 Intro\\n01:20 Setup' → [Chapter, ...]. Строки без таймкода пропускаются."""
    chapters: list[Chapter] = []
    for line in content.splitlines():
        match = _CHAPTER_LINE_RE.match(line.strip())
        if not match:
            continue
        timestamp, title = match.groups()
        chapters.append(Chapter(
            timestamp=timestamp,
            title=title.strip(),
            start_seconds=timestamp_to_seconds(timestamp),
        ))
    return chapters


async def fetch_chapters(
    client: httpx.AsyncClient, video_id: str, timeout: float = 30.0,
) -> list[Chapter] | None:
    data = await graphql_request(
        client, "FetchChapters", queries.FETCH_CHAPTERS,
        {"videoId": video_id, "password": None}, timeout=timeout,
    )
    payload = (data or {}).get("fetchVideoChapters")
    if not isinstance(payload, dict):
        return None

    typename = payload.get("__typename")
    if typename in ("Error", "InvalidRequestWarning"):
        logger.debug(f"[chapters] {video_id}: {payload.get('message')}")
        return None

    content = payload.get("content")
    if typename == "EmptyChaptersPayload" or not isinstance(content, str) or not content:
        return None

    return parse_chapters_content(content)


# --- Комментарии ---

def _avatar_url(avatar: Any) -> str | None:
    if isinstance(avatar, dict) and avatar.get("thumb"):
        return f"{LOOM_AVATAR_BASE_URL}{avatar['thumb']}"
    return None


def _reply_fields(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(raw.get("id", "")),
        "author": raw.get("user_name") or "Anonymous",
        "content": raw.get("plainContent") or raw.get("content") or "",
        "video_timestamp": raw.get("time_stamp"),
        "avatar_url": _avatar_url(raw.get("avatar")),
        "created_at": raw.get("createdAt"),
        "edited": bool(raw.get("edited")),
    }


def map_comment(raw: dict[str, Any]) -> Comment:
    """GraphQL-комментарий → Comment; удалённые ответы отбрасываются."""
    replies = [
        CommentReply(**_reply_fields(child))
        for child in raw.get("children_comments") or []
        if isinstance(child, dict) and not child.get("deletedAt")
    ]
    return Comment(**_reply_fields(raw), replies=replies)


async def fetch_comments(
    client: httpx.AsyncClient, video_id: str, timeout: float = 30.0,
) -> list[Comment] | None:
    data = await graphql_request(
        client, "fetchVideoComments", queries.FETCH_COMMENTS,
        {"id": video_id, "password": None}, timeout=timeout,
    )
    video = (data or {}).get("video")
    if not isinstance(video, dict):
        return None

    raw_comments = video.get("video_comments") or []
    comments = [
        map_comment(c) for c in raw_comments
        if isinstance(c, dict) and not c.get("deletedAt")
    ]
    if comments:
        logger.debug(f"[comments] Found {len(comments)} comments for {video_id}")
    return comments


# --- Реакции ---

def reaction_emoji(extended_reaction: str | None, code: Any) -> str:
    """Short-code реакции → эмодзи; неизвестный short-code возвращается как есть."""
    name = extended_reaction or REACTION_CODE_MAP.get(code) or "thumbsup"
    rendered = emoji.emojize(f":{name}:", language="alias")
    return name if rendered == f":{name}:" else rendered


def map_reaction(raw: dict[str, Any]) -> Reaction:
    user = raw.get("user") if isinstance(raw.get("user"), dict) else {}
    return Reaction(
        id=str(raw.get("id", "")),
        video_timestamp=raw.get("time") or 0,
        user_name=user.get("display_name") or raw.get("anon_user_name") or "Anonymous",
        reaction=reaction_emoji(raw.get("extended_reaction"), raw.get("reaction")),
    )


async def fetch_reactions(
    client: httpx.AsyncClient, video_id: str, timeout: float = 30.0,
) -> list[Reaction] | None:
    data = await graphql_request(
        client, "fetchVideoReactions", queries.FETCH_REACTIONS,
        {"id": video_id, "password": None}, timeout=timeout,
    )
    payload = (data or {}).get("videoReactionsForVideo")
    if not isinstance(payload, dict):
        return None

    if payload.get("__typename") in ("InvalidRequestWarning", "GenericError"):
        logger.debug(f"[reactions] {video_id}: {payload.get('message')}")
        return None

    return [map_reaction(r) for r in payload.get("reactions") or [] if isinstance(r, dict)]


# --- Теги ---

async def fetch_tags(
    client: httpx.AsyncClient,
    video_id: str,
    cookies: str | None,
    timeout: float = 30.0,
) -> list[str]:
    """Теги видео. Доступны только с cookies; без них — пустой список."""
    if not cookies:
        return []

    data = await graphql_request(
        client, "GetTagsByVideoId", queries.GET_TAGS,
        {"videoId": video_id}, cookies=cookies, timeout=timeout,
    )
    result = (data or {}).get("result")
    if not isinstance(result, dict):
        return []
    return [t for t in result.get("tags") or [] if isinstance(t, str)]
