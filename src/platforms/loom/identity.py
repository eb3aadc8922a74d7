"""Извлечение идентификаторов видео и папок Loom из URL."""
import re

_VIDEO_PATTERNS = (
    re.compile(r"loom\.com/share/([a-zA-Z0-9]+)"),
    re.compile(r"loom\.com/v/([a-zA-Z0-9]+)"),
    re.compile(r"loom\.com/embed/([a-zA-Z0-9]+)"),
)
_BARE_VIDEO_ID = re.compile(r"^[a-zA-Z0-9]{10,}$")

_BARE_FOLDER_ID = re.compile(r"^[a-f0-9]{32}$", re.IGNORECASE)
_FOLDER_PATTERNS = (
    re.compile(r"loom\.com/spaces/(?:[^/?]+-)?([a-f0-9]{32})(?:\?|$|/)", re.IGNORECASE),
    re.compile(r"loom\.com/looms/folders/([a-f0-9]{32})", re.IGNORECASE),
    re.compile(r"loom\.com/looms/videos/(?:[^/]+-)?([a-f0-9]{32})(?:\?|$|/)?", re.IGNORECASE),
    re.compile(r"folderId[=:]([a-f0-9]{32})", re.IGNORECASE),
)
_ANY_HEX_ID = re.compile(r"([a-f0-9]{32})", re.IGNORECASE)


def extract_video_id(locator: str) -> str | None:
    """
    ID видео из URL (/share/, /v/, /embed/) или «голый» ID.
    None, если ничего не подошло.
    """
    locator = locator.strip()
    for pattern in _VIDEO_PATTERNS:
        match = pattern.search(locator)
        if match:
            return match.group(1)
    if _BARE_VIDEO_ID.match(locator):
        return locator
    return None


def extract_folder_id(locator: str) -> str | None:
    """
    ID папки Loom (32 hex-символа).

    Поддерживает /spaces/name-ID, /looms/folders/ID, /looms/videos/Name-ID,
    параметр folderId=ID и «голый» ID. Последний шанс — любая 32-hex подстрока.
    """
    locator = locator.strip()
    if _BARE_FOLDER_ID.match(locator):
        return locator

    for pattern in _FOLDER_PATTERNS:
        match = pattern.search(locator)
        if match:
            return match.group(1)

    match = _ANY_HEX_ID.search(locator)
    if match:
        return match.group(1)
    return None


def timestamp_to_seconds(timestamp: str) -> int:
    """'MM:SS' или 'HH:MM:SS' → секунды. Некорректный формат → 0."""
    try:
        parts = [int(p) for p in timestamp.strip().split(":")]
    except ValueError:
        return 0

    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    return 0
