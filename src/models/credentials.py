"""Креды Loom (cookies) — разбор входного формата один раз на входе в систему.

Принимаются два формата:
- строка cookie-заголовка "name=value; name2=value2";
- список cookie-объектов из браузерного расширения (или JSON-строка с таким списком).

Дальше по системе ходит только нормализованная строка для заголовка Cookie.
"""
import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError


class BrowserCookie(BaseModel):
    """Cookie-объект в формате экспорта браузерного расширения."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = ""
    value: str = ""
    domain: str | None = None
    path: str | None = None


class RawCookieString(BaseModel):
    """Готовая строка cookie-заголовка."""

    kind: Literal["raw"] = "raw"
    value: str

    def to_header(self) -> str | None:
        value = self.value.strip()
        return value or None


class StructuredCookieList(BaseModel):
    """Список cookie-объектов."""

    kind: Literal["structured"] = "structured"
    cookies: list[BrowserCookie]

    def to_header(self) -> str | None:
        pairs = [f"{c.name}={c.value}" for c in self.cookies if c.name and c.value]
        return "; ".join(pairs) or None


Credentials = RawCookieString | StructuredCookieList


def _to_cookie_list(items: list[Any]) -> StructuredCookieList:
    cookies: list[BrowserCookie] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            cookies.append(BrowserCookie.model_validate(item))
        except ValidationError:
            continue
    return StructuredCookieList(cookies=cookies)


def parse_credentials(value: str | list[Any] | None) -> Credentials | None:
    """Определить формат кредов. None/пустая строка → None."""
    if value is None:
        return None

    if isinstance(value, list):
        return _to_cookie_list(value)

    trimmed = value.strip()
    if not trimmed:
        return None

    if trimmed.startswith("["):
        try:
            parsed = json.loads(trimmed)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return _to_cookie_list(parsed)

    return RawCookieString(value=trimmed)


def normalize_credentials(value: str | list[Any] | None) -> str | None:
    """Вернуть строку для заголовка Cookie или None."""
    credentials = parse_credentials(value)
    if credentials is None:
        return None
    return credentials.to_header()
