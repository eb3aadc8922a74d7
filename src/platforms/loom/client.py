"""HTTP/GraphQL-клиент Loom поверх httpx."""
from typing import Any

import httpx
from loguru import logger

from src.platforms.loom.exceptions import AuthRequiredError, GraphQLError

LOOM_BASE_URL = "https://www.loom.com"
GRAPHQL_ENDPOINT = f"{LOOM_BASE_URL}/graphql"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def build_headers(cookies: str | None = None) -> dict[str, str]:
    """Заголовки для JSON API (cookies — уже нормализованная строка)."""
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    if cookies:
        headers["Cookie"] = cookies
    return headers


def build_page_headers(cookies: str | None = None) -> dict[str, str]:
    """Заголовки для загрузки HTML-страниц."""
    headers = {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "User-Agent": USER_AGENT,
    }
    if cookies:
        headers["Cookie"] = cookies
    return headers


async def _post_graphql(
    client: httpx.AsyncClient,
    operation_name: str,
    query: str,
    variables: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> Any:
    """POST в GraphQL endpoint. Бросает GraphQLError при HTTP/GraphQL ошибке и таймауте."""
    try:
        response = await client.post(
            GRAPHQL_ENDPOINT,
            json={"operationName": operation_name, "query": query, "variables": variables},
            headers=headers,
            timeout=timeout,
        )
    except httpx.TimeoutException as e:
        raise GraphQLError(f"{operation_name}: request timeout") from e
    except httpx.HTTPError as e:
        raise GraphQLError(f"{operation_name}: client error: {e}") from e

    if response.status_code >= 400:
        raise GraphQLError(
            f"{operation_name}: HTTP {response.status_code}: {response.reason_phrase}",
            status_code=response.status_code,
        )

    try:
        payload = response.json()
    except ValueError as e:
        raise GraphQLError(f"{operation_name}: invalid JSON response") from e

    if not isinstance(payload, dict):
        raise GraphQLError(f"{operation_name}: unexpected response shape")
    if payload.get("errors"):
        raise GraphQLError(f"{operation_name}: GraphQL errors: {payload['errors']}")
    return payload.get("data")


async def graphql_request(
    client: httpx.AsyncClient,
    operation_name: str,
    query: str,
    variables: dict[str, Any],
    cookies: str | None = None,
    timeout: float = 30.0,
) -> dict[str, Any] | None:
    """Публичный GraphQL-запрос. Любая ошибка → None (best effort)."""
    try:
        data = await _post_graphql(
            client, operation_name, query, variables, build_headers(cookies), timeout
        )
    except GraphQLError as e:
        logger.debug(f"[GraphQL] {e}")
        return None
    return data if isinstance(data, dict) else None


async def graphql_request_with_auth(
    client: httpx.AsyncClient,
    operation_name: str,
    query: str,
    variables: dict[str, Any],
    cookies: str | None,
    timeout: float = 8.0,
) -> dict[str, Any]:
    """
    GraphQL-запрос от имени пользователя.
    Без cookies — AuthRequiredError, ошибки запроса — GraphQLError.
    """
    if not cookies:
        raise AuthRequiredError("Invalid or missing cookies")

    headers = build_headers(cookies)
    headers["Origin"] = LOOM_BASE_URL
    headers["Referer"] = f"{LOOM_BASE_URL}/"

    data = await _post_graphql(client, operation_name, query, variables, headers, timeout)
    if not isinstance(data, dict):
        raise GraphQLError(f"{operation_name}: empty data in response")
    return data
