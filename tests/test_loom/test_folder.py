"""Тесты листинга папки с курсорной пагинацией."""
import json

import httpx

from src.platforms.loom.folder import list_folder_videos

FOLDER_ID = "a1b2c3d4e5f60718293a4b5c6d7e8f90"


def _page(ids: list[str], cursor: str | None, has_next: bool) -> dict:
    return {"data": {"getLooms": {"videos": {
        "edges": [{"node": {"id": i, "name": f"Video {i}", "visibility": "owner"}} for i in ids],
        "pageInfo": {"endCursor": cursor, "hasNextPage": has_next},
    }}}}


def _paged_client(pages: list) -> tuple[httpx.AsyncClient, list[dict]]:
    """Отдаёт страницы по очереди; элемент-int — HTTP-ошибка с этим кодом."""
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append(body)
        item = pages[len(seen) - 1]
        if isinstance(item, int):
            return httpx.Response(item, json={})
        return httpx.Response(200, json=item)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), seen


class TestListFolderVideos:
    """Тесты list_folder_videos."""

    async def test_requires_cookies(self) -> None:
        client, seen = _paged_client([])
        async with client:
            listing = await list_folder_videos(client, FOLDER_ID, None)

        assert listing.success is False
        assert "Cookies are required" in listing.error
        assert seen == []

    async def test_paginates_until_no_next_page(self) -> None:
        client, seen = _paged_client([
            _page(["a", "b"], "c1", True),
            _page(["c"], "c2", True),
            _page(["d"], None, False),
        ])
        async with client:
            listing = await list_folder_videos(client, FOLDER_ID, "sid=1", page_size=2)

        assert listing.success is True
        assert listing.partial is False
        assert [v.id for v in listing.videos] == ["a", "b", "c", "d"]
        assert listing.total_count == 4
        assert [s["variables"]["cursor"] for s in seen] == [None, "c1", "c2"]
        assert seen[0]["variables"]["limit"] == 2
        assert seen[0]["variables"]["folderId"] == FOLDER_ID

    async def test_first_page_error_is_fatal(self) -> None:
        client, _ = _paged_client([401])
        async with client:
            listing = await list_folder_videos(client, FOLDER_ID, "sid=1")

        assert listing.success is False
        assert listing.error.startswith("Failed to fetch folder videos")
        assert listing.videos == []

    async def test_later_page_error_returns_partial(self) -> None:
        client, _ = _paged_client([_page(["a", "b"], "c1", True), 500])
        async with client:
            listing = await list_folder_videos(client, FOLDER_ID, "sid=1")

        assert listing.success is True
        assert listing.partial is True
        assert "incomplete" in listing.error
        assert [v.id for v in listing.videos] == ["a", "b"]

    async def test_cap_truncates_and_stops(self) -> None:
        client, seen = _paged_client([
            _page(["a", "b", "c"], "c1", True),
            _page(["d", "e", "f"], "c2", True),
            _page(["g"], None, False),
        ])
        async with client:
            listing = await list_folder_videos(client, FOLDER_ID, "sid=1", max_videos=5)

        assert listing.success is True
        assert listing.partial is False
        assert [v.id for v in listing.videos] == ["a", "b", "c", "d", "e"]
        assert len(seen) == 2

    async def test_missing_videos_block_is_error(self) -> None:
        client, _ = _paged_client([{"data": {"getLooms": {"videos": None}}}])
        async with client:
            listing = await list_folder_videos(client, FOLDER_ID, "sid=1")

        assert listing.success is False

    async def test_graphql_errors_on_first_page(self) -> None:
        client, _ = _paged_client([{"data": None, "errors": [{"message": "Unauthorized"}]}])
        async with client:
            listing = await list_folder_videos(client, FOLDER_ID, "sid=bad")

        assert listing.success is False
        assert "Unauthorized" in listing.error

    async def test_bad_page_info_on_later_page_returns_partial(self) -> None:
        """Неожиданная форма pageInfo на второй странице: частичный результат, не исключение."""
        bad_page = {"data": {"getLooms": {"videos": {
            "edges": [{"node": {"id": "c"}}],
            "pageInfo": ["bad"],
        }}}}
        client, _ = _paged_client([_page(["a", "b"], "c1", True), bad_page])
        async with client:
            listing = await list_folder_videos(client, FOLDER_ID, "sid=1")

        assert listing.success is True
        assert listing.partial is True
        assert "pageInfo" in listing.error
        assert [v.id for v in listing.videos] == ["a", "b"]

    async def test_bad_edges_on_first_page_is_error(self) -> None:
        bad_page = {"data": {"getLooms": {"videos": {"edges": {"node": {"id": "a"}}, "pageInfo": {}}}}}
        client, _ = _paged_client([bad_page])
        async with client:
            listing = await list_folder_videos(client, FOLDER_ID, "sid=1")

        assert listing.success is False
        assert "edges" in listing.error

    async def test_non_string_cursor_stops_pagination(self) -> None:
        page = _page(["a"], None, True)
        page["data"]["getLooms"]["videos"]["pageInfo"]["endCursor"] = 42
        client, seen = _paged_client([page])
        async with client:
            listing = await list_folder_videos(client, FOLDER_ID, "sid=1")

        assert [v.id for v in listing.videos] == ["a"]
        assert len(seen) == 1
