"""Тесты поиска и разбора транскрипта."""
import httpx

from src.platforms.loom.transcript import (
    MAX_SEARCH_DEPTH,
    fetch_transcript,
    find_transcript_url,
    find_transcript_url_in_html,
    parse_transcript_data,
)

URL = "https://cdn.loom.com/mediametadata/transcription/abc.json?Policy=x&Signature=y"


def _nest(value, depth: int) -> dict:
    node = value
    for _ in range(depth):
        node = {"child": node}
    return node


class TestFindTranscriptUrl:
    """Тесты find_transcript_url — обход дерева с ограничением глубины."""

    def test_known_key(self) -> None:
        assert find_transcript_url({"video": {"transcription_url": URL}}) == URL

    def test_inside_list(self) -> None:
        assert find_transcript_url({"items": [1, None, {"x": [URL]}]}) == URL

    def test_within_depth_limit(self) -> None:
        assert find_transcript_url(_nest(URL, MAX_SEARCH_DEPTH)) == URL

    def test_beyond_depth_limit(self) -> None:
        assert find_transcript_url(_nest(URL, MAX_SEARCH_DEPTH + 2)) is None

    def test_self_referencing_structure_terminates(self) -> None:
        node: dict = {}
        node["self"] = node
        assert find_transcript_url(node) is None

    def test_no_match(self) -> None:
        assert find_transcript_url({"a": "https://cdn.loom.com/other", "b": 3, "c": True}) is None

    def test_html_fallback(self) -> None:
        html = f'<script>window.x = "{URL}";</script>'
        assert find_transcript_url_in_html(html) == URL
        assert find_transcript_url_in_html("<html></html>") is None


class TestParseTranscriptData:
    """Тесты parse_transcript_data — форматы ответа CDN."""

    def test_phrases(self) -> None:
        segments = parse_transcript_data({"phrases": [{"ts": 1.5, "value": "Hello"}, {"ts": 3, "value": "World"}]})
        assert [(s.ts, s.value) for s in segments] == [(1.5, "Hello"), (3, "World")]

    def test_bare_list(self) -> None:
        segments = parse_transcript_data([{"start": 2, "text": "Hi"}])
        assert [(s.ts, s.value) for s in segments] == [(2, "Hi")]

    def test_segments(self) -> None:
        assert parse_transcript_data({"segments": [{"text": "A"}]})[0].value == "A"

    def test_transcript_string(self) -> None:
        segments = parse_transcript_data({"transcript": "Full text"})
        assert [(s.ts, s.value) for s in segments] == [(0, "Full text")]

    def test_text_field(self) -> None:
        assert parse_transcript_data({"text": "Only text"})[0].value == "Only text"

    def test_items_without_text_skipped(self) -> None:
        segments = parse_transcript_data({"phrases": [{"ts": 1}, {"ts": 2, "value": "ok"}]})
        assert len(segments) == 1

    def test_unknown_format(self) -> None:
        assert parse_transcript_data({"foo": "bar"}) is None
        assert parse_transcript_data("string") is None


class TestFetchTranscript:
    """Тесты fetch_transcript."""

    async def test_no_url(self) -> None:
        async with httpx.AsyncClient() as client:
            assert await fetch_transcript(client, None) is None

    async def test_fetches_and_parses(self) -> None:
        transport = httpx.MockTransport(
            lambda r: httpx.Response(200, json={"phrases": [{"ts": 0, "value": "Hello"}]})
        )
        async with httpx.AsyncClient(transport=transport) as client:
            segments = await fetch_transcript(client, URL)
        assert segments[0].value == "Hello"

    async def test_cdn_error(self) -> None:
        transport = httpx.MockTransport(lambda r: httpx.Response(403))
        async with httpx.AsyncClient(transport=transport) as client:
            assert await fetch_transcript(client, URL) is None
