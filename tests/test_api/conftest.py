"""Общие фикстуры и хелперы для тестов API."""
from fastapi.testclient import TestClient

from tests.fakes import FakeQueue, FakeScraper, FakeStore, make_settings

CRON_SECRET = "cron-test-secret"

# Общий заголовок авторизации cron/debug
AUTH_HEADERS = {"Authorization": f"Bearer {CRON_SECRET}"}

VIDEO_URL = "https://www.loom.com/share/abc123def456"
FOLDER_ID = "a1b2c3d4e5f60718293a4b5c6d7e8f90"
FOLDER_URL = f"https://www.loom.com/spaces/Team-{FOLDER_ID}"


def make_app(store=None, queue=None, scraper=None, **settings_overrides):
    """Создать FastAPI app поверх in-memory зависимостей."""
    from src.api.app import create_app

    settings_overrides.setdefault("cron_secret", CRON_SECRET)
    return create_app(
        store=store or FakeStore(),
        publisher=queue or FakeQueue(),
        settings=make_settings(**settings_overrides),
        scraper=scraper or FakeScraper(),
    )


def make_client(**kwargs) -> TestClient:
    return TestClient(make_app(**kwargs))
