"""Тесты маршрутов: приём заявок, воркеры QStash, чтение результатов."""
import asyncio
import json
from datetime import timedelta

from src.models.job import FolderJobPayload
from tests.fakes import FakeQueue, FakeScraper, FakeStore
from tests.test_api.conftest import FOLDER_ID, FOLDER_URL, VIDEO_URL, make_client


class RejectingQueue(FakeQueue):
    def verify_signature(self, signature, raw_body, url=None) -> bool:
        return False


class TestEnqueue:
    """POST /api/enqueue."""

    def test_video_submission(self) -> None:
        store = FakeStore()
        queue = FakeQueue()

        resp = make_client(store=store, queue=queue).post(
            "/api/enqueue", json={"url": VIDEO_URL, "type": "video", "cookies": "sid=1"},
        )

        assert resp.status_code == 202
        data = resp.json()
        assert data["success"] is True
        assert data["status"] == "completed"
        assert queue.video_jobs[0].video_id == "abc123def456"
        assert queue.video_jobs[0].submission_id == data["submission_id"]
        assert queue.video_jobs[0].cookies == "sid=1"

    def test_folder_submission(self) -> None:
        store = FakeStore()
        queue = FakeQueue()

        resp = make_client(store=store, queue=queue).post(
            "/api/enqueue", json={"url": FOLDER_URL, "type": "folder"},
        )

        assert resp.status_code == 202
        assert resp.json()["status"] == "pending"
        assert queue.folder_jobs[0].folder_id == FOLDER_ID
        assert queue.folder_jobs[0].video_ids is None

    def test_browser_cookie_array_normalized(self) -> None:
        queue = FakeQueue()
        make_client(queue=queue).post("/api/enqueue", json={
            "url": FOLDER_URL, "type": "folder",
            "cookies": [{"name": "a", "value": "1"}, {"name": "b", "value": "2"}],
        })
        assert queue.folder_jobs[0].cookies == "a=1; b=2"

    def test_invalid_locator_is_400_without_submission(self) -> None:
        store = FakeStore()
        resp = make_client(store=store).post(
            "/api/enqueue", json={"url": "https://example.com/nothing", "type": "video"},
        )

        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Invalid Loom video URL"}
        assert store.submissions == {}

    def test_publish_failure_is_500_and_marks_failed(self) -> None:
        store = FakeStore()
        queue = FakeQueue()
        queue.fail_folder = True

        resp = make_client(store=store, queue=queue).post(
            "/api/enqueue", json={"url": FOLDER_URL, "type": "folder"},
        )

        assert resp.status_code == 500
        [submission] = store.submissions.values()
        assert submission.status == "failed"
        assert submission.error_message.startswith("Publish failed")


class TestWorkerVideo:
    """POST /api/worker/video."""

    def test_bad_signature(self) -> None:
        resp = make_client(queue=RejectingQueue()).post("/api/worker/video", json={"video_id": "v1"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Invalid signature"

    def test_non_utf8_body(self) -> None:
        resp = make_client().post(
            "/api/worker/video", content=b"\xff\xfe\x00",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Invalid body encoding"}

    def test_missing_video_id(self) -> None:
        resp = make_client().post("/api/worker/video", json={"submission_id": "s"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "video_id is required"

    def test_scrapes_and_saves(self) -> None:
        store = FakeStore()
        resp = make_client(store=store).post("/api/worker/video", json={"video_id": "v1"})

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "status": "completed", "video_id": "v1", "error": None}
        assert "v1" in store.videos
        assert store.jobs["v1"].status == "completed"

    def test_scrape_failure_is_reported_not_retried(self) -> None:
        scraper = FakeScraper()
        scraper.failing = {"v1"}

        resp = make_client(scraper=scraper).post("/api/worker/video", json={"video_id": "v1"})

        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert resp.json()["status"] == "failed"

    def test_fresh_video_skipped(self) -> None:
        store = FakeStore()
        store.put_video("v1", timedelta(hours=1))
        scraper = FakeScraper()

        resp = make_client(store=store, scraper=scraper).post("/api/worker/video", json={"video_id": "v1"})

        assert resp.json()["status"] == "skipped"
        assert scraper.scraped == []

    def test_unexpected_error_is_500(self) -> None:
        """500 — QStash повторит доставку."""
        store = FakeStore()
        store.fail_save_for = {"v1"}

        resp = make_client(store=store).post("/api/worker/video", json={"video_id": "v1"})

        assert resp.status_code == 500
        assert resp.json()["success"] is False
        assert store.jobs["v1"].status == "failed"


class TestWorkerFolder:
    """POST /api/worker/folder."""

    def _submission(self, store: FakeStore) -> str:
        return asyncio.run(store.create_submission(FOLDER_URL, "folder")).id

    def test_missing_fields(self) -> None:
        resp = make_client().post("/api/worker/folder", json={"folder_id": FOLDER_ID})
        assert resp.status_code == 400
        assert resp.json()["error"] == "folder_id and submission_id are required"

    def test_bad_signature(self) -> None:
        resp = make_client(queue=RejectingQueue()).post("/api/worker/folder", json={})
        assert resp.status_code == 401

    def test_first_execution_chains(self) -> None:
        store = FakeStore()
        queue = FakeQueue()
        ids = [f"v{i}" for i in range(5)]
        submission_id = self._submission(store)

        resp = make_client(
            store=store, queue=queue, scraper=FakeScraper(folder_video_ids=ids), videos_per_execution=2,
        ).post("/api/worker/folder", content=json.dumps(
            {"folder_id": FOLDER_ID, "submission_id": submission_id},
        ))

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "chained"
        assert data["processed"] == 2
        assert data["remaining"] == 3
        assert data["videos_found"] == 5
        assert queue.folder_jobs == [FolderJobPayload(
            folder_id=FOLDER_ID, submission_id=submission_id, video_ids=["v2", "v3", "v4"],
        )]

    def test_last_execution_completes(self) -> None:
        store = FakeStore()
        submission_id = self._submission(store)

        resp = make_client(store=store).post("/api/worker/folder", json={
            "folder_id": FOLDER_ID, "submission_id": submission_id, "video_ids": ["v1"],
        })

        assert resp.json()["status"] == "completed"
        assert store.submissions[submission_id].status == "completed"

    def test_continuation_publish_failure_is_500(self) -> None:
        store = FakeStore()
        queue = FakeQueue()
        queue.fail_folder = True
        submission_id = self._submission(store)

        resp = make_client(store=store, queue=queue, videos_per_execution=1).post("/api/worker/folder", json={
            "folder_id": FOLDER_ID, "submission_id": submission_id, "video_ids": ["v1", "v2"],
        })

        assert resp.status_code == 500


class TestVideos:
    """GET /api/videos."""

    def test_by_id(self) -> None:
        store = FakeStore()
        store.put_video("v1", timedelta(hours=2))

        resp = make_client(store=store).get("/api/videos", params={"id": "v1"})

        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == "v1"

    def test_not_found(self) -> None:
        resp = make_client().get("/api/videos", params={"id": "missing"})
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Video not found"}

    def test_paginated_list(self) -> None:
        store = FakeStore()
        for i in range(3):
            store.put_video(f"v{i}", timedelta(hours=i))

        data = make_client(store=store).get("/api/videos", params={"limit": 2, "offset": 0}).json()

        assert data["total"] == 3
        assert len(data["data"]) == 2

    def test_limit_out_of_range(self) -> None:
        assert make_client().get("/api/videos", params={"limit": 500}).status_code == 400

    def test_by_submission(self) -> None:
        store = FakeStore()
        submission_id = asyncio.run(store.create_submission(FOLDER_URL, "folder")).id
        asyncio.run(store.upsert_video_job("v1", submission_id))
        store.put_video("v1", timedelta(hours=1))
        store.put_video("other", timedelta(hours=1))

        data = make_client(store=store).get("/api/videos", params={"submission_id": submission_id}).json()

        assert [v["id"] for v in data["data"]] == ["v1"]

    def test_submission_id_must_be_uuid(self) -> None:
        resp = make_client().get("/api/videos", params={"submission_id": "not-a-uuid"})
        assert resp.status_code == 400


class TestSubmissions:
    """GET /api/submissions/{id}."""

    def test_returns_status_without_cookies(self) -> None:
        store = FakeStore()
        submission_id = asyncio.run(store.create_submission(FOLDER_URL, "folder", "sid=secret")).id

        resp = make_client(store=store).get(f"/api/submissions/{submission_id}")

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "pending"
        assert data["kind"] == "folder"
        assert "cookies" not in data

    def test_not_found(self) -> None:
        resp = make_client().get("/api/submissions/00000000-0000-0000-0000-000000000000")
        assert resp.status_code == 404

    def test_invalid_uuid(self) -> None:
        resp = make_client().get("/api/submissions/abc")
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid UUID: abc"
