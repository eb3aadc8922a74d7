"""Тесты публикации в QStash и проверки подписи."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from qstash.errors import SignatureError

from src.models.job import FolderJobPayload, VideoJobPayload
from src.queue import QueueError, QueueNotConfiguredError, QueuePublisher
from tests.fakes import make_settings


def _client(message_id: str | None = "msg_1") -> MagicMock:
    client = MagicMock()
    client.message.publish_json = AsyncMock(return_value=SimpleNamespace(message_id=message_id))
    return client


class TestPublish:
    """Тесты publish_video_job / publish_folder_job."""

    async def test_video_job_url_and_body(self) -> None:
        client = _client()
        publisher = QueuePublisher(
            make_settings(qstash_webhook_url="https://scraper.example.com/", video_job_retries=5),
            client=client,
        )

        message_id = await publisher.publish_video_job(
            VideoJobPayload(video_id="vid1", submission_id="sub-1", cookies="sid=1"),
        )

        assert message_id == "msg_1"
        kwargs = client.message.publish_json.await_args.kwargs
        assert kwargs["url"] == "https://scraper.example.com/api/worker/video"
        assert kwargs["body"] == {"video_id": "vid1", "submission_id": "sub-1", "cookies": "sid=1"}
        assert kwargs["retries"] == 5
        assert kwargs["timeout"] == "30s"

    async def test_folder_job_carries_remaining_ids(self) -> None:
        client = _client()
        publisher = QueuePublisher(make_settings(folder_job_timeout="90s"), client=client)

        await publisher.publish_folder_job(
            FolderJobPayload(folder_id="f1", submission_id="sub-1", video_ids=["a", "b"]),
        )

        kwargs = client.message.publish_json.await_args.kwargs
        assert kwargs["url"].endswith("/api/worker/folder")
        assert kwargs["body"]["video_ids"] == ["a", "b"]
        assert kwargs["timeout"] == "90s"

    async def test_first_execution_has_null_ids(self) -> None:
        client = _client()
        publisher = QueuePublisher(make_settings(), client=client)

        await publisher.publish_folder_job(FolderJobPayload(folder_id="f1", submission_id="sub-1"))

        assert client.message.publish_json.await_args.kwargs["body"]["video_ids"] is None

    async def test_folder_step_deduplicated(self) -> None:
        """Повторная публикация того же шага цепочки несёт тот же deduplication_id."""
        client = _client()
        publisher = QueuePublisher(make_settings(), client=client)
        payload = FolderJobPayload(folder_id="f1", submission_id="sub-1", video_ids=["a", "b", "c"])

        await publisher.publish_folder_job(payload)
        await publisher.publish_folder_job(payload.model_copy())

        ids = [c.kwargs["deduplication_id"] for c in client.message.publish_json.await_args_list]
        assert ids == ["sub-1-3", "sub-1-3"]

    async def test_first_execution_dedup_id(self) -> None:
        client = _client()
        publisher = QueuePublisher(make_settings(), client=client)

        await publisher.publish_folder_job(FolderJobPayload(folder_id="f1", submission_id="sub-1"))

        assert client.message.publish_json.await_args.kwargs["deduplication_id"] == "sub-1-initial"

    async def test_video_job_not_deduplicated(self) -> None:
        """Задачи видео публикуются без дедупликации."""
        client = _client()
        publisher = QueuePublisher(make_settings(), client=client)

        await publisher.publish_video_job(VideoJobPayload(video_id="vid1"))

        assert client.message.publish_json.await_args.kwargs["deduplication_id"] is None

    async def test_not_configured(self) -> None:
        publisher = QueuePublisher(make_settings(qstash_token=None))

        assert publisher.is_configured is False
        with pytest.raises(QueueNotConfiguredError):
            await publisher.publish_video_job(VideoJobPayload(video_id="vid1"))

    async def test_sdk_error_wrapped(self) -> None:
        client = MagicMock()
        client.message.publish_json = AsyncMock(side_effect=RuntimeError("503"))
        publisher = QueuePublisher(make_settings(), client=client)

        with pytest.raises(QueueError, match="503"):
            await publisher.publish_video_job(VideoJobPayload(video_id="vid1"))

    async def test_missing_message_id(self) -> None:
        publisher = QueuePublisher(make_settings(), client=_client(message_id=None))

        with pytest.raises(QueueError, match="no message id"):
            await publisher.publish_video_job(VideoJobPayload(video_id="vid1"))


class TestVerifySignature:
    """Тесты verify_signature."""

    def test_skipped_without_keys(self) -> None:
        publisher = QueuePublisher(make_settings(), client=_client())
        assert publisher.verify_signature(None, "{}") is True

    def test_missing_signature_rejected(self) -> None:
        with patch("src.queue.Receiver"):
            publisher = QueuePublisher(
                make_settings(qstash_current_signing_key="cur", qstash_next_signing_key="next"),
                client=_client(),
            )
        assert publisher.verify_signature(None, "{}") is False

    def test_valid_signature(self) -> None:
        with patch("src.queue.Receiver") as receiver_cls:
            publisher = QueuePublisher(
                make_settings(qstash_current_signing_key="cur", qstash_next_signing_key="next"),
                client=_client(),
            )

        assert publisher.verify_signature("sig", '{"video_id": "v"}', url="https://x/api/worker/video") is True
        receiver_cls.assert_called_once_with(current_signing_key="cur", next_signing_key="next")
        receiver_cls.return_value.verify.assert_called_once_with(
            signature="sig", body='{"video_id": "v"}', url="https://x/api/worker/video",
        )

    def test_bad_signature_rejected(self) -> None:
        with patch("src.queue.Receiver") as receiver_cls:
            receiver_cls.return_value.verify.side_effect = SignatureError("bad")
            publisher = QueuePublisher(
                make_settings(qstash_current_signing_key="cur", qstash_next_signing_key="next"),
                client=_client(),
            )

        assert publisher.verify_signature("sig", "{}") is False
