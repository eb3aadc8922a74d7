"""Публикация задач в QStash и проверка подписи входящих доставок."""
from loguru import logger
from qstash import AsyncQStash, Receiver
from qstash.errors import SignatureError

from src.config import Settings
from src.models.job import FolderJobPayload, VideoJobPayload

VIDEO_WORKER_PATH = "/api/worker/video"
FOLDER_WORKER_PATH = "/api/worker/folder"


class QueueError(Exception):
    """Ошибка публикации сообщения в очередь."""


class QueueNotConfiguredError(QueueError):
    """QSTASH_TOKEN не задан — публикация невозможна."""


def folder_deduplication_id(payload: FolderJobPayload) -> str:
    """ID дедупликации шага цепочки: заявка + число оставшихся видео."""
    step = len(payload.video_ids) if payload.video_ids is not None else "initial"
    return f"{payload.submission_id}-{step}"


class QueuePublisher:
    """
    Тонкая обёртка над QStash.

    Доставку, ретраи с backoff и криптографию подписи делает QStash;
    здесь только вызов SDK с параметрами из настроек.
    """

    def __init__(self, settings: Settings, client: AsyncQStash | None = None) -> None:
        self.settings = settings
        self._client = client
        self._receiver: Receiver | None = None

        if self._client is None and settings.qstash_token:
            self._client = AsyncQStash(settings.qstash_token.get_secret_value())

        if (
            settings.signing_keys_configured
            and settings.qstash_current_signing_key
            and settings.qstash_next_signing_key
        ):
            self._receiver = Receiver(
                current_signing_key=settings.qstash_current_signing_key.get_secret_value(),
                next_signing_key=settings.qstash_next_signing_key.get_secret_value(),
            )

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def _url(self, path: str) -> str:
        return self.settings.qstash_webhook_url.rstrip("/") + path

    async def _publish(
        self,
        path: str,
        body: dict,
        retries: int,
        timeout: str,
        deduplication_id: str | None = None,
    ) -> str:
        if self._client is None:
            raise QueueNotConfiguredError("QSTASH_TOKEN environment variable is not set")

        url = self._url(path)
        try:
            result = await self._client.message.publish_json(
                url=url,
                body=body,
                retries=retries,
                timeout=timeout,
                deduplication_id=deduplication_id,
            )
        except Exception as e:
            raise QueueError(f"Failed to publish to {path}: {e}") from e

        message_id = getattr(result, "message_id", None)
        if not message_id:
            raise QueueError(f"QStash returned no message id for {path}")
        return message_id

    async def publish_video_job(self, payload: VideoJobPayload) -> str:
        """Опубликовать задачу одного видео. Возвращает message_id."""
        message_id = await self._publish(
            VIDEO_WORKER_PATH,
            payload.model_dump(mode="json"),
            retries=self.settings.video_job_retries,
            timeout=self.settings.video_job_timeout,
        )
        logger.debug(f"[queue] Published video job {payload.video_id}: {message_id}")
        return message_id

    async def publish_folder_job(self, payload: FolderJobPayload) -> str:
        """Опубликовать выполнение цепочки папки (первое или продолжение).

        Один шаг цепочки публикуется не более одного раза: QStash отбрасывает
        сообщение с уже виденным deduplication_id.
        """
        remaining = len(payload.video_ids) if payload.video_ids is not None else "initial"
        message_id = await self._publish(
            FOLDER_WORKER_PATH,
            payload.model_dump(mode="json"),
            retries=self.settings.folder_job_retries,
            timeout=self.settings.folder_job_timeout,
            deduplication_id=folder_deduplication_id(payload),
        )
        logger.debug(f"[queue] Published folder job {payload.folder_id} ({remaining}): {message_id}")
        return message_id

    def verify_signature(self, signature: str | None, raw_body: str, url: str | None = None) -> bool:
        """
        Проверить подпись Upstash-Signature.

        Ключи не заданы → проверка пропускается с предупреждением (dev-режим).
        """
        if self._receiver is None:
            logger.warning("[queue] Signing keys not configured, skipping verification")
            return True

        if not signature:
            logger.error("[queue] No signature provided")
            return False

        try:
            self._receiver.verify(signature=signature, body=raw_body, url=url)
        except SignatureError as e:
            logger.error(f"[queue] Signature verification failed: {e}")
            return False
        return True
