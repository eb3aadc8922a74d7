"""FastAPI-приложение скрапера."""
import hmac
import uuid
from datetime import UTC, datetime

from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.schemas import (
    CronResponse,
    DatabaseHealth,
    DebugRequest,
    DebugResponse,
    EnqueueRequest,
    EnqueueResponse,
    HealthResponse,
    InitResponse,
    QueueHealth,
    SubmissionResponse,
    SubmissionView,
    VideoListResponse,
    VideoResponse,
    WorkerVideoResponse,
)
from src.config import Settings
from src.database import JobStore, sanitize_error
from src.models.credentials import normalize_credentials
from src.models.job import FolderJobOutcome, FolderJobPayload, VideoJobPayload
from src.platforms.base import BaseScraper
from src.queue import QueuePublisher
from src.worker.handlers import (
    InvalidLocatorError,
    WorkerContext,
    handle_folder_job,
    handle_video_job,
    submit,
)
from src.worker.scheduler import fail_stale_submissions, recover_video_jobs

security = HTTPBearer(auto_error=False)

SIGNATURE_HEADER = "Upstash-Signature"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _validate_uuid(value: str) -> None:
    """Проверить что строка — валидный UUID. Бросает 400 при ошибке."""
    try:
        uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid UUID: {value}")


def create_app(
    store: JobStore,
    publisher: QueuePublisher,
    settings: Settings,
    scraper: BaseScraper,
) -> FastAPI:
    """Создать FastAPI-приложение с зависимостями."""
    app = FastAPI(title="Loom Scraper API", version="0.1.0")

    ctx = WorkerContext(store=store, scraper=scraper, publisher=publisher, settings=settings)

    # Сохраняем зависимости в app.state
    app.state.ctx = ctx
    app.state.settings = settings

    # Любой ответ об ошибке: {success: false, error}
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request")
        return _error(400, f"{location}: {message}" if location else message)

    async def verify_cron_secret(
        credentials: HTTPAuthorizationCredentials | None = Depends(security),
    ) -> None:
        """Bearer CRON_SECRET. Секрет не задан → эндпоинт открыт (dev)."""
        if settings.cron_secret is None:
            return
        expected = settings.cron_secret.get_secret_value()
        if credentials is None or not hmac.compare_digest(credentials.credentials, expected):
            logger.warning("[api] Unauthorized cron request")
            raise HTTPException(status_code=401, detail="Unauthorized")

    async def read_signed_body(request: Request) -> str:
        """Сырое тело доставки QStash после проверки подписи."""
        try:
            raw_body = (await request.body()).decode("utf-8")
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="Invalid body encoding")
        signature = request.headers.get(SIGNATURE_HEADER)
        if not publisher.verify_signature(signature, raw_body):
            raise HTTPException(status_code=401, detail="Invalid signature")
        return raw_body

    # --- Приём заявок ---

    @app.post("/api/enqueue", status_code=202, response_model=EnqueueResponse)
    async def enqueue(body: EnqueueRequest) -> EnqueueResponse | JSONResponse:
        """Создать заявку и сразу вернуть её ID — обработка асинхронна."""
        cookies = normalize_credentials(body.cookies)
        try:
            submission = await submit(ctx, body.url, body.type, cookies)
        except InvalidLocatorError as e:
            return _error(400, str(e))
        except Exception as e:
            logger.exception(f"[enqueue] Error: {e}")
            return _error(500, sanitize_error(str(e)))
        return EnqueueResponse(submission_id=submission.id, status=submission.status)

    # --- Воркеры (вызываются QStash) ---

    @app.post("/api/worker/video", response_model=WorkerVideoResponse)
    async def worker_video(raw_body: str = Depends(read_signed_body)) -> WorkerVideoResponse | JSONResponse:
        try:
            payload = VideoJobPayload.model_validate_json(raw_body)
        except ValidationError:
            return _error(400, "video_id is required")

        logger.info(f"[video_job] Processing: {payload.video_id}")
        try:
            with logger.contextualize(video_id=payload.video_id, submission_id=payload.submission_id):
                outcome = await handle_video_job(ctx, payload)
        except Exception as e:
            logger.exception(f"[video_job] Error: {e}")
            return _error(500, sanitize_error(str(e)))

        return WorkerVideoResponse(
            success=outcome.status != "failed",
            status=outcome.status,
            video_id=outcome.video_id,
            error=outcome.error,
        )

    @app.post("/api/worker/folder", response_model=FolderJobOutcome)
    async def worker_folder(raw_body: str = Depends(read_signed_body)) -> FolderJobOutcome | JSONResponse:
        try:
            payload = FolderJobPayload.model_validate_json(raw_body)
        except ValidationError:
            return _error(400, "folder_id and submission_id are required")

        try:
            with logger.contextualize(folder_id=payload.folder_id, submission_id=payload.submission_id):
                return await handle_folder_job(ctx, payload)
        except Exception as e:
            logger.exception(f"[folder_job] Error: {e}")
            return _error(500, sanitize_error(str(e)))

    # --- Чтение результатов ---

    @app.get("/api/videos", response_model=VideoResponse | VideoListResponse)
    async def get_videos(
        id: str | None = None,
        submission_id: str | None = None,
        limit: int = Query(default=50, ge=1, le=100),
        offset: int = Query(default=0, ge=0),
    ) -> VideoResponse | VideoListResponse:
        """Видео по ID, по заявке или страница всех видео."""
        if id:
            persisted = await store.get_video(id)
            if persisted is None:
                raise HTTPException(status_code=404, detail="Video not found")
            return VideoResponse(data=persisted.to_video())

        if submission_id:
            _validate_uuid(submission_id)
            rows = await store.list_videos_by_submission(submission_id)
            return VideoListResponse(data=[r.to_video() for r in rows], total=len(rows))

        rows, total = await store.list_videos(limit=limit, offset=offset)
        return VideoListResponse(data=[r.to_video() for r in rows], total=total)

    @app.get("/api/submissions/{submission_id}", response_model=SubmissionResponse)
    async def get_submission(submission_id: str = Path(description="UUID заявки")) -> SubmissionResponse:
        _validate_uuid(submission_id)
        submission = await store.get_submission(submission_id)
        if submission is None:
            raise HTTPException(status_code=404, detail="Submission not found")
        return SubmissionResponse(data=SubmissionView.model_validate(submission.model_dump()))

    # --- Обслуживание ---

    @app.get(
        "/api/cron/recover", response_model=CronResponse,
        dependencies=[Depends(verify_cron_secret)],
    )
    async def cron_recover() -> CronResponse | JSONResponse:
        """Переотправить зависшие задачи видео и закрыть оборванные цепочки."""
        logger.info("[recover] Starting maintenance job")
        try:
            result = await recover_video_jobs(store, publisher, settings.recovery_batch_limit)
            stale = await fail_stale_submissions(store, settings.submission_stale_hours)
        except Exception as e:
            logger.exception(f"[recover] Fatal error: {e}")
            return _error(500, sanitize_error(str(e)))

        return CronResponse(
            success=not result.errors,
            jobs_processed=result.republished,
            stale_submissions=stale,
            errors=result.errors or None,
        )

    @app.post("/api/init", response_model=InitResponse, dependencies=[Depends(verify_cron_secret)])
    async def init_schema() -> InitResponse | JSONResponse:
        try:
            await store.initialize_schema()
        except Exception as e:
            logger.exception(f"[init] Schema initialization failed: {e}")
            return _error(500, sanitize_error(str(e)))
        return InitResponse(message="Database schema initialized successfully")

    @app.get("/api/health", response_model=HealthResponse)
    async def health(response: Response) -> HealthResponse:
        """Healthcheck — без авторизации."""
        errors: list[str] = []

        if not publisher.is_configured:
            errors.append("QStash: QSTASH_TOKEN not configured")

        pending_jobs: int | None = None
        try:
            await store.check_connection()
            pending_jobs = await store.count_retryable_video_jobs()
            connected = True
        except Exception as e:
            errors.append(f"Database: {sanitize_error(str(e)) or 'Connection failed'}")
            connected = False

        if not errors:
            status = "healthy"
        elif len(errors) == 1:
            status = "degraded"
        else:
            status = "unhealthy"
            response.status_code = 503

        return HealthResponse(
            status=status,
            timestamp=datetime.now(UTC),
            pending_jobs=pending_jobs,
            database=DatabaseHealth(connected=connected),
            qstash=QueueHealth(configured=publisher.is_configured),
            errors=errors or None,
        )

    @app.post("/api/debug", response_model=DebugResponse, dependencies=[Depends(verify_cron_secret)])
    async def debug(body: DebugRequest) -> DebugResponse | JSONResponse:
        try:
            if body.action == "stats":
                pending = await store.count_retryable_video_jobs()
                return DebugResponse(pending_jobs=pending)

            if body.action == "retry_failed":
                result = await recover_video_jobs(store, publisher, settings.recovery_batch_limit)
                return DebugResponse(
                    success=not result.errors,
                    message=f"Re-published {result.republished} jobs",
                )

            if not body.video_id:
                return _error(400, "video_id is required")
            await publisher.publish_video_job(VideoJobPayload(
                video_id=body.video_id,
                cookies=normalize_credentials(body.cookies),
            ))
            return DebugResponse(message=f"Published test job for {body.video_id}")
        except Exception as e:
            logger.exception(f"[debug] Error: {e}")
            return _error(500, sanitize_error(str(e)))

    return app
