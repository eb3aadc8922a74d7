"""Конфигурация скрапера из переменных окружения."""
from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Настройки скрапера — парсятся из env или .env файла."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Supabase
    supabase_url: str
    supabase_service_key: SecretStr

    # QStash: без токена публикация невозможна, без ключей подпись не проверяется
    qstash_token: SecretStr | None = None
    qstash_current_signing_key: SecretStr | None = None
    qstash_next_signing_key: SecretStr | None = None
    qstash_webhook_url: str = "http://localhost:8001"

    # Секрет для cron/init/debug эндпоинтов (Bearer); None → открыты (dev)
    cron_secret: SecretStr | None = None

    # Свежесть: видео, сохранённое менее N часов назад, повторно не скрапится
    freshness_hours: int = 24

    # Цепочка обработки папок
    videos_per_execution: int = 20   # K: видео на одно выполнение
    video_concurrency: int = 10      # C: видео параллельно внутри выполнения

    # Листинг папки
    folder_page_size: int = 50
    folder_max_videos: int = 500     # Safety cap

    # Таймауты исходящих запросов (секунды)
    http_timeout: float = 30.0
    auth_http_timeout: float = 8.0
    subfetch_timeout: float = 20.0

    # Параметры сообщений QStash
    video_job_retries: int = 3
    folder_job_retries: int = 3
    video_job_timeout: str = "30s"
    folder_job_timeout: str = "60s"

    # Recovery
    recovery_batch_limit: int = 100
    recovery_cron_hour: int = 3
    submission_stale_hours: int = 6

    log_level: str = "INFO"
    port: int = Field(
        default=8001,
        validation_alias=AliasChoices("SCRAPER_PORT", "PORT"),
    )

    @property
    def signing_keys_configured(self) -> bool:
        """Оба ключа подписи QStash заданы."""
        return bool(
            self.qstash_current_signing_key
            and self.qstash_current_signing_key.get_secret_value()
            and self.qstash_next_signing_key
            and self.qstash_next_signing_key.get_secret_value()
        )

    @property
    def effective_concurrency(self) -> int:
        """C ≤ K, минимум 1."""
        return max(1, min(self.video_concurrency, self.videos_per_execution))


def load_settings() -> Settings:
    """Создать Settings из переменных окружения (.env файла).

    Фабричная функция — обходит ограничение pyright, который не знает,
    что pydantic-settings заполняет обязательные поля из окружения.
    """
    return Settings.model_validate({})
