"""Кастомные исключения Loom-скрапера."""


class LoomError(Exception):
    """Общая ошибка обращения к Loom."""


class AuthRequiredError(LoomError):
    """Операция требует cookies сессии Loom."""


class GraphQLError(LoomError):
    """Ошибка HTTP или GraphQL-ответа Loom."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
