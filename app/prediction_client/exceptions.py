"""Исключения клиента сервиса предсказаний"""


class RemoteServiceError(Exception):
    """Базовая ошибка удалённого сервиса предсказаний"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(RemoteServiceError):
    """Неверный токен (401)"""

    pass


class ServerError(RemoteServiceError):
    """Ошибка сервера (5xx)"""

    pass


class TransportError(RemoteServiceError):
    """Сервер недоступен: соединение, таймаут, обрыв протокола"""

    pass


class RemoteJobError(RemoteServiceError):
    """Ответ 2xx, но с полем error в теле"""

    pass
