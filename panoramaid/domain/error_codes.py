from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """
    Назначение:
        Единая таксономия кодов ошибок для ExecutionResult и логов.
    """

    NETWORK_ERROR = "NETWORK_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    MALFORMED_CACHED_VALUE = "MALFORMED_CACHED_VALUE"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"

    @classmethod
    def from_status(cls, status_code: int | None) -> "ErrorCode":
        """
        Назначение:
            Подбор общего кода по HTTP-статусу.
        """
        if status_code is None:
            return cls.NETWORK_ERROR
        return cls.HTTP_ERROR


# Код в массиве errors ответа /id: нет согласия на core-идентификатор.
MISSING_CORE_CONSENT = 111
