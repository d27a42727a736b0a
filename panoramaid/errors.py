from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class AppError(Exception):
    """
    Унифицированная ошибка приложения.
    """

    category: str
    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)


class StorageError(AppError):
    def __init__(self, message: str, backend: str, details: dict | None = None):
        """
        Назначение:
            Ошибка хранилища (бэкенд отключён, заблокирован или упал на SQL).
        Контракт:
            - backend: имя бэкенда ("cookie" | "local_storage").
            - Выше DualTierCache не пробрасывается.
        """
        super().__init__(
            category="storage",
            code="STORAGE_UNAVAILABLE",
            message=message,
            retryable=False,
            details={"backend": backend, **(details or {})},
        )
        self.backend = backend


__all__ = ["AppError", "StorageError"]
