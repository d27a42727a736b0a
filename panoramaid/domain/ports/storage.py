from __future__ import annotations

from typing import Protocol


class StorageBackendProtocol(Protocol):
    """
    Назначение/ответственность:
        Порт одного бэкенда key/value хранилища (cookie-подобного или local storage).
    Инварианты/гарантии:
        - native_expiry=True: бэкенд сам соблюдает срок жизни записи.
        - native_expiry=False: срок хранится отдельной записью "<key>_exp" уровнем выше.
    Взаимодействия:
        Используется DualTierCache в фиксированном порядке приоритета.
    Ошибки/исключения:
        get/set/delete могут бросать StorageError; supports() не бросает.
    """

    name: str
    native_expiry: bool

    def supports(self) -> bool: ...

    def get(self, key: str) -> str | None: ...

    def set(
        self,
        key: str,
        value: str,
        expires_ms: int | None = None,
        *,
        domain: str | None = None,
    ) -> None: ...

    def delete(self, key: str, *, domain: str | None = None) -> None: ...


__all__ = ["StorageBackendProtocol"]
