from __future__ import annotations

from typing import Protocol


class RegionalOptOutProviderProtocol(Protocol):
    """
    Назначение:
        Порт централизованного обработчика регионального opt-out (строка us_privacy).
    Ограничения:
        Возвращает None или пустую строку, если сигнала нет.
    """

    def get_consent_data(self) -> str | None: ...


__all__ = ["RegionalOptOutProviderProtocol"]
