from __future__ import annotations

from panoramaid.domain.ports.consent import RegionalOptOutProviderProtocol


class StaticRegionalOptOutProvider(RegionalOptOutProviderProtocol):
    """
    Назначение:
        Провайдер us_privacy с заранее известным значением (CLI, тесты).
    Паттерн:
        При value=None: Null Object: сигнала нет.
    """

    def __init__(self, value: str | None = None):
        self._value = value

    def get_consent_data(self) -> str | None:
        return self._value
