from __future__ import annotations

from typing import Any

from panoramaid.core.dual_tier_cache import DualTierCache
from panoramaid.core.keys import KEY_US_PRIVACY, KEYS_CONSENT_STRING
from panoramaid.domain.models import ConsentData
from panoramaid.domain.ports.consent import RegionalOptOutProviderProtocol


class ConsentResolver:
    """
    Назначение/ответственность:
        Собирает параметры согласия для запроса /id: us_privacy, gdpr_applies, gdpr_consent.
    Алгоритм:
        - us_privacy: значение провайдера, иначе first-party запись в кэше.
        - gdpr_applies: только если в согласии явно задан bool.
        - gdpr_consent: строка из согласия, иначе first-party cookies по приоритету.
    Ограничения:
        Только чтение кэша, без записей.
    """

    def __init__(self, cache: DualTierCache, opt_out_provider: RegionalOptOutProviderProtocol | None = None):
        self._cache = cache
        self._opt_out_provider = opt_out_provider

    def build_consent_params(self, consent_data: ConsentData | None) -> dict[str, Any]:
        params: dict[str, Any] = {}

        us_privacy = self._provider_opt_out() or self._cache.read(KEY_US_PRIVACY)
        if us_privacy:
            params["us_privacy"] = us_privacy

        consent_string = None
        if consent_data is not None:
            if isinstance(consent_data.gdpr_applies, bool):
                params["gdpr_applies"] = consent_data.gdpr_applies
            consent_string = consent_data.consent_string
        for key in KEYS_CONSENT_STRING:
            if consent_string:
                break
            consent_string = self._cache.read(key)
        if consent_string:
            params["gdpr_consent"] = consent_string

        return params

    def _provider_opt_out(self) -> str | None:
        if self._opt_out_provider is None:
            return None
        value = self._opt_out_provider.get_consent_data()
        if isinstance(value, str) and value.strip():
            return value
        return None
