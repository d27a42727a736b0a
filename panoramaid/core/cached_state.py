from __future__ import annotations

import logging

from panoramaid.core.dual_tier_cache import DualTierCache
from panoramaid.core.keys import KEY_EXPIRY, KEY_ID, KEY_PROFILE, client_expiry_key
from panoramaid.domain.error_codes import ErrorCode
from panoramaid.domain.models import CachedIdentityState
from panoramaid.infra.logging.setup import get_default_logger, log_event


class CachedIdentityStateLoader:
    """
    Назначение/ответственность:
        Read-model поверх DualTierCache: core id, его срок и окно подавления клиента.
    Ограничения:
        Битые числовые значения логируются и дают 0.
    """

    def __init__(self, cache: DualTierCache, logger: logging.Logger | None = None, run_id: str | None = None):
        self._cache = cache
        self._logger = logger or get_default_logger()
        self._run_id = run_id

    def load(self, client_id: str | None = None) -> CachedIdentityState:
        client_expiry_ms = 0
        if client_id:
            client_expiry_ms = self._read_timestamp(client_expiry_key(client_id))
        return CachedIdentityState(
            core_id=self._cache.read(KEY_ID) or None,
            core_id_expiry_ms=self._read_timestamp(KEY_EXPIRY),
            client_expiry_ms=client_expiry_ms,
        )

    def read_profile_id(self) -> str | None:
        return self._cache.read(KEY_PROFILE) or None

    def _read_timestamp(self, key: str) -> int:
        raw = self._cache.read(key)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            log_event(
                self._logger,
                logging.ERROR,
                self._run_id,
                "state",
                f"{ErrorCode.MALFORMED_CACHED_VALUE.value}: {key}={raw!r}",
            )
            return 0
