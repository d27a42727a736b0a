from __future__ import annotations

from panoramaid.common.time import get_now_ms, ms_to_utc_iso
from panoramaid.core.cached_state import CachedIdentityStateLoader
from panoramaid.core.dual_tier_cache import DualTierCache
from panoramaid.core.keys import KEY_EXPIRY, KEY_ID, KEY_PROFILE, client_expiry_key


class CacheStatusUseCase:
    """
    Назначение/ответственность:
        Снимок закэшированного состояния идентичности для оператора.
    """

    def __init__(self, cache: DualTierCache, loader: CachedIdentityStateLoader, clock=get_now_ms):
        self.cache = cache
        self.loader = loader
        self.clock = clock

    def status(self, client_id: str | None = None) -> dict:
        state = self.loader.load(client_id)
        now = self.clock()
        return {
            "core_id": state.core_id,
            "core_id_expiry": ms_to_utc_iso(state.core_id_expiry_ms) if state.core_id_expiry_ms else None,
            "fresh": state.is_fresh(now),
            "profile_id": self.loader.read_profile_id(),
            "client_id": client_id,
            "client_suppressed": bool(client_id) and state.is_client_suppressed(now),
            "client_expiry": ms_to_utc_iso(state.client_expiry_ms) if state.client_expiry_ms else None,
        }


class CacheClearUseCase:
    """
    Назначение/ответственность:
        Удаление закэшированной идентичности из обоих бэкендов.
    """

    def __init__(self, cache: DualTierCache):
        self.cache = cache

    def clear(self, client_id: str | None = None) -> list[str]:
        keys = [KEY_ID, KEY_EXPIRY, KEY_PROFILE]
        if client_id:
            keys.append(client_expiry_key(client_id))
        for key in keys:
            self.cache.delete(key)
        return keys
