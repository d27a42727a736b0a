from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Mapping, Sequence

from panoramaid.common.time import get_now_ms
from panoramaid.core.cached_state import CachedIdentityStateLoader
from panoramaid.core.consent import ConsentResolver
from panoramaid.core.dual_tier_cache import DualTierCache
from panoramaid.core.resolution import Endpoints, ResolutionProtocol
from panoramaid.domain.error_codes import ErrorCode
from panoramaid.domain.models import NO_CLIENT_CONSENT, ConsentData, DeferredResult, IdConfig, IdResult
from panoramaid.domain.ports.consent import RegionalOptOutProviderProtocol
from panoramaid.domain.ports.execution import RequestExecutorProtocol
from panoramaid.domain.ports.storage import StorageBackendProtocol
from panoramaid.infra.logging.setup import get_default_logger, log_event

MODULE_NAME = "lotamePanoramaId"
GVLID = 95
EIDS = {
    MODULE_NAME: {
        "source": "crwdcntrl.net",
        "atype": 1,
    },
}


class PanoramaIdSubmodule:
    """
    Назначение/ответственность:
        Публичный контракт модуля для хоста: decode и get_id, плюс метаданные
        (name, gvlid, eids) для маппинга согласий и экспорта EID.
    Алгоритм get_id:
        1. Загрузить CachedIdentityState для client_id.
        2. Активное окно подавления клиента -> IdResult(None, NO_CLIENT_CONSENT).
        3. Data-linkage вызов уходит в фоновый поток (fire-and-forget), get_id его не ждёт.
        4. Свежий core id -> IdResult(core_id).
        5. Иначе DeferredResult: при вызове перепроверяет кэш и делает запрос /id.
    Ограничения:
        - Исключения не пересекают границу get_id/decode: логируются, id отсутствует.
        - Владеет одним фоновым потоком для data-linkage; close() дожидается отправленных вызовов.
    """

    name = MODULE_NAME
    gvlid = GVLID
    eids = EIDS

    def __init__(
        self,
        backends: Sequence[StorageBackendProtocol],
        executor: RequestExecutorProtocol,
        *,
        opt_out_provider: RegionalOptOutProviderProtocol | None = None,
        root_domain_resolver: Callable[[], str | None] | None = None,
        user_agent: str | None = None,
        endpoints: Endpoints | None = None,
        clock: Callable[[], int] = get_now_ms,
        logger: logging.Logger | None = None,
        run_id: str | None = None,
    ):
        self._backends = list(backends)
        self._executor = executor
        self._opt_out_provider = opt_out_provider
        self._root_domain_resolver = root_domain_resolver
        self._user_agent = user_agent
        self._endpoints = endpoints
        self._clock = clock
        self._logger = logger or get_default_logger()
        self._run_id = run_id
        self._linkage_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="panorama-linkage")

    @staticmethod
    def decode(value: Any, config: Any = None) -> dict[str, str] | None:
        return {MODULE_NAME: value} if isinstance(value, str) else None

    def find_root_domain(self) -> str | None:
        if self._root_domain_resolver is None:
            return None
        return self._root_domain_resolver()

    def get_id(
        self,
        config: IdConfig | Mapping[str, Any] | None = None,
        consent_data: ConsentData | Mapping[str, Any] | None = None,
        cache_id_obj: Any = None,
    ) -> IdResult | DeferredResult | None:
        try:
            return self._get_id(IdConfig.from_obj(config), ConsentData.from_obj(consent_data))
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                self._run_id,
                "get-id",
                f"{ErrorCode.UNEXPECTED_ERROR.value}: get_id failed: {exc}",
            )
            return None

    def build_cache(self) -> DualTierCache:
        """Кэш на один вызов get_id: домен cookie вычисляется здесь, а не хранится глобально."""
        return DualTierCache(
            self._backends,
            cookie_domain=self.find_root_domain(),
            clock=self._clock,
            logger=self._logger,
            run_id=self._run_id,
        )

    def build_protocol(self, cache: DualTierCache) -> ResolutionProtocol:
        return ResolutionProtocol(
            cache,
            self._executor,
            ConsentResolver(cache, self._opt_out_provider),
            user_agent=self._user_agent,
            endpoints=self._endpoints,
            clock=self._clock,
            logger=self._logger,
            run_id=self._run_id,
        )

    def _get_id(self, config: IdConfig, consent_data: ConsentData | None) -> IdResult | DeferredResult:
        cache = self.build_cache()
        state_loader = CachedIdentityStateLoader(cache, self._logger, self._run_id)
        state = state_loader.load(config.client_id)

        # TODO: decide whether a custom client id should gate more than the suppression window.
        if config.client_id and state.is_client_suppressed(self._clock()):
            log_event(
                self._logger,
                logging.INFO,
                self._run_id,
                "get-id",
                f"Client {config.client_id} has no consent until {state.client_expiry_ms}",
            )
            return IdResult(id=None, reason=NO_CLIENT_CONSENT)

        protocol = self.build_protocol(cache)
        self._send_linkage_data(protocol, config)

        if state.is_fresh(self._clock()):
            return IdResult(id=state.core_id)

        stored_profile_id = state_loader.read_profile_id()

        def resolve_id() -> str | None:
            try:
                current = state_loader.load(config.client_id)
                if current.is_fresh(self._clock()):
                    return current.core_id
                return protocol.resolve(config.client_id, stored_profile_id, consent_data)
            except Exception as exc:
                log_event(
                    self._logger,
                    logging.ERROR,
                    self._run_id,
                    "resolve",
                    f"{ErrorCode.UNEXPECTED_ERROR.value}: resolution failed: {exc}",
                )
                return None

        return DeferredResult(task=resolve_id)

    def close(self) -> None:
        """Дожидается фоновых data-linkage вызовов и останавливает поток."""
        self._linkage_pool.shutdown(wait=True)

    def _send_linkage_data(self, protocol: ResolutionProtocol, config: IdConfig) -> Future | None:
        if not config.client_id or not config.hem:
            return None
        try:
            return self._linkage_pool.submit(self._run_linkage, protocol, config)
        except RuntimeError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                self._run_id,
                "linkage",
                f"Linkage call skipped: {exc}",
            )
            return None

    def _run_linkage(self, protocol: ResolutionProtocol, config: IdConfig) -> None:
        try:
            protocol.send_linkage_data(config.client_id, config.hem)
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                self._run_id,
                "linkage",
                f"{ErrorCode.UNEXPECTED_ERROR.value}: linkage call failed: {exc}",
            )
