from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from panoramaid.common.sanitize import truncate_text
from panoramaid.common.time import get_now_ms
from panoramaid.core.consent import ConsentResolver
from panoramaid.core.dual_tier_cache import DualTierCache
from panoramaid.core.keys import KEY_EXPIRY, KEY_ID, KEY_PROFILE, NINE_MONTHS_MS, client_expiry_key
from panoramaid.domain.error_codes import ErrorCode
from panoramaid.domain.models import ConsentData, IdResponse, MalformedResponse
from panoramaid.domain.ports.execution import RequestExecutorProtocol, RequestSpec
from panoramaid.infra.logging.setup import get_default_logger, log_event

ID_HOST = "id.crwdcntrl.net"
ID_HOST_COOKIELESS = "c.ltmsphrcl.net"
DATA_HOST = "bcp.st.dev.lotame.com"
DATA_HOST_COOKIELESS = "c.st.dev.lotame-cookie-nerf.net"
DATA_PATH = "/data"

NO_CONSENT_CLIENT = "CLIENT"


@dataclass(frozen=True)
class Endpoints:
    """
    Назначение:
        Хосты сервиса: стандартные и cookieless-варианты для /id и data-linkage.
    """

    id_host: str = ID_HOST
    id_host_cookieless: str = ID_HOST_COOKIELESS
    data_host: str = DATA_HOST
    data_host_cookieless: str = DATA_HOST_COOKIELESS
    data_path: str = DATA_PATH


def use_cookieless(user_agent: str | None) -> bool:
    """
    Назначение:
        Эвристика "браузер блокирует сторонние cookies": Safari, но не Chrome.
    """
    return bool(user_agent) and "Safari" in user_agent and "Chrome" not in user_agent


def parse_response(body: str | None) -> IdResponse | MalformedResponse | None:
    """
    Назначение:
        Разбор тела ответа на границе транспорта.

    Выходные данные:
        - None: пустое тело (нечего применять).
        - MalformedResponse: не JSON или не JSON-объект.
        - IdResponse: поля неверного типа приведены к None.
    """
    if not body:
        return None
    try:
        data = json.loads(body)
    except ValueError as exc:
        return MalformedResponse(reason=f"invalid JSON: {exc}", body_snippet=truncate_text(body, 200))
    if not isinstance(data, dict):
        return MalformedResponse(
            reason=f"expected JSON object, got {type(data).__name__}",
            body_snippet=truncate_text(body, 200),
        )
    errors = data.get("errors")
    error_codes = [_as_integral(code) for code in errors] if isinstance(errors, list) else []
    return IdResponse(
        profile_id=_as_str(data.get("profile_id")),
        core_id=_as_str(data.get("core_id")),
        no_consent=_as_str(data.get("no_consent")),
        expiry_ts=_as_timestamp(data.get("expiry_ts")),
        errors=[code for code in error_codes if code is not None],
    )


def _as_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _as_integral(value: Any) -> int | None:
    # JSON-числа: 111 и 111.0 равнозначны, bool не число.
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_timestamp(value: Any) -> int | None:
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return _as_integral(value)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ResolutionProtocol:
    """
    Назначение/ответственность:
        Сетевой резолв идентификатора: построение запроса, выбор хоста,
        разбор ответа и переход состояния кэша.
    Инварианты/гарантии:
        - Ответы /id и data-linkage обрабатываются одними и теми же правилами.
        - Ошибка транспорта или битый ответ не меняют кэш.
        - Без автоматических повторов.
    Взаимодействия:
        RequestExecutorProtocol (транспорт), DualTierCache (состояние), ConsentResolver.
    """

    def __init__(
        self,
        cache: DualTierCache,
        executor: RequestExecutorProtocol,
        consent_resolver: ConsentResolver,
        *,
        user_agent: str | None = None,
        endpoints: Endpoints | None = None,
        clock: Callable[[], int] = get_now_ms,
        logger: logging.Logger | None = None,
        run_id: str | None = None,
    ):
        self._cache = cache
        self._executor = executor
        self._consent = consent_resolver
        self._user_agent = user_agent
        self._endpoints = endpoints or Endpoints()
        self._clock = clock
        self._logger = logger or get_default_logger()
        self._run_id = run_id

    def request_host(self) -> str:
        if use_cookieless(self._user_agent):
            return self._endpoints.id_host_cookieless
        return self._endpoints.id_host

    def data_host(self) -> str:
        if use_cookieless(self._user_agent):
            return self._endpoints.data_host_cookieless
        return self._endpoints.data_host

    def build_id_request(
        self,
        client_id: str | None,
        stored_profile_id: str | None,
        consent_data: ConsentData | None,
    ) -> RequestSpec:
        query: dict[str, Any] = {}
        if stored_profile_id:
            query["fp"] = stored_profile_id
        if client_id:
            query["c"] = client_id
        query.update(self._consent.build_consent_params(consent_data))
        return RequestSpec.get(
            f"https://{self.request_host()}/id",
            query={key: _query_value(value) for key, value in query.items()},
            with_credentials=True,
        )

    def resolve(
        self,
        client_id: str | None,
        stored_profile_id: str | None,
        consent_data: ConsentData | None,
        on_complete: Callable[[str | None], None] | None = None,
    ) -> str | None:
        """
        Контракт (вход/выход):
            Вход: client_id, сохранённый profile id, согласие.
            Выход: core id из ответа или None; тот же результат уходит в on_complete.
        """
        request = self.build_id_request(client_id, stored_profile_id, consent_data)
        core_id = self._execute_and_apply(request, client_id, component="resolve")
        if on_complete is not None:
            on_complete(core_id)
        return core_id

    def send_linkage_data(self, client_id: str | None, hashed_id: str | None) -> str | None:
        """
        Назначение:
            Best-effort POST хэшированного идентификатора; успешный ответ
            обновляет кэш по тем же правилам, что и /id.
        """
        if not client_id or not hashed_id:
            return None
        request = RequestSpec.post(
            f"https://{self.data_host()}{self._endpoints.data_path}",
            json={"c": client_id, "did": hashed_id},
        )
        return self._execute_and_apply(request, client_id, component="linkage")

    def apply_response(self, response: IdResponse, client_id: str | None) -> str | None:
        """
        Алгоритм:
            1. Есть client_id: без ошибки согласия: снять окно подавления клиента;
               иначе при no_consent == "CLIENT": записать окно (срок = expiry_ts) и выйти.
            2. Всегда сохранить глобальный срок expiry_ts.
            3. Есть profile_id: сохранить его (если согласие без ошибок);
               есть core_id: сохранить и вернуть, иначе очистить core id.
            4. Нет profile_id: очистить profile id (если согласие без ошибок) и core id.
        """
        error_free = response.consent_is_error_free
        expiry = response.expiry_ts

        if client_id:
            if error_free:
                self._cache.delete(client_expiry_key(client_id))
            elif response.no_consent == NO_CONSENT_CLIENT:
                self._cache.write(client_expiry_key(client_id), expiry, expiry)
                return None

        self._cache.write(KEY_EXPIRY, expiry, expiry)

        if response.profile_id:
            if error_free:
                self._cache.write(
                    KEY_PROFILE,
                    response.profile_id,
                    self._clock() + NINE_MONTHS_MS,
                    track_expiry=False,
                )
            if response.core_id:
                self._cache.write(KEY_ID, response.core_id, expiry)
                return response.core_id
            self._cache.delete(KEY_ID)
            return None

        if error_free:
            self._cache.delete(KEY_PROFILE)
        self._cache.delete(KEY_ID)
        return None

    def _execute_and_apply(self, request: RequestSpec, client_id: str | None, component: str) -> str | None:
        result = self._executor.execute(request)
        if not result.ok:
            log_event(
                self._logger,
                logging.ERROR,
                self._run_id,
                component,
                f"{result.error_code}: {request.method} {request.url} failed "
                f"(status={result.status_code}, {result.duration_ms} ms): {result.error_message}",
            )
            return None

        response = parse_response(result.body)
        if response is None:
            log_event(self._logger, logging.DEBUG, self._run_id, component, "Empty response body, nothing to apply")
            return None
        if isinstance(response, MalformedResponse):
            log_event(
                self._logger,
                logging.ERROR,
                self._run_id,
                component,
                f"{ErrorCode.MALFORMED_RESPONSE.value}: {response.reason} body={response.body_snippet!r}",
            )
            return None
        return self.apply_response(response, client_id)
