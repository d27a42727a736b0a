from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from panoramaid.domain.error_codes import MISSING_CORE_CONSENT


NO_CLIENT_CONSENT = "NO_CLIENT_CONSENT"


@dataclass(frozen=True)
class ConsentData:
    """
    Назначение:
        Согласие, переданное хостом на один вызов get_id (GDPR-контекст).
    Инварианты/гарантии:
        - gdpr_applies учитывается, только если это настоящий bool.
        - Не сохраняется: живёт в пределах одного резолва.
    """

    gdpr_applies: bool | None = None
    consent_string: str | None = None

    @classmethod
    def from_obj(cls, obj: "ConsentData | Mapping[str, Any] | None") -> "ConsentData | None":
        if obj is None or isinstance(obj, ConsentData):
            return obj
        if not isinstance(obj, Mapping):
            return None
        applies = obj.get("gdprApplies")
        consent = obj.get("consentString")
        return cls(
            gdpr_applies=applies if isinstance(applies, bool) else None,
            consent_string=consent if isinstance(consent, str) else None,
        )


@dataclass(frozen=True)
class IdConfig:
    """
    Назначение:
        Параметры модуля из конфигурации хоста (config.params).
    Инварианты/гарантии:
        - client_id нормализован в непустую строку или None (числа допускаются).
        - hem: первый хэшированный идентификатор или None.
    """

    client_id: str | None = None
    hem: str | None = None

    @classmethod
    def from_obj(cls, config: "IdConfig | Mapping[str, Any] | None") -> "IdConfig":
        if isinstance(config, IdConfig):
            return config
        params: Any = {}
        if isinstance(config, Mapping):
            params = config.get("params") or {}
        if not isinstance(params, Mapping):
            params = {}
        return cls(
            client_id=_normalize_client_id(params.get("clientId")),
            hem=_first_hem(params.get("hems")),
        )


def _normalize_client_id(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _first_hem(value: Any) -> str | None:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if isinstance(value, str) and value:
        return value
    return None


@dataclass(frozen=True)
class CachedIdentityState:
    """
    Назначение:
        Снимок кэша на момент вызова: core id, его срок и окно подавления клиента.
    Инварианты/гарантии:
        - Отсутствующие/битые сроки равны 0.
    """

    core_id: str | None = None
    core_id_expiry_ms: int = 0
    client_expiry_ms: int = 0

    def is_fresh(self, now_ms: int) -> bool:
        # Значение ровно на границе срока ещё действительно.
        return bool(self.core_id) and now_ms <= self.core_id_expiry_ms

    def is_client_suppressed(self, now_ms: int) -> bool:
        return now_ms < self.client_expiry_ms


@dataclass(frozen=True)
class IdResponse:
    """
    Назначение/ответственность:
        Провалидированный ответ /id или data-linkage эндпоинта.
    Инварианты/гарантии:
        - Поля неверного типа приведены к None; errors всегда list[int].
    """

    profile_id: str | None = None
    core_id: str | None = None
    no_consent: str | None = None
    expiry_ts: int | None = None
    errors: list[int] = field(default_factory=list)

    @property
    def consent_is_error_free(self) -> bool:
        return MISSING_CORE_CONSENT not in self.errors


@dataclass(frozen=True)
class MalformedResponse:
    """
    Назначение:
        Тело ответа, которое не удалось разобрать как JSON-объект.
    """

    reason: str
    body_snippet: str | None = None


@dataclass(frozen=True)
class IdResult:
    """
    Назначение:
        Синхронный результат get_id: id из кэша или причина его отсутствия.
    """

    id: str | None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id}
        if self.reason is not None:
            data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class DeferredResult:
    """
    Назначение/ответственность:
        Отложенный резолв: одноразовая задача, выполняющая сетевой запрос при вызове.
    Взаимодействия:
        - run() возвращает core id или None.
        - callback(on_complete): форма с обратным вызовом, как у хоста.
    Ограничения:
        Нет токена отмены: чтобы отменить, вызывающий просто не вызывает задачу.
    """

    task: Callable[[], str | None]

    def run(self) -> str | None:
        return self.task()

    def callback(self, on_complete: Callable[[str | None], None]) -> None:
        on_complete(self.task())
