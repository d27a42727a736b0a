from __future__ import annotations

import logging
from typing import Callable, Sequence

from panoramaid.common.time import get_now_ms
from panoramaid.domain.error_codes import ErrorCode
from panoramaid.domain.ports.storage import StorageBackendProtocol
from panoramaid.errors import StorageError
from panoramaid.infra.logging.setup import get_default_logger, log_event

DAY_MS = 60 * 60 * 24 * 1000
DAYS_TO_CACHE = 7
EXPIRY_SUFFIX = "_exp"


class DualTierCache:
    """
    Назначение/ответственность:
        Единый read/write/delete поверх упорядоченного списка бэкендов хранилища.
    Инварианты/гарантии:
        - read: первый доступный бэкенд с неистёкшим значением выигрывает, без слияния.
        - write: пишет во все доступные бэкенды; отказ одного не мешает другому.
        - Бэкенд без native_expiry хранит срок в "<key>_exp"; нет записи срока:
          значение считается неистёкшим.
        - Ошибки хранилища не выходят наружу: "недоступно" == "значения нет".
    Взаимодействия:
        cookie_domain передаётся явно и применяется к каждой записи/удалению.
    """

    def __init__(
        self,
        backends: Sequence[StorageBackendProtocol],
        *,
        cookie_domain: str | None = None,
        clock: Callable[[], int] = get_now_ms,
        logger: logging.Logger | None = None,
        run_id: str | None = None,
    ):
        self._backends = list(backends)
        self.cookie_domain = cookie_domain
        self._clock = clock
        self._logger = logger or get_default_logger()
        self._run_id = run_id

    def read(self, key: str) -> str | None:
        for backend in self._available():
            try:
                if backend.native_expiry:
                    value = backend.get(key)
                else:
                    value = self._read_tracked(backend, key)
            except StorageError as exc:
                self._log_storage_error(exc)
                continue
            if value is not None:
                return value
        return None

    def write(
        self,
        key: str,
        value: str | int | None,
        expires_ms: int | None = None,
        *,
        track_expiry: bool = True,
    ) -> None:
        """
        Контракт:
            - Пустые key/value: no-op.
            - expires_ms по умолчанию: сейчас + 7 дней.
            - track_expiry=False: бэкенд без native_expiry получает значение без "<key>_exp".
        """
        if not key or value is None or value == "":
            return
        if expires_ms is None:
            expires_ms = self._clock() + DAYS_TO_CACHE * DAY_MS
        text = str(value)
        for backend in self._available():
            try:
                if backend.native_expiry:
                    backend.set(key, text, expires_ms, domain=self.cookie_domain)
                    continue
                if track_expiry:
                    backend.set(f"{key}{EXPIRY_SUFFIX}", str(expires_ms))
                backend.set(key, text)
            except StorageError as exc:
                self._log_storage_error(exc)

    def delete(self, key: str) -> None:
        if not key:
            return
        for backend in self._available():
            try:
                backend.delete(key, domain=self.cookie_domain)
                if not backend.native_expiry:
                    backend.delete(f"{key}{EXPIRY_SUFFIX}")
            except StorageError as exc:
                self._log_storage_error(exc)

    def _available(self) -> list[StorageBackendProtocol]:
        return [backend for backend in self._backends if backend.supports()]

    def _read_tracked(self, backend: StorageBackendProtocol, key: str) -> str | None:
        raw_expiry = backend.get(f"{key}{EXPIRY_SUFFIX}")
        if raw_expiry is None or raw_expiry == "":
            return backend.get(key)
        try:
            expiry_ms = int(raw_expiry)
        except ValueError:
            log_event(
                self._logger,
                logging.WARNING,
                self._run_id,
                "storage",
                f"{ErrorCode.MALFORMED_CACHED_VALUE.value}: non-numeric expiry for {key!r} in {backend.name}",
            )
            return None
        if expiry_ms - self._clock() > 0:
            return backend.get(key)
        return None

    def _log_storage_error(self, exc: StorageError) -> None:
        log_event(self._logger, logging.DEBUG, self._run_id, "storage", f"{exc.code}: {exc.message}")
