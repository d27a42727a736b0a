from __future__ import annotations

import sqlite3
from typing import Callable

from panoramaid.common.time import get_now_ms
from panoramaid.domain.ports.storage import StorageBackendProtocol
from panoramaid.errors import StorageError
from panoramaid.infra.storage.sqlite_engine import SqliteEngine


class SqliteCookieStore(StorageBackendProtocol):
    """
    Назначение/ответственность:
        Cookie-подобный бэкенд: записи с собственным сроком жизни и доменом.
    Инварианты/гарантии:
        - Запись с истёкшим сроком не читается (как браузер не отдаёт протухшую cookie).
        - Установка уже прошедшего срока удаляет запись.
    Ограничения:
        enabled=False эмулирует отключённые cookies: supports() -> False.
    """

    name = "cookie"
    native_expiry = True

    def __init__(
        self,
        engine: SqliteEngine,
        *,
        enabled: bool = True,
        same_site: str = "Lax",
        clock: Callable[[], int] = get_now_ms,
    ):
        self._engine = engine
        self._enabled = enabled
        self._same_site = same_site
        self._clock = clock

    def supports(self) -> bool:
        return self._enabled

    def get(self, key: str) -> str | None:
        self._require_enabled()
        try:
            row = self._engine.fetchone(
                """
                SELECT value FROM cookies
                WHERE name = ? AND (expires_ms IS NULL OR expires_ms > ?)
                ORDER BY domain DESC
                LIMIT 1
                """,
                (key, self._clock()),
            )
        except sqlite3.Error as exc:
            raise StorageError(f"Cookie read failed: {exc}", backend=self.name) from exc
        return None if row is None else str(row["value"])

    def set(
        self,
        key: str,
        value: str,
        expires_ms: int | None = None,
        *,
        domain: str | None = None,
    ) -> None:
        self._require_enabled()
        try:
            if expires_ms is not None and expires_ms <= self._clock():
                self._engine.execute(
                    "DELETE FROM cookies WHERE name = ? AND domain = ?",
                    (key, domain or ""),
                )
                return
            self._engine.execute(
                """
                INSERT INTO cookies(name, domain, value, expires_ms, same_site)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(name, domain) DO UPDATE SET
                    value=excluded.value,
                    expires_ms=excluded.expires_ms,
                    same_site=excluded.same_site
                """,
                (key, domain or "", value, expires_ms, self._same_site),
            )
        except sqlite3.Error as exc:
            raise StorageError(f"Cookie write failed: {exc}", backend=self.name) from exc

    def delete(self, key: str, *, domain: str | None = None) -> None:
        # Браузерный способ удаления: пустое значение и срок в прошлом.
        self.set(key, "", 0, domain=domain)

    def _require_enabled(self) -> None:
        if not self._enabled:
            raise StorageError("Cookies are disabled", backend=self.name)
