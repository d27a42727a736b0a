from __future__ import annotations

import sqlite3

from panoramaid.domain.ports.storage import StorageBackendProtocol
from panoramaid.errors import StorageError
from panoramaid.infra.storage.sqlite_engine import SqliteEngine


class SqliteLocalStore(StorageBackendProtocol):
    """
    Назначение/ответственность:
        Аналог localStorage: простое key/value без срока жизни.
    Ограничения:
        Срок жизни ведёт DualTierCache через записи "<key>_exp"; domain игнорируется.
    """

    name = "local_storage"
    native_expiry = False

    def __init__(self, engine: SqliteEngine, *, enabled: bool = True):
        self._engine = engine
        self._enabled = enabled

    def supports(self) -> bool:
        return self._enabled

    def get(self, key: str) -> str | None:
        self._require_enabled()
        try:
            row = self._engine.fetchone("SELECT value FROM local_storage WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise StorageError(f"Local storage read failed: {exc}", backend=self.name) from exc
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
            self._engine.execute(
                """
                INSERT INTO local_storage(key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                (key, value),
            )
        except sqlite3.Error as exc:
            raise StorageError(f"Local storage write failed: {exc}", backend=self.name) from exc

    def delete(self, key: str, *, domain: str | None = None) -> None:
        self._require_enabled()
        try:
            self._engine.execute("DELETE FROM local_storage WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise StorageError(f"Local storage delete failed: {exc}", backend=self.name) from exc

    def _require_enabled(self) -> None:
        if not self._enabled:
            raise StorageError("Local storage is disabled", backend=self.name)
