from __future__ import annotations

from panoramaid.infra.storage.sqlite_engine import SqliteEngine

SCHEMA_VERSION = 1


def ensure_schema(engine: SqliteEngine) -> int:
    """
    Назначение:
        Создать таблицы meta/cookies/local_storage при первом запуске.
    Выходные данные:
        int: актуальная версия схемы.
    """
    with engine.transaction():
        _create_meta(engine)
        current_version = _get_schema_version(engine) or 0
        if current_version == 0:
            _create_storage_tables(engine)
            _set_schema_version(engine, SCHEMA_VERSION)
            return SCHEMA_VERSION
    return current_version


def _create_meta(engine: SqliteEngine) -> None:
    engine.execute(
        """
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT
        )
        """
    )


def _get_schema_version(engine: SqliteEngine) -> int | None:
    row = engine.fetchone("SELECT value FROM meta WHERE key='schema_version'")
    if row is None:
        return None
    try:
        return int(row[0])
    except (TypeError, ValueError):
        return None


def _set_schema_version(engine: SqliteEngine, version: int) -> None:
    engine.execute(
        """
        INSERT INTO meta(key, value) VALUES ('schema_version', ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (str(version),),
    )


def _create_storage_tables(engine: SqliteEngine) -> None:
    # domain='': host-only cookie.
    engine.execute(
        """
        CREATE TABLE IF NOT EXISTS cookies (
            name TEXT NOT NULL,
            domain TEXT NOT NULL DEFAULT '',
            value TEXT NOT NULL,
            expires_ms INTEGER,
            same_site TEXT,
            PRIMARY KEY (name, domain)
        )
        """
    )
    engine.execute(
        """
        CREATE TABLE IF NOT EXISTS local_storage (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )
