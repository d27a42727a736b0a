from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


STORAGE_DB_FILENAME = "panorama_storage.sqlite3"


class SqliteEngine:
    """
    Назначение/ответственность:
        Тонкая обёртка над sqlite3.Connection, общая для обоих бэкендов хранилища.
    Ограничения:
        - autocommit: каждая запись сразу видна следующему чтению (upsert-семантика).
        - Соединение общее для потоков (фоновый data-linkage): доступ сериализуется RLock.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._lock = threading.RLock()

    def execute(self, sql: str, params: tuple | dict | None = None) -> sqlite3.Cursor:
        with self._lock:
            if params is None:
                return self.conn.execute(sql)
            return self.conn.execute(sql, params)

    def fetchone(self, sql: str, params: tuple | dict | None = None) -> sqlite3.Row | None:
        with self._lock:
            return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: tuple | dict | None = None) -> list[sqlite3.Row]:
        with self._lock:
            return self.execute(sql, params).fetchall()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            self.conn.execute("BEGIN")
            try:
                yield
                self.conn.execute("COMMIT")
            except Exception:
                self.conn.execute("ROLLBACK")
                raise

    def close(self) -> None:
        with self._lock:
            self.conn.close()


def get_storage_db_path(storage_dir: str) -> str:
    """
    Возвращает путь к файлу хранилища в указанном каталоге.
    """
    return str(Path(storage_dir) / STORAGE_DB_FILENAME)


def open_storage_db(db_path: str) -> SqliteEngine:
    """
    Открывает/создаёт SQLite БД хранилища (":memory:" допускается для тестов).
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=5.0, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout = 5000")
    return SqliteEngine(conn)
