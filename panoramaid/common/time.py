from __future__ import annotations

import time
from datetime import datetime, timezone


def get_now_ms() -> int:
    """
    Назначение:
        Текущее время в миллисекундах с эпохи (как Date.now()).
    """
    return int(time.time() * 1000)


def ms_to_utc_iso(timestamp_ms: int) -> str:
    """
    Назначение:
        Переводит миллисекундный timestamp в UTC ISO 8601 для вывода.

    Выходные данные:
        str
            Например: 2026-01-11T17:22:10+00:00.
            Значение вне диапазона datetime возвращается как есть (строкой в мс).
    """
    try:
        return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()
    except (ValueError, OverflowError, OSError):
        return str(timestamp_ms)


def get_duration_ms(start_monotonic: float, end_monotonic: float) -> int:
    """Длительность в миллисекундах по monotonic timestamps."""
    return int((end_monotonic - start_monotonic) * 1000)
