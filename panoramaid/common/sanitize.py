from __future__ import annotations


def mask_secret(value: str | None) -> str | None:
    """
    Назначение:
        Маскирует чувствительные значения (hashed email и т.п.) для stdout/logs.

    Выходные данные:
        str | None
            Если value задано: возвращает '***', иначе None.
    """
    if value is None:
        return None
    return "***"


def truncate_text(value: str | None, limit: int = 500) -> str | None:
    """
    Назначение:
        Ограничивает длину текста, чтобы не раздувать логи телом ответа.

    Входные данные:
        value: str | None
        limit: int
            Максимально допустимая длина строки.
    """
    if value is None:
        return None
    if len(value) <= limit:
        return value
    suffix = "..." if limit > 3 else ""
    head = limit - len(suffix)
    return value[:head] + suffix
