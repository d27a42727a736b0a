from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Tuple


@dataclass
class RequestSpec:
    """
    Назначение/ответственность:
        Описывает внешний запрос без привязки к HTTP-клиенту.
    Инварианты/гарантии:
        - method хранится в верхнем регистре.
        - url абсолютный (хост выбирается эвристикой до построения спецификации).
        - query не содержит пустых значений.
        - expected_statuses непустой.
    Взаимодействия:
        Передаётся в RequestExecutorProtocol.execute().
    """

    method: str
    url: str
    json: Any | None = None
    query: dict[str, str] | None = None
    with_credentials: bool = False
    expected_statuses: Tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        if not self.expected_statuses:
            raise ValueError("expected_statuses must not be empty")
        if self.query:
            self.query = {k: v for k, v in self.query.items() if v not in (None, "")}

    @classmethod
    def get(
        cls,
        url: str,
        *,
        query: dict[str, str] | None = None,
        with_credentials: bool = False,
        expected_statuses: Tuple[int, ...] = tuple(range(200, 300)) + (304,),
    ) -> "RequestSpec":
        return cls(
            method="GET",
            url=url,
            query=query,
            with_credentials=with_credentials,
            expected_statuses=tuple(expected_statuses),
        )

    @classmethod
    def post(
        cls,
        url: str,
        json: Any | None = None,
        *,
        with_credentials: bool = False,
        expected_statuses: Tuple[int, ...] = tuple(range(200, 300)) + (304,),
    ) -> "RequestSpec":
        return cls(
            method="POST",
            url=url,
            json=json,
            with_credentials=with_credentials,
            expected_statuses=tuple(expected_statuses),
        )


@dataclass
class ExecutionResult:
    """
    Назначение/ответственность:
        Нормализованный результат выполнения RequestSpec.
    Инварианты/гарантии:
        - ok=True означает, что статус входит в expected_statuses.
        - body: сырой текст ответа (разбор JSON делает протокол).
    """

    ok: bool
    status_code: int | None = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int | None = None
    body: str | None = None


class RequestExecutorProtocol(Protocol):
    """
    Назначение/ответственность:
        Порт выполнения внешних запросов по спецификации RequestSpec.
    Ограничения:
        Синхронное выполнение, одна попытка; ошибки транспорта возвращаются
        как ExecutionResult(ok=False), а не исключениями.
    """

    def execute(self, request: RequestSpec) -> ExecutionResult: ...


__all__ = ["RequestSpec", "ExecutionResult", "RequestExecutorProtocol"]
