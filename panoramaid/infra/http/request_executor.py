from __future__ import annotations

import time

from panoramaid.common.sanitize import truncate_text
from panoramaid.domain.error_codes import ErrorCode
from panoramaid.domain.ports.execution import ExecutionResult, RequestExecutorProtocol, RequestSpec
from panoramaid.infra.http.panorama_client import ApiError, PanoramaApiClient


class HttpRequestExecutor(RequestExecutorProtocol):
    """
    Назначение/ответственность:
        Адаптер RequestExecutorProtocol поверх PanoramaApiClient.
        Выполняет RequestSpec и нормализует результат.
    Ограничения:
        - Синхронное выполнение, одна попытка.
        - expected_statuses проверяются здесь, клиент их не знает.
    """

    def __init__(self, client: PanoramaApiClient, timeout_seconds: float | None = None):
        self._client = client
        self._timeout_seconds = timeout_seconds

    def execute(self, request: RequestSpec) -> ExecutionResult:
        """
        Контракт (вход/выход):
            Вход: RequestSpec.
            Выход: ExecutionResult; ошибки клиента не пробрасываются.
        """
        start = time.perf_counter()
        try:
            status_code, body = self._client.requestAny(
                method=request.method,
                url=request.url,
                params=request.query,
                json=request.json,
                withCredentials=request.with_credentials,
                timeout=self._timeout_seconds,
            )
        except ApiError as err:
            return ExecutionResult(
                ok=False,
                status_code=err.status_code,
                error_code=self._map_error_code(err.code, err.status_code),
                error_message=truncate_text(err.message),
                duration_ms=int((time.perf_counter() - start) * 1000),
            )

        ok = status_code in request.expected_statuses
        return ExecutionResult(
            ok=ok,
            status_code=status_code,
            error_code=None if ok else ErrorCode.from_status(status_code).value,
            error_message=None if ok else truncate_text(body or f"Unexpected status {status_code}"),
            duration_ms=int((time.perf_counter() - start) * 1000),
            body=body,
        )

    def _map_error_code(self, code: str | None, status_code: int | None) -> str:
        if code == "NETWORK_ERROR":
            return ErrorCode.NETWORK_ERROR.value
        if code and code.startswith("HTTP_"):
            return ErrorCode.from_status(status_code).value
        return ErrorCode.UNEXPECTED_ERROR.value
