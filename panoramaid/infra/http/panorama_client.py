from __future__ import annotations

from typing import Any

import httpx

from panoramaid.errors import AppError


class ApiError(AppError):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body_snippet: str | None = None,
        retryable: bool = False,
        details: dict | None = None,
        code: str | None = None,
    ):
        """
        Назначение:
            Исключение для ошибок HTTP/транспортного уровня PanoramaApiClient.
        Контракт:
            - code: строковый код (NETWORK_ERROR, HTTP_* и т.п.).
            - status_code/body_snippet используются для диагностики.
        """
        super().__init__(
            category="api",
            code=code or (f"HTTP_{status_code}" if status_code else "API_ERROR"),
            message=message,
            retryable=retryable,
            details=details or {},
        )
        self.status_code = status_code
        self.body_snippet = body_snippet


class PanoramaApiClient:
    def __init__(
        self,
        timeoutSeconds: float = 10.0,
        userAgent: str | None = None,
        tlsSkipVerify: bool = False,
        caFile: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Назначение:
            HTTP-клиент сервиса идентификаторов. Абсолютные URL: хост выбирается per-request.
        Контракт:
            - Без ретраев: политика повторов: забота вызывающего.
            - Cookie jar клиента переживает запросы (аналог браузерных credentials).
        """
        verify: bool | str = True
        if tlsSkipVerify:
            verify = False
        elif caFile:
            verify = caFile

        self.userAgent = userAgent
        self.client = httpx.Client(
            timeout=timeoutSeconds,
            verify=verify,
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"accept": "application/json"}
        if self.userAgent:
            headers["user-agent"] = self.userAgent
        return headers

    def requestAny(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        withCredentials: bool = False,
        timeout: float | None = None,
    ) -> tuple[int, str | None]:
        """
        Назначение:
            Один запрос без проверки статуса. Возвращает (status_code, text|None).
        Ошибки/исключения:
            ApiError(code="NETWORK_ERROR") при таймауте/сетевой ошибке.
        """
        extensions = {}
        if timeout is not None:
            extensions["timeout"] = httpx.Timeout(timeout).as_dict()
        request = self.client.build_request(
            method,
            url,
            params=params or None,
            headers=self._headers(),
            json=json,
            extensions=extensions or None,
        )
        if not withCredentials:
            request.headers.pop("cookie", None)
        try:
            resp = self.client.send(request)
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise ApiError("Network error", status_code=None, retryable=False, code="NETWORK_ERROR") from exc
        return resp.status_code, resp.text or None

    def close(self) -> None:
        self.client.close()
