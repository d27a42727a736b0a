from __future__ import annotations

import logging
from typing import Callable

import httpx

from panoramaid.common.time import get_now_ms
from panoramaid.config import Settings
from panoramaid.core.provider import PanoramaIdSubmodule
from panoramaid.core.resolution import Endpoints
from panoramaid.domain.ports.storage import StorageBackendProtocol
from panoramaid.infra.consent.static_provider import StaticRegionalOptOutProvider
from panoramaid.infra.http.panorama_client import PanoramaApiClient
from panoramaid.infra.http.request_executor import HttpRequestExecutor
from panoramaid.infra.storage.cookie_store import SqliteCookieStore
from panoramaid.infra.storage.local_store import SqliteLocalStore
from panoramaid.infra.storage.sqlite_engine import SqliteEngine


def build_backends(
    engine: SqliteEngine,
    settings: Settings,
    clock: Callable[[], int] = get_now_ms,
) -> list[StorageBackendProtocol]:
    """
    Назначение:
        Упорядоченный список бэкендов: cookie-подобный первым, local storage вторым.
    """
    return [
        SqliteCookieStore(engine, enabled=not settings.disable_cookies, clock=clock),
        SqliteLocalStore(engine, enabled=not settings.disable_local_storage),
    ]


def build_endpoints(settings: Settings) -> Endpoints:
    return Endpoints(
        id_host=settings.id_host,
        id_host_cookieless=settings.id_host_cookieless,
        data_host=settings.data_host,
        data_host_cookieless=settings.data_host_cookieless,
        data_path=settings.data_path,
    )


def build_submodule(
    settings: Settings,
    engine: SqliteEngine,
    *,
    us_privacy: str | None = None,
    transport: httpx.BaseTransport | None = None,
    clock: Callable[[], int] = get_now_ms,
    logger: logging.Logger | None = None,
    run_id: str | None = None,
) -> tuple[PanoramaIdSubmodule, PanoramaApiClient]:
    """
    Назначение:
        Собирает PanoramaIdSubmodule из настроек: хранилище, httpx-транспорт, провайдер us_privacy.
    Выходные данные:
        (submodule, client): оба нужно закрыть после использования (submodule.close() первым).
    """
    client = PanoramaApiClient(
        timeoutSeconds=settings.timeout_seconds,
        userAgent=settings.user_agent,
        tlsSkipVerify=settings.tls_skip_verify,
        caFile=settings.ca_file,
        transport=transport,
    )
    submodule = PanoramaIdSubmodule(
        build_backends(engine, settings, clock),
        HttpRequestExecutor(client),
        opt_out_provider=StaticRegionalOptOutProvider(us_privacy),
        root_domain_resolver=lambda: settings.cookie_domain,
        user_agent=settings.user_agent,
        endpoints=build_endpoints(settings),
        clock=clock,
        logger=logger,
        run_id=run_id,
    )
    return submodule, client
