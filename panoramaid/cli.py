from __future__ import annotations

import json
import logging
import sqlite3
import time
from pathlib import Path

import typer

from .common.run_id import generate_run_id
from .common.sanitize import mask_secret
from .common.time import get_duration_ms
from .config import Settings, load_settings
from .core.cached_state import CachedIdentityStateLoader
from .core.dual_tier_cache import DualTierCache
from .core.provider import PanoramaIdSubmodule
from .domain.models import ConsentData, DeferredResult, IdResult
from .factory import build_backends, build_submodule
from .infra.logging.setup import create_command_logger, log_event
from .infra.storage.schema import ensure_schema
from .infra.storage.sqlite_engine import get_storage_db_path, open_storage_db
from .usecases.cache_usecases import CacheClearUseCase, CacheStatusUseCase

app = typer.Typer(no_args_is_help=True, add_completion=False)
cacheApp = typer.Typer(no_args_is_help=True)


def ensureDir(path: str) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def printRunHeader(runId: str, command: str, settings: Settings, sources: list[str]) -> None:
    """
    Назначение:
        Печатает безопасную сводку параметров запуска (hems маскируется).
    """
    typer.echo(
        f"run_id={runId} command={command} "
        f"client_id={settings.client_id} hems={mask_secret(settings.hems)} "
        f"cookie_domain={settings.cookie_domain} sources={sources}"
    )


def runCommand(ctx: typer.Context, commandName: str, runner) -> None:
    """
    Назначение:
        Унифицированная обвязка выполнения команд:
        - создаёт логгер + файл лога
        - открывает SQLite-хранилище и гарантирует схему
        - вызывает runner(logger, engine) и завершает процесс его exit code
    """
    runId = ctx.obj["runId"]
    settings: Settings = ctx.obj["settings"]
    sources = ctx.obj["sources"]

    startMonotonic = time.monotonic()
    logger, _logFilePath = create_command_logger(
        command_name=commandName,
        log_dir=settings.log_dir,
        run_id=runId,
        log_level=settings.log_level,
    )
    log_event(logger, logging.INFO, runId, "core", "Command started")
    printRunHeader(runId, commandName, settings, sources)

    try:
        engine = open_storage_db(get_storage_db_path(settings.storage_dir))
        ensure_schema(engine)
    except sqlite3.Error as exc:
        log_event(logger, logging.ERROR, runId, "storage", f"Failed to open storage DB: {exc}")
        typer.echo("ERROR: failed to open storage DB (see logs)", err=True)
        raise typer.Exit(code=2)

    try:
        exitCode = runner(logger, engine)
    finally:
        engine.close()
        durationMs = get_duration_ms(startMonotonic, time.monotonic())
        log_event(logger, logging.INFO, runId, "core", f"Command finished in {durationMs} ms")

    if exitCode:
        raise typer.Exit(code=exitCode)


def runGetIdCommand(
    ctx: typer.Context,
    gdprApplies: bool | None,
    consentString: str | None,
    usPrivacy: str | None,
) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger, engine) -> int:
        submodule, client = build_submodule(
            settings,
            engine,
            us_privacy=usPrivacy,
            logger=logger,
            run_id=runId,
        )
        params: dict = {}
        if settings.client_id:
            params["clientId"] = settings.client_id
        if settings.hems:
            params["hems"] = settings.hems
        consent = ConsentData(gdpr_applies=gdprApplies, consent_string=consentString)
        try:
            result = submodule.get_id({"params": params}, consent)
            if isinstance(result, IdResult):
                reason = f" reason={result.reason}" if result.reason else ""
                typer.echo(f"id={result.id} source=cache{reason}")
                return 0
            if isinstance(result, DeferredResult):
                typer.echo(f"id={result.run()} source=network")
                return 0
        finally:
            submodule.close()
            client.close()
        typer.echo("ERROR: get-id failed (see logs)", err=True)
        return 2

    runCommand(ctx, "get-id", execute)


def runCacheStatusCommand(ctx: typer.Context) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger, engine) -> int:
        cache = DualTierCache(
            build_backends(engine, settings),
            cookie_domain=settings.cookie_domain,
            logger=logger,
            run_id=runId,
        )
        usecase = CacheStatusUseCase(cache, CachedIdentityStateLoader(cache, logger, runId))
        typer.echo(json.dumps(usecase.status(settings.client_id), ensure_ascii=False, sort_keys=True))
        return 0

    runCommand(ctx, "cache-status", execute)


def runCacheClearCommand(ctx: typer.Context) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger, engine) -> int:
        cache = DualTierCache(
            build_backends(engine, settings),
            cookie_domain=settings.cookie_domain,
            logger=logger,
            run_id=runId,
        )
        cleared = CacheClearUseCase(cache).clear(settings.client_id)
        log_event(logger, logging.INFO, runId, "cache", f"Cleared keys: {', '.join(cleared)}")
        typer.echo(f"cleared={','.join(cleared)}")
        return 0

    runCommand(ctx, "cache-clear", execute)


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(None, "--config", help="Path to config.yml"),
    runId: str | None = typer.Option(None, "--run-id", help="Run identifier (UUID). If omitted, generated."),
    logLevel: str | None = typer.Option(None, "--log-level", help="Log level: ERROR|WARN|INFO|DEBUG"),
    logDir: str | None = typer.Option(None, "--log-dir", help="Directory for logs."),
    storageDir: str | None = typer.Option(None, "--storage-dir", help="Directory for the SQLite storage."),
    clientId: str | None = typer.Option(None, "--client-id", help="Partner client id"),
    hem: str | None = typer.Option(None, "--hem", help="Hashed identifier for the data-linkage call"),
    userAgent: str | None = typer.Option(None, "--user-agent", help="User agent used for host selection"),
    cookieDomain: str | None = typer.Option(None, "--cookie-domain", help="Root domain for cookie writes"),
    timeoutSeconds: float | None = typer.Option(None, "--timeout-seconds", help="HTTP timeout in seconds"),
):
    """
    Назначение:
        Глобальная инициализация CLI:
        - генерирует/принимает run_id
        - загружает настройки (CLI > ENV > config > defaults)
        - создаёт каталоги log/storage
        - сохраняет всё в ctx.obj для подкоманд
    """
    if not runId:
        runId = generate_run_id()

    cliOverrides = {
        "log_level": logLevel,
        "log_dir": logDir,
        "storage_dir": storageDir,
        "client_id": clientId,
        "hems": hem,
        "user_agent": userAgent,
        "cookie_domain": cookieDomain,
        "timeout_seconds": timeoutSeconds,
    }
    try:
        loaded = load_settings(config_path=config, cli_overrides=cliOverrides)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=2)

    ensureDir(loaded.settings.log_dir)
    ensureDir(loaded.settings.storage_dir)

    ctx.obj = {
        "runId": runId,
        "settings": loaded.settings,
        "sources": loaded.sources_used,
        "configPath": config,
    }


@app.command("get-id")
def getId(
    ctx: typer.Context,
    gdprApplies: bool | None = typer.Option(
        None,
        "--gdpr-applies/--no-gdpr-applies",
        help="Whether GDPR applies to this user",
        show_default=True,
    ),
    consentString: str | None = typer.Option(None, "--consent-string", help="TCF consent string"),
    usPrivacy: str | None = typer.Option(None, "--us-privacy", help="US privacy string"),
):
    runGetIdCommand(ctx, gdprApplies, consentString, usPrivacy)


@app.command()
def decode(value: str = typer.Argument(..., help="Stored id value")):
    typer.echo(json.dumps(PanoramaIdSubmodule.decode(value)))


@cacheApp.command("status")
def cacheStatus(ctx: typer.Context):
    runCacheStatusCommand(ctx)


@cacheApp.command("clear")
def cacheClear(ctx: typer.Context):
    runCacheClearCommand(ctx)


app.add_typer(cacheApp, name="cache")
