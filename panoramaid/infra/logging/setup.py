from __future__ import annotations

import logging
from pathlib import Path

LOGGER_ROOT = "panoramaid"


class EnsureFieldsFilter(logging.Filter):
    """
    Назначение:
        Гарантирует наличие полей runId и component в LogRecord,
        чтобы форматтер не падал KeyError.
    """

    def __init__(self, runId: str, defaultComponent: str = "core"):
        super().__init__()
        self.runId = runId
        self.defaultComponent = defaultComponent

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "runId"):
            record.runId = self.runId
        if not hasattr(record, "component"):
            record.component = self.defaultComponent
        return True


def map_log_level(level_name: str) -> int:
    """
    Назначение:
        Преобразует строковый уровень логирования в logging level.

    Входные данные:
        level_name: str
            ERROR|WARN|INFO|DEBUG
    """
    value = (level_name or "").strip().upper()
    if value == "ERROR":
        return logging.ERROR
    if value == "WARN":
        return logging.WARNING
    if value == "INFO":
        return logging.INFO
    if value == "DEBUG":
        return logging.DEBUG
    raise ValueError(f"Unsupported log level: {level_name}")


def get_default_logger() -> logging.Logger:
    """Логгер пакета для вызовов через Python API (хост настраивает handlers сам)."""
    return logging.getLogger(LOGGER_ROOT)


def create_command_logger(command_name: str, log_dir: str, run_id: str, log_level: str) -> tuple[logging.Logger, str]:
    """
    Назначение:
        Создаёт логгер для конкретной CLI-команды и возвращает путь к log-файлу.

    Выходные данные:
        (logger, log_file_path)
    """
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    log_file_path = str(Path(log_dir) / f"{command_name}_{run_id}.log")

    logger = logging.getLogger(f"{LOGGER_ROOT}.{command_name}.{run_id}")
    logger.handlers.clear()
    logger.propagate = False

    level = map_log_level(log_level)
    logger.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s runId=%(runId)s comp=%(component)s msg=%(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    file_handler.addFilter(EnsureFieldsFilter(runId=run_id))
    logger.addHandler(file_handler)

    return logger, log_file_path


def log_event(logger: logging.Logger, level: int, run_id: str | None, component: str, message: str) -> None:
    """
    Назначение:
        Унифицированная запись событий с runId/component.
    """
    logger.log(level, message, extra={"runId": run_id or "-", "component": component})
