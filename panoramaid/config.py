from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
import os
import yaml

from panoramaid.core.resolution import (
    DATA_HOST,
    DATA_HOST_COOKIELESS,
    DATA_PATH,
    ID_HOST,
    ID_HOST_COOKIELESS,
)


@dataclass(frozen=True)
class Settings:
    # Paths
    storage_dir: str = "./storage"
    log_dir: str = "./logs"
    log_level: str = "INFO"

    # Module params
    client_id: str | None = None
    hems: str | None = None
    cookie_domain: str | None = None
    user_agent: str | None = None

    # Endpoints
    id_host: str = ID_HOST
    id_host_cookieless: str = ID_HOST_COOKIELESS
    data_host: str = DATA_HOST
    data_host_cookieless: str = DATA_HOST_COOKIELESS
    data_path: str = DATA_PATH

    # HTTP
    timeout_seconds: float = 10.0
    tls_skip_verify: bool = False
    ca_file: str | None = None

    # Storage
    disable_cookies: bool = False
    disable_local_storage: bool = False


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    sources_used: list[str]


ENV_PREFIX = "PANORAMA_"

_BOOL_KEYS = {"tls_skip_verify", "disable_cookies", "disable_local_storage"}
_FLOAT_KEYS = {"timeout_seconds"}


def _read_yaml_config(path: Path) -> dict:
    if not path.exists():
        return {}
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data


def _env_get(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def _parse_bool(v: str) -> bool:
    vv = v.lower()
    if vv in ("1", "true", "yes", "y"):
        return True
    if vv in ("0", "false", "no", "n"):
        return False
    raise ValueError(f"Invalid boolean env value: {v}")


def _parse_env_value(key: str, raw: str) -> object:
    if key in _BOOL_KEYS:
        return _parse_bool(raw)
    if key in _FLOAT_KEYS:
        return float(raw)
    return raw


def load_settings(
    config_path: str | None,
    cli_overrides: dict,
) -> LoadedSettings:
    """
    Priority: CLI > ENV > config > defaults
    """
    sources: list[str] = []
    defaults = Settings()
    keys = [f.name for f in fields(Settings)]

    # 1) config file
    cfg: dict = {}
    if config_path:
        cfg = _read_yaml_config(Path(config_path))
        if cfg:
            sources.append("config")

    merged = {key: cfg.get(key, getattr(defaults, key)) for key in keys}

    # 2) env: PANORAMA_<KEY>
    env = {key: _env_get(f"{ENV_PREFIX}{key.upper()}") for key in keys}
    if any(v is not None for v in env.values()):
        sources.append("env")
    for key, raw in env.items():
        if raw is not None:
            merged[key] = _parse_env_value(key, raw)

    # 3) CLI overrides (only those explicitly passed)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")
    for k, v in cli_overrides.items():
        if v is None:
            continue
        merged[k] = v

    if merged["client_id"] is not None:
        merged["client_id"] = str(merged["client_id"])
    for key in _BOOL_KEYS:
        merged[key] = bool(merged[key])
    merged["timeout_seconds"] = float(merged["timeout_seconds"])

    return LoadedSettings(settings=Settings(**merged), sources_used=sources)
