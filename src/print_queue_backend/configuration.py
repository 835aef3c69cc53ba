from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

CONFIG_ENV_VAR = "PRINT_QUEUE_CONFIG"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class DatabaseSettings:
    path: str = "data/print_queue.db"


@dataclass
class StorageSettings:
    bucket: str = ""
    upload_expiration: int = 900
    download_expiration: int = 3600


@dataclass
class WorkflowSettings:
    strict_transitions: bool = False


@dataclass
class AuthSettings:
    gateway_key: str = ""
    master_key: str = ""


@dataclass
class ServerSettings:
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class LoggingSettings:
    level: str = "INFO"


@dataclass
class Settings:
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    workflow: WorkflowSettings = field(default_factory=WorkflowSettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# Environment variable -> dotted config key
ENV_OVERRIDES: Dict[str, str] = {
    "PRINT_QUEUE_DB_PATH": "database.path",
    "S3_BUCKET_NAME": "storage.bucket",
    "UPLOAD_URL_EXPIRATION": "storage.upload_expiration",
    "DOWNLOAD_URL_EXPIRATION": "storage.download_expiration",
    "STRICT_TRANSITIONS": "workflow.strict_transitions",
    "PRINT_QUEUE_API_KEY": "auth.gateway_key",
    "PRINT_QUEUE_MASTER_KEY": "auth.master_key",
    "ALLOWED_ORIGINS": "server.allowed_origins",
    "LOG_LEVEL": "logging.level",
}

_LIST_KEYS = {"server.allowed_origins"}


def _env_overrides(environ: Dict[str, str]) -> DictConfig:
    overrides = OmegaConf.create({})
    for env_name, key in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        value: Any = raw
        if key in _LIST_KEYS:
            value = [item.strip() for item in raw.split(",") if item.strip()]
        OmegaConf.update(overrides, key, value)
    return overrides


def load_settings(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> DictConfig:
    """
    Build the runtime settings.

    Sources are merged in order: built-in defaults, an optional YAML file
    (argument or PRINT_QUEUE_CONFIG), environment variables (a .env file is
    loaded first), then explicit overrides. Typed fields convert values such
    as "true" or "900" coming from the environment.
    """
    load_dotenv()
    environ = dict(os.environ if environ is None else environ)

    base = OmegaConf.structured(Settings)
    layers = []

    path = config_path or (Path(environ[CONFIG_ENV_VAR]) if environ.get(CONFIG_ENV_VAR) else None)
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found at {path}")
        layers.append(OmegaConf.load(path))

    layers.append(_env_overrides(environ))
    if overrides:
        layers.append(OmegaConf.create(overrides))

    return OmegaConf.merge(base, *layers)  # type: ignore[return-value]


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
