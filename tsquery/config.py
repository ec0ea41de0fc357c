"""Dashboard configuration and logging setup."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .core import BACKENDS, PROMETHEUS
from .errors import ConfigurationError
from .normalize import TABULAR_MODES, GENERIC
from .window import DEFAULT_PRESET

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_LOG_FILE = BASE_DIR / "logs" / "tsquery.log"
CONFIG_ENV_VAR = "TSQUERY_CONFIG"
PROMETHEUS_URL_ENV = "TSQUERY_PROMETHEUS_URL"
CLICKHOUSE_URL_ENV = "TSQUERY_CLICKHOUSE_URL"

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z0-9_]+)\}")


@dataclass(slots=True)
class ProxyConfig:
    prometheus_url: str = ""
    clickhouse_url: str = ""
    timeout_s: float = 30.0
    clickhouse_timeout_s: float = 60.0


@dataclass(slots=True)
class QueryConfig:
    default_backend: str = PROMETHEUS
    default_range: str = DEFAULT_PRESET
    default_step: int = 15
    refresh_s: float = 0.0
    tabular_mode: str = GENERIC


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    file: Optional[Path] = DEFAULT_LOG_FILE


@dataclass(slots=True)
class DashboardSettings:
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source: Optional[Path] = None


def setup_logging(level: int | str = logging.INFO, log_file: Optional[Path] = DEFAULT_LOG_FILE) -> None:
    """Configure a rotating file logger plus console echo."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.insert(
            0,
            RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8"),
        )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
        force=True,
    )


def _expand_env_values(value: object, *, source: Optional[Path] = None) -> object:
    if isinstance(value, dict):
        return {key: _expand_env_values(val, source=source) for key, val in value.items()}
    if isinstance(value, list):
        return [_expand_env_values(item, source=source) for item in value]
    if isinstance(value, str):
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            if var_name not in os.environ:
                location = f" in config '{source}'" if source else ""
                raise ConfigurationError(f"Environment variable '{var_name}' referenced{location} is not set")
            return os.environ[var_name]

        return _ENV_VAR_PATTERN.sub(replacer, value)
    return value


def _candidate_paths(path: Optional[Path | str]) -> List[Path]:
    candidates: List[Path] = []
    if path:
        candidates.append(Path(path))
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path))
    candidates.append(Path("config") / "dashboard.yaml")
    candidates.append(Path("config") / "dashboard.yml")
    return candidates


def _read_yaml(path: Path) -> Dict[str, object]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid configuration format in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root in {path} must be a mapping")
    return _expand_env_values(data, source=path)


def _section(raw: Dict[str, object], name: str) -> Dict[str, object]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"`{name}` section must be a mapping")
    return dict(value)


def _validate(settings: DashboardSettings) -> None:
    query = settings.query
    if query.default_backend not in BACKENDS:
        raise ConfigurationError(f"Unsupported backend '{query.default_backend}'")
    if query.tabular_mode not in TABULAR_MODES:
        raise ConfigurationError(f"Unsupported tabular mode '{query.tabular_mode}'")
    if query.refresh_s < 0:
        raise ConfigurationError("Refresh interval must not be negative")
    if settings.proxy.timeout_s <= 0 or settings.proxy.clickhouse_timeout_s <= 0:
        raise ConfigurationError("Proxy timeouts must be positive")


def load_settings(path: Optional[Path | str] = None) -> DashboardSettings:
    """Load settings from YAML, ``.env`` files and environment overrides.

    A missing configuration file is not an error; defaults apply and backend
    URLs may still come from the environment.
    """
    if path and not Path(path).exists():
        raise ConfigurationError(f"Configuration file {path} does not exist")
    load_dotenv()
    raw: Dict[str, object] = {}
    source: Optional[Path] = None
    for candidate in _candidate_paths(path):
        if candidate.exists():
            load_dotenv(candidate.resolve().parent / ".env")
            raw = _read_yaml(candidate)
            source = candidate
            break

    try:
        proxy = ProxyConfig(**_section(raw, "proxy"))
        query = QueryConfig(**_section(raw, "query"))
        logging_data = _section(raw, "logging")
        if logging_data.get("file"):
            logging_data["file"] = Path(str(logging_data["file"]))
        log_cfg = LoggingConfig(**logging_data)
    except TypeError as exc:
        raise ConfigurationError(f"Unknown configuration key: {exc}") from exc

    proxy.prometheus_url = os.getenv(PROMETHEUS_URL_ENV, proxy.prometheus_url) or ""
    proxy.clickhouse_url = os.getenv(CLICKHOUSE_URL_ENV, proxy.clickhouse_url) or ""
    proxy.timeout_s = float(proxy.timeout_s)
    proxy.clickhouse_timeout_s = float(proxy.clickhouse_timeout_s)
    query.refresh_s = float(query.refresh_s)
    query.default_step = int(query.default_step)

    settings = DashboardSettings(proxy=proxy, query=query, logging=log_cfg, source=source)
    _validate(settings)
    return settings
