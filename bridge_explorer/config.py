"""
Configuration loading.

Settings come from a YAML file (default config/settings.yaml) with
${VAR} placeholders expanded from the environment. A .env file, if
present, is loaded first. A missing file falls back to defaults.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from dotenv import load_dotenv

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/settings.yaml"
CONFIG_PATH_ENV = "EXPLORER_CONFIG"

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Address encodings per bridge chain id.
DEFAULT_CHAIN_ENCODINGS: dict[int, str] = {
    0: "raw",     # Poly
    1: "raw",     # Bitcoin
    2: "hex",     # Ethereum
    3: "base58",  # Ontology
    4: "base58",  # NEO
    6: "hex",     # BSC
    7: "hex",     # HECO
    12: "hex",    # OKExChain
}


@dataclass
class DuckDBSettings:
    path: str = "data/bridge.duckdb"
    read_only: bool = True


@dataclass
class RedisSettings:
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    socket_timeout: float = 2.0


@dataclass
class CacheSettings:
    enabled: bool = True
    counter_ttl_seconds: int = 300
    key_prefix: str = "explorer"


@dataclass
class ApiSettings:
    host: str = "0.0.0.0"
    port: int = 8000
    request_timeout_seconds: Optional[float] = 10.0
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])


@dataclass
class LoggingSettings:
    level: str = "INFO"
    json: bool = False


@dataclass
class Settings:
    duckdb: DuckDBSettings = field(default_factory=DuckDBSettings)
    redis: RedisSettings = field(default_factory=RedisSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    api: ApiSettings = field(default_factory=ApiSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    chain_encodings: dict[int, str] = field(default_factory=lambda: dict(DEFAULT_CHAIN_ENCODINGS))


def expand_env_vars(value: Any) -> Any:
    """Expand ${VAR} and ${VAR:-default} placeholders, recursing into lists and dicts."""
    if isinstance(value, str) and "${" in value:
        def replace_env(match):
            fallback = match.group(2) if match.group(2) is not None else match.group(0)
            return os.environ.get(match.group(1), fallback)
        return _ENV_PATTERN.sub(replace_env, value)
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def settings_from_dict(raw: dict) -> Settings:
    """Build Settings from a parsed (and env-expanded) config mapping."""
    raw = raw or {}
    storage = raw.get("storage", {}) or {}
    duckdb_raw = storage.get("duckdb", {}) or {}
    redis_raw = storage.get("redis", {}) or {}
    cache_raw = raw.get("cache", {}) or {}
    api_raw = raw.get("api", {}) or {}
    logging_raw = raw.get("logging", {}) or {}
    chains_raw = raw.get("chains", {}) or {}

    defaults = Settings()

    encodings = dict(DEFAULT_CHAIN_ENCODINGS)
    for chain_id, encoding in (chains_raw.get("encodings", {}) or {}).items():
        encodings[int(chain_id)] = str(encoding)

    return Settings(
        duckdb=DuckDBSettings(
            path=str(duckdb_raw.get("path", defaults.duckdb.path)),
            read_only=_as_bool(duckdb_raw.get("read_only", defaults.duckdb.read_only)),
        ),
        redis=RedisSettings(
            host=str(redis_raw.get("host", defaults.redis.host)),
            port=int(redis_raw.get("port", defaults.redis.port)),
            db=int(redis_raw.get("db", defaults.redis.db)),
            password=redis_raw.get("password") or None,
            socket_timeout=float(redis_raw.get("socket_timeout", defaults.redis.socket_timeout)),
        ),
        cache=CacheSettings(
            enabled=_as_bool(cache_raw.get("enabled", defaults.cache.enabled)),
            counter_ttl_seconds=int(cache_raw.get("counter_ttl_seconds", defaults.cache.counter_ttl_seconds)),
            key_prefix=str(cache_raw.get("key_prefix", defaults.cache.key_prefix)),
        ),
        api=ApiSettings(
            host=str(api_raw.get("host", defaults.api.host)),
            port=int(api_raw.get("port", defaults.api.port)),
            request_timeout_seconds=_optional_float(
                api_raw.get("request_timeout_seconds", defaults.api.request_timeout_seconds)
            ),
            cors_origins=list(api_raw.get("cors_origins", defaults.api.cors_origins)),
        ),
        logging=LoggingSettings(
            level=str(logging_raw.get("level", defaults.logging.level)),
            json=_as_bool(logging_raw.get("json", defaults.logging.json)),
        ),
        chain_encodings=encodings,
    )


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from YAML.

    Args:
        path: Config file path. Defaults to $EXPLORER_CONFIG, then
              config/settings.yaml.

    Returns:
        Settings (defaults if the file does not exist)
    """
    load_dotenv()

    config_path = Path(path or os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))

    if not config_path.exists():
        logger.warning("config_not_found_using_defaults", path=str(config_path))
        return Settings()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    settings = settings_from_dict(expand_env_vars(raw))
    logger.info("config_loaded", path=str(config_path))
    return settings
