"""olama configuration with 3-tier precedence.

Precedence (highest wins):
  1. Environment variables (OLAMA_<SECTION>_<KEY>, e.g. OLAMA_TIMEOUTS_CHAT_READ=600)
  2. Global config  (~/.olama/config.yaml)
  3. Pydantic defaults (hardcoded in this module)
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from .constants import (
    CHAT_READ_TIMEOUT,
    CONNECT_TIMEOUT,
    DEFAULT_BASE_URL,
    LIST_MODELS_TIMEOUT,
    MAX_WORKERS,
    POOL_SIZE,
    PROBE_TIMEOUT,
)
from .transport import normalize_base_url

_log = logging.getLogger(__name__)

# ── Config location ──────────────────────────────────────────────────────────

GLOBAL_CONFIG_DIR = os.path.join(Path.home(), ".olama")
GLOBAL_CONFIG_PATH = os.path.join(GLOBAL_CONFIG_DIR, "config.yaml")
ENV_PREFIX = "OLAMA_"


# ── Sections ─────────────────────────────────────────────────────────────────


class ServerConfig(BaseModel):
    base_url: str = DEFAULT_BASE_URL

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, v: str) -> str:
        return normalize_base_url(v)


class TimeoutConfig(BaseModel):
    """HTTP timeouts in seconds."""

    connect: float = CONNECT_TIMEOUT
    list_models: float = LIST_MODELS_TIMEOUT
    probe: float = PROBE_TIMEOUT
    chat_read: float = CHAT_READ_TIMEOUT

    @field_validator("connect", "list_models", "probe", "chat_read")
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeouts must be > 0, got {v}")
        return v


class ClientConfig(BaseModel):
    pool_size: int = POOL_SIZE
    max_workers: int = MAX_WORKERS

    @field_validator("pool_size", "max_workers")
    @classmethod
    def _validate_at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v


class OlamaConfig(BaseModel):
    """Top-level configuration, written to ``~/.olama/config.yaml`` by ``ensure_config``."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)


# ── Singleton: the resolved config ───────────────────────────────────────────

_config: OlamaConfig | None = None
_config_lock: threading.Lock = threading.Lock()


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply OLAMA_<SECTION>_<KEY>=<value> environment variables.

    For example:
        OLAMA_SERVER_BASE_URL=http://gpu-box:11434 → data["server"]["base_url"]
        OLAMA_TIMEOUTS_CHAT_READ=600 → data["timeouts"]["chat_read"] = 600
    """
    for env_key, env_val in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        parts = env_key[len(ENV_PREFIX) :].lower().split("_", 1)
        if len(parts) != 2:
            continue
        section, field = parts
        if section not in OlamaConfig.model_fields:
            continue
        if section not in data or data[section] is None:
            data[section] = {}
        if not isinstance(data[section], dict):
            continue
        coerced: Any
        try:
            coerced = int(env_val)
        except ValueError:
            try:
                coerced = float(env_val)
            except ValueError:
                coerced = env_val
        data[section][field] = coerced
    return data


def load_config(force_reload: bool = False, path: str | None = None) -> OlamaConfig:
    """Load and cache the config: defaults, then the YAML file, then env vars."""
    global _config
    with _config_lock:
        if _config is not None and not force_reload:
            return _config

        config_path = path or GLOBAL_CONFIG_PATH
        data: dict[str, Any] = {}
        if os.path.exists(config_path):
            try:
                with open(config_path, encoding="utf-8") as f:
                    file_data = yaml.safe_load(f)
                    if isinstance(file_data, dict):
                        data = file_data
            except (OSError, yaml.YAMLError) as exc:
                _log.warning("Failed to read config %s: %s", config_path, exc)
        data = _apply_env_overrides(data)
        try:
            _config = OlamaConfig(**data)
        except (ValueError, TypeError) as exc:
            _log.warning("Invalid config, using defaults: %s", exc)
            _config = OlamaConfig()
        return _config


def ensure_config(path: str | None = None) -> bool:
    """Write the default config file if it doesn't exist.  Returns True if written."""
    config_path = path or GLOBAL_CONFIG_PATH
    if os.path.exists(config_path):
        return False

    config_dir = os.path.dirname(config_path)
    if config_dir:
        os.makedirs(config_dir, exist_ok=True)
    data = OlamaConfig().model_dump()
    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write("# olama configuration\n")
            f.write("# Environment variables override these values: OLAMA_<SECTION>_<KEY>=<value>\n\n")
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
    except OSError as exc:
        _log.warning("Failed to write config to %s: %s", config_path, exc)
        return False
    _log.info("Wrote default config to %s", config_path)
    return True
