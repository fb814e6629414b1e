"""
Notifer Configuration — Load, validate and administer notifer.yaml.

The global defaults are a single process-wide value. Readers take a
snapshot with get_global_defaults(); administrative changes go through
update_global_defaults(), which validates, swaps the value under a lock
and (by default) writes the file back.

Usage:
    from notifer.engine.config import load_config, get_global_defaults, update_global_defaults
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from notifer.engine.errors import NotiferConfigError

logger = logging.getLogger("notifer.engine.config")

CONFIG_FILENAME = "notifer.yaml"
DEFAULT_SERVER_URL = "https://app.notifer.io"


# ---------------------------------------------------------------------------
# Pydantic models for notifer.yaml
# ---------------------------------------------------------------------------

class GlobalDefaults(BaseModel):
    """Process-wide fallbacks for every notification attempt."""

    model_config = ConfigDict(validate_assignment=True)

    server_url: str = DEFAULT_SERVER_URL
    default_credentials_id: str = ""
    default_topic: str = ""
    default_priority: int = 3

    @field_validator("default_credentials_id", "default_topic", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Server URL is required")
        if not v.startswith(("http://", "https://")):
            raise ValueError("Server URL must start with http:// or https://")
        return v

    @field_validator("default_priority", mode="before")
    @classmethod
    def clamp_priority(cls, v: Any) -> int:
        if v is None or v == "":
            return 3
        return max(1, min(5, int(v)))


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".notifer/logs"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"logging level must be DEBUG/INFO/WARNING/ERROR/CRITICAL, got '{v}'")
        return v


class CredentialsConfig(BaseModel):
    store_path: str = ".notifer/credentials.yaml"


class NotiferConfig(BaseModel):
    """Root model for notifer.yaml."""

    notifer: GlobalDefaults = GlobalDefaults()
    logging: LoggingConfig = LoggingConfig()
    credentials: CredentialsConfig = CredentialsConfig()


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_config: Optional[NotiferConfig] = None
_config_path: Optional[Path] = None
_lock = threading.RLock()


def _find_project_root() -> Path:
    """Find the project root by looking for notifer.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def _validation_error(message: str, exc: ValidationError, path: Optional[Path] = None) -> NotiferConfigError:
    errors = [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    ]
    return NotiferConfigError(
        f"{message}: {'; '.join(errors)}",
        validation_errors=errors,
        config_path=str(path) if path else None,
    )


def load_config(config_path: Optional[str] = None) -> NotiferConfig:
    """
    Load and validate notifer.yaml.

    Args:
        config_path: Explicit path to notifer.yaml. If None, auto-discovers
            by walking up from the working directory.

    Returns:
        Validated NotiferConfig instance (defaults if the file does not exist).

    Raises:
        NotiferConfigError: the file is not valid YAML or fails validation.
    """
    global _config, _config_path

    if config_path is None:
        path = _find_project_root() / CONFIG_FILENAME
    else:
        path = Path(config_path)

    if not path.exists():
        logger.debug("Config file not found, using defaults: %s", path)
        config = NotiferConfig()
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise NotiferConfigError(f"Invalid YAML in {path}: {e}", config_path=str(path))

        if not isinstance(raw, dict):
            raise NotiferConfigError(f"{path} must contain a mapping", config_path=str(path))

        try:
            config = NotiferConfig(**raw)
        except ValidationError as e:
            raise _validation_error(f"Invalid configuration in {path}", e, path)

    with _lock:
        _config = config
        _config_path = path
    return config


def get_config() -> NotiferConfig:
    """Get the currently loaded config, loading if necessary."""
    with _lock:
        if _config is not None:
            return _config
    return load_config()


def get_config_path() -> Optional[Path]:
    """Path the current config was loaded from (or will be saved to)."""
    return _config_path


def get_global_defaults() -> GlobalDefaults:
    """Return a snapshot of the global defaults; later updates do not affect it."""
    config = get_config()
    with _lock:
        return config.notifer.model_copy()


def update_global_defaults(persist: bool = True, **changes: Any) -> GlobalDefaults:
    """
    Administrative update of the global defaults.

    Validates the merged values before swapping them in, so readers never
    observe a half-applied update.

    Args:
        persist: Write the updated config back to notifer.yaml.
        **changes: Field values, e.g. default_topic="ci".

    Returns:
        Snapshot of the new global defaults.

    Raises:
        NotiferConfigError: unknown field or invalid value.
    """
    global _config

    unknown = set(changes) - set(GlobalDefaults.model_fields)
    if unknown:
        raise NotiferConfigError(
            f"Unknown global setting(s): {', '.join(sorted(unknown))}",
            valid_settings=", ".join(GlobalDefaults.model_fields),
        )

    config = get_config()
    with _lock:
        merged = config.notifer.model_dump()
        merged.update(changes)
        try:
            updated = GlobalDefaults(**merged)
        except ValidationError as e:
            raise _validation_error("Invalid global settings", e)

        _config = config.model_copy(update={"notifer": updated})
        logger.info("Global defaults updated: %s", ", ".join(sorted(changes)))

        if persist:
            save_config()

        return updated.model_copy()


def save_config(config_path: Optional[str] = None) -> Path:
    """
    Write the current config to notifer.yaml.

    Args:
        config_path: Target path. Defaults to the path the config was loaded from.

    Returns:
        The path written.
    """
    config = get_config()
    with _lock:
        path = Path(config_path) if config_path else (_config_path or Path.cwd() / CONFIG_FILENAME)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config.model_dump(), f, sort_keys=False, default_flow_style=False)
    logger.debug("Config saved to %s", path)
    return path


def reset_config() -> None:
    """Forget the loaded config (used between tests and on reload)."""
    global _config, _config_path
    with _lock:
        _config = None
        _config_path = None
