"""
config.yaml loading.

The file is optional: every key has a default, and a user file only needs to
list what it changes. Secrets are never stored in the file, only the names of
the environment variables that hold them.
"""
import copy
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from errors import ConfigError

DEFAULT_CONFIG: Dict[str, Any] = {
    "providers": [
        {"id": "steamgriddb", "enabled": True},
        {"id": "igdb", "enabled": True},
    ],
    "steamgriddb": {
        "api_key_env": "SGDB_API_KEY",
        "base_url": "https://www.steamgriddb.com/api/v2",
        "request_timeout_seconds": 30,
        "target_dimensions": "600x900",
        "max_suggestions": 5,
        "max_covers": 50,
    },
    "igdb": {
        "client_id_env": "IGDB_CLIENT_ID",
        "client_secret_env": "IGDB_CLIENT_SECRET",
        "base_url": "https://api.igdb.com/v4",
        "token_url": "https://id.twitch.tv/oauth2/token",
        "request_timeout_seconds": 30,
        "cover_size": "cover_big",
        "search_limit": 10,
        "max_suggestions": 5,
        "max_screenshots": 10,
    },
    "engine": {
        "step_delay_ms": 100,
    },
    "translation": {
        "enabled": False,
        "source_language": "en",
        "target_language": "es",
        "base_url": "https://api.mymemory.translated.net/get",
        "request_timeout_seconds": 15,
        "max_chars": 500,
    },
    "notifications": {
        "message_delay_ms": 2000,
        "headline": "🌟🌟🌟 ESTRENO 🌟🌟🌟",
    },
    "ui": {
        "log_display_limit": 50,
        "dark_mode": True,
    },
}


def load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load config.yaml merged over the defaults.

    Args:
        config_path: Path to the YAML file. None or a missing file gives the defaults.

    Raises:
        ConfigError: The file is not valid YAML or is not a mapping.
    """
    if config_path is None or not Path(config_path).exists():
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        user_cfg = load_yaml(Path(config_path))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config {config_path}: {e}") from e

    if not isinstance(user_cfg, dict):
        raise ConfigError(f"Config {config_path} must be a mapping, got {type(user_cfg).__name__}")

    cfg = _deep_merge(DEFAULT_CONFIG, user_cfg)
    if not isinstance(cfg.get("providers"), list):
        raise ConfigError("'providers' must be a list of {id, enabled} entries")
    return cfg


def save_ui_preference(config_path: Path, key: str, value: Any) -> None:
    """Persist a single ui.* setting, keeping the rest of the file as it is."""
    cfg = load_yaml(config_path) if config_path.exists() else {}
    cfg.setdefault("ui", {})[key] = value
    with config_path.open("w", encoding="utf-8") as f:
        yaml.dump(cfg, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


# ==========================
# Typed accessors
# ==========================
def section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = cfg.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return value


def get_int(sec: Dict[str, Any], key: str, default: int) -> int:
    try:
        return int(sec.get(key, default))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be an integer, got {sec.get(key)!r}") from e


def get_float(sec: Dict[str, Any], key: str, default: float) -> float:
    try:
        return float(sec.get(key, default))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be a number, got {sec.get(key)!r}") from e


def get_secret(sec: Dict[str, Any], env_key: str, default_env: str) -> str:
    """Read the secret whose environment variable name is stored under env_key."""
    env_name = sec.get(env_key, default_env)
    return os.environ.get(env_name, "").strip()


def enabled_provider_ids(cfg: Dict[str, Any]) -> List[str]:
    """Provider ids in configured order, enabled ones only."""
    ids = []
    for prov_cfg in cfg.get("providers", []):
        if not isinstance(prov_cfg, dict) or "id" not in prov_cfg:
            raise ConfigError(f"Invalid provider entry: {prov_cfg!r}")
        if prov_cfg.get("enabled", False):
            ids.append(str(prov_cfg["id"]))
    return ids


def step_delay_seconds(cfg: Dict[str, Any]) -> float:
    return get_float(section(cfg, "engine"), "step_delay_ms", 100) / 1000.0
