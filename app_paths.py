"""Where the tool looks for config.yaml, plus a startup check of its credentials."""
import os
import sys
from pathlib import Path
from typing import Dict, List

from app_config import enabled_provider_ids

CONFIG_FILENAME = "config.yaml"
EXPORT_SUFFIX = "_enriched"

# Provider id -> [(config key naming the env var, default env var)]
CREDENTIAL_ENV_KEYS = {
    "steamgriddb": [("api_key_env", "SGDB_API_KEY")],
    "igdb": [("client_id_env", "IGDB_CLIENT_ID"), ("client_secret_env", "IGDB_CLIENT_SECRET")],
}


def get_app_dir() -> Path:
    """Directory holding config.yaml.

    A PyInstaller build keeps it next to the executable; from source it sits
    beside the modules.
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    return Path(__file__).parent


def get_config_path() -> Path:
    return get_app_dir() / CONFIG_FILENAME


def get_default_export_path(input_csv: Path) -> Path:
    """games.csv -> games_enriched.csv next to the input."""
    input_csv = Path(input_csv)
    return input_csv.with_name(f"{input_csv.stem}{EXPORT_SUFFIX}.csv")


def credential_env_names(cfg: dict, provider_id: str) -> List[str]:
    sec = cfg.get(provider_id) or {}
    return [sec.get(key, default) for key, default in CREDENTIAL_ENV_KEYS.get(provider_id, [])]


def verify_environment(cfg: dict) -> Dict[str, object]:
    """Config file presence and, per enabled provider, the credential variables left unset.

    Raises:
        ConfigError: The providers list is malformed.
    """
    missing = {}
    for provider_id in enabled_provider_ids(cfg):
        missing[provider_id] = [
            name for name in credential_env_names(cfg, provider_id)
            if not os.environ.get(name, "").strip()
        ]
    return {
        'app_dir': str(get_app_dir()),
        'config_found': get_config_path().exists(),
        'missing_credentials': missing,
    }


def print_environment_diagnostics(cfg: dict):
    result = verify_environment(cfg)
    print("\n=== Startup check ===")
    print(f"App directory: {result['app_dir']}")
    if result['config_found']:
        print(f"  [OK] {CONFIG_FILENAME}")
    else:
        print(f"  [MISSING] {CONFIG_FILENAME} (built-in defaults are used)")

    for provider_id, names in result['missing_credentials'].items():
        if names:
            print(f"  [MISSING] {provider_id}: set {', '.join(names)} or it is skipped")
        else:
            print(f"  [OK] {provider_id} credentials")
    print("=" * 21 + "\n")
