#!/usr/bin/env python3
"""Start the Game Cover Enricher window."""
import os

from app_paths import get_app_dir, get_config_path, print_environment_diagnostics


def main():
    # config.yaml and relative export paths resolve against the app directory,
    # also when started from a shortcut or a frozen build
    os.chdir(get_app_dir())

    from app_config import load_config
    from errors import ConfigError
    try:
        print_environment_diagnostics(load_config(get_config_path()))
    except ConfigError as e:
        print(f"[ERROR] {e}")

    from ui_main_window import main as run_window
    run_window()


if __name__ == "__main__":
    main()
