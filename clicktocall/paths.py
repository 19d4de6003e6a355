"""Per-user locations for settings, deployment config and logs."""

import os
import sys
from pathlib import Path

APP_DIRNAME = "click-to-call"


def get_user_config_dir() -> Path:
    """Per-user configuration directory for click-to-call (not created here)."""
    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / APP_DIRNAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIRNAME

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_DIRNAME
    return Path.home() / ".config" / APP_DIRNAME


def get_settings_path() -> Path:
    """Settings file path; ``CLICKTOCALL_SETTINGS_PATH`` overrides the default."""
    override = os.getenv("CLICKTOCALL_SETTINGS_PATH")
    if override:
        return Path(override).expanduser()
    return get_user_config_dir() / "preferences.yaml"


def get_config_path() -> Path:
    """Deployment config (YAML) path; ``CLICKTOCALL_CONFIG_PATH`` overrides the default."""
    override = os.getenv("CLICKTOCALL_CONFIG_PATH")
    if override:
        return Path(override).expanduser()
    return get_user_config_dir() / "config.yaml"
