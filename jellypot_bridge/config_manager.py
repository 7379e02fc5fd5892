import copy
import json
import os
import sys
import uuid
import logging
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from jellypot_bridge.utils.constants import APP_NAME, DEFAULT_REPORTING_INTERVAL

log = logging.getLogger(__name__)

APP_DATA_DIR = Path.home() / f".{APP_NAME}"
SETTINGS_FILE_NAME = "settings.json"
DEFAULT_POTPLAYER_PATH = r"C:\Program Files\DAUM\PotPlayer\PotPlayerMini64.exe"

# Environment variables that take precedence over the settings file
ENV_OVERRIDES = {
    "JELLYPOT_SERVER_URL": ("jellyfin", "server_url"),
    "JELLYPOT_USERNAME": ("jellyfin", "username"),
    "JELLYPOT_PASSWORD": ("jellyfin", "password"),
    "JELLYPOT_DEVICE_ID": ("jellyfin", "device_id"),
    "JELLYPOT_POTPLAYER_PATH": (None, "pot_player_path"),
    "JELLYPOT_REPORTING_INTERVAL": (None, "reporting_interval"),
}

TEMPLATE_SETTINGS = {
    "reporting_interval": DEFAULT_REPORTING_INTERVAL,
    "pot_player_path": DEFAULT_POTPLAYER_PATH,
    "jellyfin": {
        "server_url": "http://localhost:8096",
        "username": "",
        "password": "",
        "device_id": "",
    },
}


class ConfigurationError(Exception):
    """Raised when the settings are missing or invalid."""
    pass


@dataclass(frozen=True)
class BridgeConfig:
    server_url: str
    username: str
    password: str
    device_id: str
    pot_player_path: str
    reporting_interval: float = DEFAULT_REPORTING_INTERVAL


def get_app_data_dir():
    """Directory for the log file and the default settings file."""
    return APP_DATA_DIR


def get_settings_path():
    """
    Determine which settings file to use.

    JELLYPOT_SETTINGS wins, then a settings.json next to a frozen executable
    (the protocol handler launches the exe from its install folder), then the
    app data directory.
    """
    env_path = os.environ.get("JELLYPOT_SETTINGS")
    if env_path:
        return Path(env_path)
    if getattr(sys, "frozen", False):
        exe_settings = Path(sys.executable).resolve().parent / SETTINGS_FILE_NAME
        if exe_settings.exists():
            return exe_settings
    return get_app_data_dir() / SETTINGS_FILE_NAME


def save_settings(settings_dict, settings_path):
    """Saves the settings dictionary as JSON."""
    try:
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        with open(settings_path, 'w', encoding='utf-8') as f:
            json.dump(settings_dict, f, indent=4)
        log.info(f"Settings saved successfully to {settings_path}")
    except OSError as e:
        log.error(f"Could not write settings file {settings_path}: {e}")


def load_settings(settings_path):
    """
    Loads the raw settings dictionary.

    A template is written when the file does not exist yet, and the user is asked to fill it in.
    """
    if not settings_path.exists():
        log.info(f"Settings file not found at {settings_path}. Writing template.")
        save_settings(TEMPLATE_SETTINGS, settings_path)
        raise ConfigurationError(
            f"Settings file created at {settings_path}. Fill in your Jellyfin server and credentials."
        )
    try:
        with open(settings_path, 'r', encoding='utf-8') as f:
            settings = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigurationError(f"Failed to read config file {settings_path}: {e}") from e
    if not isinstance(settings, dict):
        raise ConfigurationError(f"Failed to parse config file {settings_path}: expected a JSON object")
    return settings


def apply_env_overrides(settings):
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if not value:
            continue
        target = settings.setdefault(section, {}) if section else settings
        target[key] = value
        log.debug(f"Setting '{key}' overridden by {env_name}")
    return settings


def _parse_interval(value):
    try:
        interval = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid reporting_interval '{value}': must be a number of seconds")
    if interval <= 0:
        raise ConfigurationError(f"Invalid reporting_interval '{value}': must be greater than 0")
    return interval


def load_config(settings_path=None):
    """
    Load, override and validate the bridge configuration.

    Returns:
        BridgeConfig: The validated configuration.

    Raises:
        ConfigurationError: If the settings are missing or invalid.
    """
    load_dotenv()
    settings_path = Path(settings_path) if settings_path else get_settings_path()
    raw_settings = load_settings(settings_path)
    settings = apply_env_overrides(copy.deepcopy(raw_settings))

    jellyfin = settings.get("jellyfin")
    if not isinstance(jellyfin, dict):
        raise ConfigurationError("Missing 'jellyfin' section in settings")

    missing = [key for key in ("server_url", "username") if not jellyfin.get(key)]
    if not settings.get("pot_player_path"):
        missing.append("pot_player_path")
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    device_id = jellyfin.get("device_id")
    if not device_id:
        device_id = uuid.uuid4().hex
        log.info(f"Generated new device id {device_id}")
        # Only the generated id is written back
        raw_jellyfin = raw_settings.get("jellyfin")
        if isinstance(raw_jellyfin, dict):
            raw_jellyfin["device_id"] = device_id
            save_settings(raw_settings, settings_path)

    return BridgeConfig(
        server_url=str(jellyfin["server_url"]).rstrip("/"),
        username=str(jellyfin["username"]),
        password=str(jellyfin.get("password") or ""),
        device_id=str(device_id),
        pot_player_path=str(settings["pot_player_path"]),
        reporting_interval=_parse_interval(settings.get("reporting_interval", DEFAULT_REPORTING_INTERVAL)),
    )
