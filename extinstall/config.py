"""
Configuration - Settings, Registrations and Logging

Settings come from an optional YAML file, then from the environment (a
``.env`` file is honoured). Registrations, the list of plugins and themes a
host wants managed, live in their own YAML file so they can be rebuilt on
every start.
"""

import logging
import os
import secrets
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ENV_OVERRIDES = {
    "EXTINSTALL_HOOK_PREFIX": "hook_prefix",
    "EXTINSTALL_PLUGINS_DIR": "plugins_dir",
    "EXTINSTALL_THEMES_DIR": "themes_dir",
    "EXTINSTALL_STATE_FILE": "state_file",
    "EXTINSTALL_NONCE_SECRET": "nonce_secret",
    "EXTINSTALL_NONCE_LIFETIME": "nonce_lifetime",
    "EXTINSTALL_DOWNLOAD_TIMEOUT": "download_timeout",
    "EXTINSTALL_INSTALL_TIMEOUT": "install_timeout",
    "EXTINSTALL_MAX_DOWNLOAD_BYTES": "max_download_bytes",
    "LOG_LEVEL": "log_level",
}


class Settings(BaseModel):
    """Process-wide installer settings."""
    hook_prefix: str = Field("", description="Namespaces endpoint and event names")
    plugins_dir: Path = Field(Path("./extensions/plugins"), description="Host plugin directory")
    themes_dir: Path = Field(Path("./extensions/themes"), description="Host theme directory")
    state_file: Optional[Path] = Field(None, description="Activation state file (defaults next to plugins_dir)")
    nonce_secret: str = Field(default_factory=lambda: secrets.token_hex(32), description="HMAC key for nonces")
    nonce_lifetime: int = Field(86400, ge=2, description="Nonce lifetime in seconds")
    download_timeout: float = Field(30.0, gt=0, description="Seconds allowed for one download")
    install_timeout: float = Field(60.0, gt=0, description="Seconds allowed for one unpack")
    max_download_bytes: int = Field(50 * 1024 * 1024, gt=0, description="Largest accepted package")
    log_level: str = Field("INFO", description="Logging level name")

    model_config = ConfigDict(extra="forbid")


class PluginRegistration(BaseModel):
    slug: str
    name: str
    basename: str
    download_url: Optional[str] = None
    activation_signal: Optional[str] = None
    activate: bool = True

    model_config = ConfigDict(extra="forbid")


class ThemeRegistration(BaseModel):
    slug: str
    name: str
    stylesheet: str
    download_url: Optional[str] = None
    activation_signal: Optional[str] = None
    activate: bool = True

    model_config = ConfigDict(extra="forbid")


class Registrations(BaseModel):
    """Contents of a registrations YAML file."""
    plugins: List[PluginRegistration] = Field(default_factory=list)
    themes: List[ThemeRegistration] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


def load_settings(file_path: Optional[str] = None) -> Settings:
    """
    Build Settings from an optional YAML file and the environment.

    Environment variables win over the file.

    Raises:
        ValueError: If the file is missing, unreadable or invalid
    """
    load_dotenv()
    data = _read_yaml(file_path) if file_path else {}
    for env_name, key in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            data[key] = value
    try:
        return Settings(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid settings{f' in {file_path}' if file_path else ''}: {e}")


def load_registrations(file_path: str) -> Registrations:
    """
    Read a registrations YAML file.

    Raises:
        ValueError: If the file is missing, unreadable or invalid
    """
    data = _read_yaml(file_path)
    try:
        return Registrations(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid registrations in {file_path}: {e}")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def _read_yaml(file_path: str) -> dict:
    path = Path(file_path)
    if not path.exists():
        raise ValueError(f"Config file not found: {file_path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {file_path}: {e}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top of {file_path}")
    return data
