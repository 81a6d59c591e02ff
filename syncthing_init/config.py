"""Configuration loading for syncthing-init."""

import logging
import os
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .schema import (
    CONFIG_DIR_SUFFIX,
    DEFAULT_DATA_DIR,
    DEFAULT_GUI_ADDRESS,
    VERSIONING_TYPES,
    check_enum,
    check_folder_path,
    folder_tuning,
    validate_options,
)

logger = logging.getLogger(__name__)


@dataclass
class ApiConfig:
    """Control API client settings."""

    timeout_seconds: float = 30.0
    retry_attempts: int = 1000
    retry_delay_seconds: float = 1.0
    verify_tls: bool = False  # The GUI listener uses a self-signed cert


@dataclass
class CredentialsConfig:
    """How long and how often to wait for the daemon's API key."""

    poll_interval_seconds: float = 1.0
    timeout_seconds: float | None = None  # None waits forever


@dataclass
class DeviceConfig:
    """A peer device, keyed by a local symbolic name."""

    id: str
    name: str
    addresses: list[str] = field(default_factory=list)
    introducer: bool = False
    auto_accept_folders: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Render the device in the daemon's JSON format."""
        return {
            "deviceID": self.id,
            "name": self.name,
            "addresses": list(self.addresses),
            "introducer": self.introducer,
            "autoAcceptFolders": self.auto_accept_folders,
            **deepcopy(self.extra),
        }


@dataclass
class VersioningConfig:
    type: str
    fs_path: str = ""
    params: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "fsPath": self.fs_path,
            "params": dict(self.params),
        }


@dataclass
class FolderConfig:
    """A shared folder, keyed by a local symbolic name.

    ``devices`` holds symbolic device names or structured references
    (mappings such as ``{"deviceId": ..., "encryptionPassword": ...}``).
    ``tuning`` holds every other folder field, defaults included.
    """

    id: str
    label: str
    path: str
    enable: bool = True
    devices: list[str | dict[str, Any]] = field(default_factory=list)
    versioning: VersioningConfig | None = None
    tuning: dict[str, Any] = field(default_factory=dict)

    def to_dict(self, devices: dict[str, DeviceConfig]) -> dict[str, Any]:
        """Render the folder in the daemon's JSON format.

        Args:
            devices: Declared devices used to resolve symbolic names.

        Returns:
            Folder dict with device names replaced by ``{"deviceId": id}``.
        """
        data: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "path": self.path,
            "devices": [
                {"deviceId": devices[ref].id} if isinstance(ref, str) else deepcopy(ref)
                for ref in self.devices
            ],
        }
        if self.versioning is not None:
            data["versioning"] = self.versioning.to_dict()
        data.update(deepcopy(self.tuning))
        return data


@dataclass
class Config:
    gui_address: str = DEFAULT_GUI_ADDRESS
    data_dir: str = DEFAULT_DATA_DIR
    config_dir: str = ""  # Empty means <data_dir>/.config/syncthing
    api_key: str | None = None
    cert: str | None = None
    key: str | None = None
    override_devices: bool = True
    override_folders: bool = True
    api: ApiConfig = field(default_factory=ApiConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    settings: dict[str, Any] = field(default_factory=dict)
    devices: dict[str, DeviceConfig] = field(default_factory=dict)
    folders: dict[str, FolderConfig] = field(default_factory=dict)

    @property
    def base_url(self) -> str:
        if "://" in self.gui_address:
            return self.gui_address.rstrip("/")
        return f"http://{self.gui_address}"

    @property
    def config_path(self) -> Path:
        """Directory holding the daemon's config.xml and keys."""
        if self.config_dir:
            return Path(self.config_dir).expanduser()
        return Path(self.data_dir).expanduser() / CONFIG_DIR_SUFFIX

    @property
    def has_declarations(self) -> bool:
        return bool(self.settings or self.devices or self.folders)


# Top-level keys accepted in their camelCase spelling.
_KEY_ALIASES = {
    "guiAddress": "gui_address",
    "dataDir": "data_dir",
    "configDir": "config_dir",
    "apiKey": "api_key",
    "overrideDevices": "override_devices",
    "overrideFolders": "override_folders",
    "extraOptions": "extra_options",
}

_TRUTHY = ("true", "1", "yes")


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with SYNCTHING_INIT_ prefix."""
    return os.environ.get(f"SYNCTHING_INIT_{key}", default)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    if gui_address := _get_env("GUI_ADDRESS"):
        config.gui_address = gui_address
    if data_dir := _get_env("DATA_DIR"):
        config.data_dir = data_dir
    if config_dir := _get_env("CONFIG_DIR"):
        config.config_dir = config_dir
    if api_key := _get_env("API_KEY"):
        config.api_key = api_key

    if override := _get_env("OVERRIDE_DEVICES"):
        config.override_devices = override.lower() in _TRUTHY
    if override := _get_env("OVERRIDE_FOLDERS"):
        config.override_folders = override.lower() in _TRUTHY

    if attempts := _get_env("API_RETRY_ATTEMPTS"):
        config.api.retry_attempts = int(attempts)
    if delay := _get_env("API_RETRY_DELAY"):
        config.api.retry_delay_seconds = float(delay)
    if timeout := _get_env("CREDENTIALS_TIMEOUT"):
        config.credentials.timeout_seconds = float(timeout)

    return config


def _apply_legacy_layout(data: dict[str, Any]) -> dict[str, Any]:
    """Move renamed options to their current location.

    Older layouts nested everything under ``declarative``, kept extra
    settings under ``extra_options`` and declared devices, folders and
    global options at the top level.
    """
    data = dict(data)

    if "useInotify" in data or "use_inotify" in data:
        raise ConfigError(
            "use_inotify was removed: the daemon has built-in filesystem "
            "watching, enable it per folder with 'watch'"
        )

    if "declarative" in data:
        logger.warning("'declarative' is deprecated, move its keys to the top level")
        for key, value in (data.pop("declarative") or {}).items():
            data.setdefault(key, value)

    for alias, name in _KEY_ALIASES.items():
        if alias in data:
            data.setdefault(name, data.pop(alias))

    settings = dict(data.get("settings") or {})

    if "extra_options" in data:
        logger.warning("'extra_options' is deprecated, use 'settings'")
        for key, value in (data.pop("extra_options") or {}).items():
            settings.setdefault(key, value)

    for key in ("devices", "folders", "options"):
        if key in data:
            logger.warning(f"Top-level '{key}' is deprecated, use 'settings.{key}'")
            settings.setdefault(key, data.pop(key))

    data["settings"] = settings
    return data


def _parse_device(name: str, data: Any) -> DeviceConfig:
    """Parse one declared device."""
    if not isinstance(data, dict):
        raise ConfigError(f"settings.devices.{name} must be a mapping")

    data = dict(data)
    device_id = data.pop("id", None)
    if not device_id:
        raise ConfigError(f"settings.devices.{name}: 'id' is required")

    addresses = data.pop("addresses", [])
    if not isinstance(addresses, list):
        raise ConfigError(f"settings.devices.{name}.addresses must be a list")

    return DeviceConfig(
        id=device_id,
        name=data.pop("name", name),
        addresses=[str(a) for a in addresses],
        introducer=bool(data.pop("introducer", False)),
        auto_accept_folders=bool(data.pop("autoAcceptFolders", False)),
        extra=data,
    )


def _parse_versioning(where: str, data: Any) -> VersioningConfig | None:
    """Parse a folder's versioning block."""
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ConfigError(f"{where} must be a mapping")

    check_enum(data.get("type"), VERSIONING_TYPES, f"{where}.type")
    return VersioningConfig(
        type=data["type"],
        fs_path=str(data.get("fsPath", "")),
        params={k: str(v) for k, v in (data.get("params") or {}).items()},
    )


def _parse_folder(name: str, data: Any) -> FolderConfig:
    """Parse one declared folder, filling tuning defaults."""
    where = f"settings.folders.{name}"
    if not isinstance(data, dict):
        raise ConfigError(f"{where} must be a mapping")

    data = dict(data)
    path = data.pop("path", name)
    check_folder_path(path, where)

    devices = data.pop("devices", [])
    if not isinstance(devices, list) or not all(
        isinstance(d, (str, dict)) for d in devices
    ):
        raise ConfigError(f"{where}.devices must be a list of names or mappings")

    return FolderConfig(
        id=data.pop("id", name),
        label=data.pop("label", name),
        path=path,
        enable=bool(data.pop("enable", True)),
        devices=devices,
        versioning=_parse_versioning(f"{where}.versioning", data.pop("versioning", None)),
        tuning=folder_tuning(data, where),
    )


def _check_device_references(
    folders: dict[str, FolderConfig],
    devices: dict[str, DeviceConfig],
) -> None:
    """Every symbolic device name used by a folder must be declared."""
    for name, folder in folders.items():
        for ref in folder.devices:
            if isinstance(ref, str) and ref not in devices:
                raise ConfigError(
                    f"settings.folders.{name} references unknown device '{ref}'"
                )


def parse_settings(
    settings: dict[str, Any],
) -> tuple[dict[str, Any], dict[str, DeviceConfig], dict[str, FolderConfig]]:
    """Split a settings document into free-form settings, devices and folders.

    Args:
        settings: The ``settings`` mapping from the config file.

    Returns:
        Tuple of (free-form settings, devices by name, folders by name).
    """
    if not isinstance(settings, dict):
        raise ConfigError("settings must be a mapping")

    # An empty YAML section loads as None and declares nothing
    settings = {key: value for key, value in settings.items() if value is not None}
    devices_data = settings.pop("devices", None) or {}
    folders_data = settings.pop("folders", None) or {}
    if not isinstance(devices_data, dict) or not isinstance(folders_data, dict):
        raise ConfigError("settings.devices and settings.folders must be mappings")

    validate_options(settings.get("options"))

    devices = {name: _parse_device(name, d) for name, d in devices_data.items()}
    folders = {name: _parse_folder(name, f) for name, f in folders_data.items()}
    _check_device_references(folders, devices)

    return settings, devices, folders


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded and validated Config object.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping")

        data = _apply_legacy_layout(data)

        config.gui_address = data.get("gui_address", config.gui_address)
        config.data_dir = data.get("data_dir", config.data_dir)
        config.config_dir = data.get("config_dir", config.config_dir)
        config.api_key = data.get("api_key")
        config.cert = data.get("cert")
        config.key = data.get("key")
        config.override_devices = data.get("override_devices", config.override_devices)
        config.override_folders = data.get("override_folders", config.override_folders)

        # Parse API client config
        if "api" in data:
            api_data = data["api"] or {}
            config.api = ApiConfig(
                timeout_seconds=api_data.get(
                    "timeout_seconds", config.api.timeout_seconds
                ),
                retry_attempts=api_data.get(
                    "retry_attempts", config.api.retry_attempts
                ),
                retry_delay_seconds=api_data.get(
                    "retry_delay_seconds", config.api.retry_delay_seconds
                ),
                verify_tls=api_data.get("verify_tls", config.api.verify_tls),
            )

        # Parse credentials config
        if "credentials" in data:
            cred_data = data["credentials"] or {}
            config.credentials = CredentialsConfig(
                poll_interval_seconds=cred_data.get(
                    "poll_interval_seconds", config.credentials.poll_interval_seconds
                ),
                timeout_seconds=cred_data.get(
                    "timeout_seconds", config.credentials.timeout_seconds
                ),
            )

        config.settings, config.devices, config.folders = parse_settings(
            data["settings"]
        )

    return _apply_env_overrides(config)
